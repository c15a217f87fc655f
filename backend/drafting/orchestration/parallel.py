"""Parallel orchestrator - fan out section drafting, fan in through the overseer.

1. Context builder once; the bundle is shared read-only by every worker
2. Split template sections into contiguous tasks
3. One drafting agent call per task, launched together, each under the
   worker executor's retry policy
4. The first worker to fail after retries aborts the run with a FanOutError
   and no partial document, without waiting for slower workers
5. Partial drafts go to the overseer in task order
"""

import asyncio
import logging
import time

from backend.drafting.agents.base import AgentMetrics
from backend.drafting.agents.drafting import DraftingInput
from backend.drafting.agents.overseer import OverseerAgent, OverseerInput
from backend.drafting.config import PipelineConfig
from backend.drafting.errors import FanOutError, TaskFailure
from backend.drafting.llm.client import TextGenerationService
from backend.drafting.models.agents import AgentResult
from backend.drafting.models.context import ContextBundle
from backend.drafting.models.drafts import DraftTask, FinalDocument, PartialDraft, PipelineMode
from backend.drafting.models.matter import MatterContext
from backend.drafting.models.template import Template
from backend.drafting.orchestration.sequential import Orchestrator
from backend.drafting.orchestration.state import PipelineRun, RunPhase
from backend.drafting.pipeline.executor import RetryPolicy, WorkerContext, WorkerExecutor
from backend.drafting.pipeline.task_splitter import split_into_tasks
from backend.drafting.retrieval.retriever import ContextRetriever
from backend.drafting.templates.loader import TemplateLoader
from backend.drafting.utils.metrics import record_pipeline_run

logger = logging.getLogger(__name__)


class ParallelOrchestrator(Orchestrator):
    """Drafts contiguous section runs concurrently on the worker model."""

    mode: PipelineMode = "parallel"

    def __init__(
        self,
        template_loader: TemplateLoader,
        retriever: ContextRetriever,
        generator: TextGenerationService,
        config: PipelineConfig | None = None,
        *,
        executor: WorkerExecutor | None = None,
        agent_metrics: AgentMetrics | None = None,
    ) -> None:
        super().__init__(
            template_loader, retriever, generator, config, agent_metrics=agent_metrics
        )
        self.executor = executor or WorkerExecutor()
        self.overseer = OverseerAgent(generator, self.config, metrics=agent_metrics)

    async def run(  # type: ignore[override]
        self,
        matter_context: MatterContext,
        max_workers: int | None = None,
        *,
        pipeline_run: PipelineRun | None = None,
    ) -> FinalDocument:
        """Generate a document using concurrent drafting workers.

        Args:
            matter_context: Client matter data
            max_workers: Worker bound for this run (default: config.max_parallel_workers)
            pipeline_run: Run state to record phases on (a fresh one by default)

        Raises:
            FanOutError: One or more workers failed after retries
            CheckpointFailure: Overseer coverage or duplication gate failed
            TemplateLoadError, ValidationError, ExternalServiceError: Unchanged
                from the failing step
        """
        run = pipeline_run or PipelineRun(mode=self.mode)
        start_time = time.monotonic()
        workers = self.config.max_parallel_workers if max_workers is None else max_workers
        logger.info(
            f"Starting {self.mode} run {run.run_id} for {matter_context.document_type}",
            extra={
                "structured": {
                    "run_id": run.run_id,
                    "client": matter_context.client,
                    "max_workers": workers,
                }
            },
        )

        try:
            template = self.template_loader.load(matter_context.document_type)
            bundle, checkpoints = await self._build_context(matter_context, run)

            tasks = split_into_tasks(template.sections, workers, self.config.worker_model)
            run.advance(RunPhase.SPLIT, tasks=len(tasks))

            worker_results = await self._fan_out(run, tasks, template, matter_context, bundle)
            run.advance(RunPhase.ALL_WORKERS_DONE)
            drafts: list[PartialDraft] = []
            for result in worker_results:
                drafts.append(result.unwrap())
                checkpoints.extend(result.checkpoints)

            overseer_result = await self.overseer.run(
                OverseerInput(
                    partial_drafts=drafts,
                    template=template,
                    explanation=template.explanation_text,
                    matter_context=matter_context,
                )
            )
            checkpoints.extend(overseer_result.checkpoints)
            document = overseer_result.unwrap()
            run.advance(RunPhase.MERGED)
            if self.config.polish_enabled:
                run.advance(RunPhase.POLISHED)

            document = document.model_copy(
                update={
                    "metadata": document.metadata.model_copy(
                        update={
                            "total_duration_ms": (time.monotonic() - start_time) * 1000,
                            "worker_count": len(tasks),
                            "checkpoints": checkpoints,
                        }
                    )
                }
            )
            run.advance(RunPhase.DONE)
        except Exception as e:
            run.fail(e)
            record_pipeline_run(self.mode, "failed")
            raise

        record_pipeline_run(self.mode, "success")
        logger.info(
            f"Completed {self.mode} run {run.run_id} with {len(tasks)} workers "
            f"in {document.metadata.total_duration_ms:.0f}ms"
        )
        return document

    async def _fan_out(
        self,
        run: PipelineRun,
        tasks: list[DraftTask],
        template: Template,
        matter_context: MatterContext,
        bundle: ContextBundle,
    ) -> list[AgentResult[PartialDraft]]:
        """Launch every worker together; the first exhausted worker fails the batch.

        Workers still in flight when the batch fails are not cancelled. Their
        outcomes are consumed in the background. Results come back in task
        order regardless of completion order.
        """
        policy = RetryPolicy.from_config(self.config)
        jobs = [
            asyncio.create_task(
                self._draft_task(run, task, policy, template, matter_context, bundle)
            )
            for task in tasks
        ]
        for job in jobs:
            job.add_done_callback(_consume_outcome)
        run.advance(RunPhase.FANNED_OUT, workers=len(jobs))

        done, pending = await asyncio.wait(jobs, return_when=asyncio.FIRST_EXCEPTION)

        failures = [
            TaskFailure(
                task_id=task.task_id, section_ids=list(task.section_ids), error=job.exception()
            )
            for task, job in zip(tasks, jobs)
            if job in done and job.exception() is not None
        ]
        if failures:
            if pending:
                logger.warning(
                    f"Run {run.run_id} failed with {len(pending)} worker(s) still in flight",
                    extra={"structured": {"run_id": run.run_id, "in_flight": len(pending)}},
                )
            raise FanOutError(failures) from failures[0].error

        return [job.result() for job in jobs]

    async def _draft_task(
        self,
        run: PipelineRun,
        task: DraftTask,
        policy: RetryPolicy,
        template: Template,
        matter_context: MatterContext,
        bundle: ContextBundle,
    ) -> AgentResult[PartialDraft]:
        drafting_input = DraftingInput(
            template=template,
            explanation=template.explanation_text,
            matter_context=matter_context,
            context_bundle=bundle,
            section_ids=list(task.section_ids),
            model_override=task.model_override,
        )

        async def attempt() -> AgentResult[PartialDraft]:
            result = await self.drafting_agent.run(drafting_input)
            if result.error is not None:
                raise result.error
            return result

        ctx = WorkerContext(
            run_id=run.run_id, task_id=task.task_id, section_ids=tuple(task.section_ids)
        )
        return await self.executor.execute(ctx, policy, attempt)


def _consume_outcome(job: asyncio.Task) -> None:
    """Retrieve a finished worker's exception so late failures are logged, not lost."""
    if job.cancelled():
        return
    error = job.exception()
    if error is not None:
        logger.debug(f"Worker finished with {type(error).__name__}: {error}")
