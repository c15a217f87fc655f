"""Sequential orchestrator - one drafting call over the full template."""

import logging
import time

from backend.drafting.agents.base import AgentMetrics
from backend.drafting.agents.context_builder import ContextBuilderAgent, ContextBuilderInput
from backend.drafting.agents.drafting import DraftingAgent, DraftingInput
from backend.drafting.config import PipelineConfig
from backend.drafting.llm.client import TextGenerationService
from backend.drafting.models.agents import CheckpointResult
from backend.drafting.models.context import ContextBundle
from backend.drafting.models.drafts import DocumentMetadata, FinalDocument, PipelineMode
from backend.drafting.models.matter import MatterContext
from backend.drafting.models.template import Template
from backend.drafting.orchestration.state import PipelineRun, RunPhase
from backend.drafting.retrieval.retriever import ContextRetriever
from backend.drafting.templates.loader import TemplateLoader
from backend.drafting.utils.metrics import record_pipeline_run

logger = logging.getLogger(__name__)


class Orchestrator:
    """Context builder once, then a single drafting agent on the premium model."""

    mode: PipelineMode = "sequential"

    def __init__(
        self,
        template_loader: TemplateLoader,
        retriever: ContextRetriever,
        generator: TextGenerationService,
        config: PipelineConfig | None = None,
        *,
        agent_metrics: AgentMetrics | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.template_loader = template_loader
        self.generator = generator
        self.context_builder = ContextBuilderAgent(retriever, metrics=agent_metrics)
        self.drafting_agent = DraftingAgent(
            generator, min_content_chars=self.config.min_content_chars, metrics=agent_metrics
        )

    async def run(
        self, matter_context: MatterContext, *, pipeline_run: PipelineRun | None = None
    ) -> FinalDocument:
        """Generate a document for the matter.

        Args:
            matter_context: Client matter data
            pipeline_run: Run state to record phases on (a fresh one by default)

        Raises:
            TemplateLoadError, ValidationError, ExternalServiceError: Unchanged
                from the failing step
        """
        run = pipeline_run or PipelineRun(mode=self.mode)
        start_time = time.monotonic()
        logger.info(
            f"Starting {self.mode} run {run.run_id} for {matter_context.document_type}",
            extra={"structured": {"run_id": run.run_id, "client": matter_context.client}},
        )

        try:
            template = self.template_loader.load(matter_context.document_type)
            bundle, checkpoints = await self._build_context(matter_context, run)

            result = await self.drafting_agent.run(
                DraftingInput(
                    template=template,
                    explanation=template.explanation_text,
                    matter_context=matter_context,
                    context_bundle=bundle,
                )
            )
            draft = result.unwrap()
            checkpoints.extend(result.checkpoints)

            document = FinalDocument(
                content=draft.markdown_body.strip(),
                metadata=DocumentMetadata(
                    sections_generated=draft.sections_generated,
                    total_duration_ms=(time.monotonic() - start_time) * 1000,
                    document_type=matter_context.document_type,
                    mode=self.mode,
                    worker_count=1,
                    missing_sections=_missing(template, draft.sections_generated),
                    checkpoints=checkpoints,
                ),
            )
            run.advance(RunPhase.DONE)
        except Exception as e:
            run.fail(e)
            record_pipeline_run(self.mode, "failed")
            raise

        record_pipeline_run(self.mode, "success")
        logger.info(
            f"Completed {self.mode} run {run.run_id} in {document.metadata.total_duration_ms:.0f}ms"
        )
        return document

    async def _build_context(
        self, matter_context: MatterContext, run: PipelineRun
    ) -> tuple[ContextBundle, list[CheckpointResult]]:
        """Run the context builder once; its bundle is shared read-only."""
        result = await self.context_builder.run(ContextBuilderInput(matter_context=matter_context))
        bundle = result.unwrap()
        run.advance(RunPhase.CONTEXT_BUILT, snippets=len(bundle.snippets))
        return bundle, list(result.checkpoints)


def _missing(template: Template, sections_generated: list[str]) -> list[str]:
    return [t for t in template.section_titles if t not in sections_generated]
