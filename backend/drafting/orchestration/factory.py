"""Orchestrator selection and wiring from settings."""

import logging

from backend.drafting.config import PipelineConfig, Settings, get_settings
from backend.drafting.llm.client import TextGenerationService, get_generation_client
from backend.drafting.orchestration.parallel import ParallelOrchestrator
from backend.drafting.orchestration.sequential import Orchestrator
from backend.drafting.pipeline.executor import WorkerExecutor
from backend.drafting.retrieval.retriever import (
    ContextRetriever,
    KeywordContextRetriever,
    NullContextRetriever,
)
from backend.drafting.templates.loader import TemplateLoader
from backend.drafting.utils.logging import StructuredWorkerLogger
from backend.drafting.utils.metrics import PrometheusAgentMetrics, PrometheusWorkerMetrics

logger = logging.getLogger(__name__)


def get_context_retriever(settings: Settings | None = None) -> ContextRetriever:
    """Keyword retriever over the configured precedent file, or a null retriever."""
    settings = settings or get_settings()
    if settings.precedents_path:
        return KeywordContextRetriever.from_file(
            settings.precedents_path, max_results=settings.retriever_max_results
        )
    logger.info("No precedents configured, context retrieval disabled")
    return NullContextRetriever()


def build_orchestrator(
    config: PipelineConfig | None = None,
    parallel: bool | None = None,
    *,
    settings: Settings | None = None,
    generator: TextGenerationService | None = None,
    retriever: ContextRetriever | None = None,
    template_loader: TemplateLoader | None = None,
) -> Orchestrator:
    """Build the sequential or parallel orchestrator.

    Args:
        config: Pipeline configuration (default: frozen from settings)
        parallel: Force a mode; ``None`` follows ``config.parallel_by_default``
        settings: Settings used for collaborators (default: cached settings)
        generator: Text generation service (default: from settings)
        retriever: Context retriever (default: from settings)
        template_loader: Template loader (default: settings.templates_dir)

    Returns:
        ParallelOrchestrator or Orchestrator wired with Prometheus metrics
    """
    settings = settings or get_settings()
    config = config or PipelineConfig.from_settings(settings)
    generator = generator or get_generation_client(settings)
    retriever = retriever or get_context_retriever(settings)
    template_loader = template_loader or TemplateLoader(settings.templates_dir)
    agent_metrics = PrometheusAgentMetrics()

    use_parallel = config.parallel_by_default if parallel is None else parallel
    if use_parallel:
        executor = WorkerExecutor(
            metrics=PrometheusWorkerMetrics(), logger=StructuredWorkerLogger()
        )
        return ParallelOrchestrator(
            template_loader,
            retriever,
            generator,
            config,
            executor=executor,
            agent_metrics=agent_metrics,
        )
    return Orchestrator(template_loader, retriever, generator, config, agent_metrics=agent_metrics)
