"""Context builder agent - retrieves precedents once per run."""

from pydantic import BaseModel

from backend.drafting.agents.base import AgentMetrics, BaseAgent
from backend.drafting.errors import ValidationError
from backend.drafting.models.agents import CheckpointResult
from backend.drafting.models.context import ContextBundle
from backend.drafting.models.matter import MatterContext
from backend.drafting.retrieval.retriever import ContextRetriever

HIGH_SIMILARITY = 0.75
MIN_HIGH_SIMILARITY_RESULTS = 3
MAX_CONTEXT_TOKENS = 4000


class ContextBuilderInput(BaseModel):
    matter_context: MatterContext


class ContextBuilderAgent(BaseAgent[ContextBuilderInput, ContextBundle]):
    """Queries the context retriever for relevant precedents."""

    name = "context_builder"
    description = "Retrieves relevant precedents for the matter"

    def __init__(self, retriever: ContextRetriever, *, metrics: AgentMetrics | None = None) -> None:
        super().__init__(metrics=metrics)
        self._retriever = retriever

    def validate_input(self, agent_input: ContextBuilderInput) -> None:
        super().validate_input(agent_input)
        if not agent_input.matter_context.document_type:
            raise ValidationError(
                "Document type is required for context search", field="document_type"
            )

    def run_pre_checkpoints(self, agent_input: ContextBuilderInput) -> list[CheckpointResult]:
        matter = agent_input.matter_context
        return [
            self.create_checkpoint(
                "document_type_present",
                bool(matter.document_type),
                f"Document type: {matter.document_type}",
            ),
            self.create_checkpoint(
                "field_data_present",
                bool(matter.field_data),
                f"{len(matter.field_data)} field(s) provided",
            ),
        ]

    async def execute(self, agent_input: ContextBuilderInput) -> ContextBundle:
        return await self._retriever.search(agent_input.matter_context)

    def run_post_checkpoints(
        self, output: ContextBundle, agent_input: ContextBuilderInput
    ) -> list[CheckpointResult]:
        high = [s for s in output.snippets if s.similarity > HIGH_SIMILARITY]
        uncited = [s.id for s in output.snippets if not s.citation]
        return [
            self.create_checkpoint(
                "high_similarity_results",
                len(high) >= MIN_HIGH_SIMILARITY_RESULTS,
                f"{len(high)} result(s) above {HIGH_SIMILARITY} similarity",
            ),
            self.create_checkpoint(
                "token_count_reasonable",
                output.total_tokens < MAX_CONTEXT_TOKENS,
                f"Context uses {output.total_tokens} tokens",
            ),
            self.create_checkpoint(
                "sources_have_citations",
                not uncited,
                f"Missing citations: {', '.join(uncited)}" if uncited else "All sources cited",
            ),
        ]
