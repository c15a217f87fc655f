"""Overseer agent - merges partial drafts, gates quality, and polishes.

Coverage and duplication checks are fatal when ``strict_coverage`` is on
(the default). With it off, the run continues: duplicates are dropped during
the merge and omitted sections are listed in ``metadata.missing_sections``.
"""

from collections import Counter

from pydantic import BaseModel

from backend.drafting.agents.base import AgentMetrics, BaseAgent
from backend.drafting.config import PipelineConfig
from backend.drafting.errors import ValidationError
from backend.drafting.llm.client import TextGenerationService
from backend.drafting.models.agents import CheckpointResult
from backend.drafting.models.drafts import DocumentMetadata, FinalDocument, PartialDraft
from backend.drafting.models.matter import MatterContext
from backend.drafting.models.template import Template
from backend.drafting.pipeline.markdown_merge import (
    classify_headings,
    find_placeholders,
    merge_markdown,
    order_drafts,
    section_order_matches,
)

COVERAGE_CHECKPOINTS = frozenset({"section_coverage", "no_duplicate_sections"})


class OverseerInput(BaseModel):
    """Partial drafts plus the template they were drafted against."""

    partial_drafts: list[PartialDraft]
    template: Template
    explanation: str = ""
    matter_context: MatterContext


class OverseerAgent(BaseAgent[OverseerInput, FinalDocument]):
    """Assembles one ordered document from worker output."""

    name = "overseer"
    description = "Merges partial drafts, validates coverage and order, and polishes the result"

    def __init__(
        self,
        generator: TextGenerationService,
        config: PipelineConfig | None = None,
        *,
        metrics: AgentMetrics | None = None,
    ) -> None:
        super().__init__(metrics=metrics)
        self._generator = generator
        self.config = config or PipelineConfig()
        self.fatal_checkpoints = COVERAGE_CHECKPOINTS if self.config.strict_coverage else frozenset()

    def validate_input(self, agent_input: OverseerInput) -> None:
        super().validate_input(agent_input)
        if not agent_input.partial_drafts:
            raise ValidationError("No partial drafts provided", field="partial_drafts")
        if not agent_input.template.sections:
            raise ValidationError("Template has no sections", field="template")

    def run_pre_checkpoints(self, agent_input: OverseerInput) -> list[CheckpointResult]:
        titles = agent_input.template.section_titles
        ordered = order_drafts(agent_input.partial_drafts, agent_input.template)
        produced = [title for draft in ordered for title in draft.sections_generated]

        missing = [t for t in titles if t not in produced]
        if produced == titles:
            coverage_message = f"All {len(titles)} sections present in template order"
        elif missing:
            coverage_message = f"Missing sections: {', '.join(missing)}"
        else:
            coverage_message = f"Sections out of template order: {', '.join(produced)}"

        # A title counts once per draft; repeats inside one draft are left to the merge
        counts = Counter(
            title for draft in agent_input.partial_drafts for title in set(draft.sections_generated)
        )
        duplicates = [t for t in titles if counts[t] > 1]

        return [
            self.create_checkpoint("section_coverage", produced == titles, coverage_message),
            self.create_checkpoint(
                "no_duplicate_sections",
                not duplicates,
                f"Duplicated sections: {', '.join(duplicates)}"
                if duplicates
                else "No duplicated sections",
            ),
        ]

    async def execute(self, agent_input: OverseerInput) -> FinalDocument:
        template = agent_input.template
        merged = merge_markdown(
            agent_input.partial_drafts,
            template,
            heading_level=self.config.section_heading_level,
        )
        merged_sections, _extras = classify_headings(merged, template.section_titles)
        missing = [t for t in template.section_titles if t not in merged_sections]

        content = merged
        if self.config.polish_enabled:
            content = await self._generator.polish(
                merged, agent_input.explanation or template.explanation_text
            )

        sections_generated, _extras = classify_headings(content, template.section_titles)
        return FinalDocument(
            content=content,
            metadata=DocumentMetadata(
                sections_generated=sections_generated,
                document_type=agent_input.matter_context.document_type,
                mode="parallel",
                worker_count=len(agent_input.partial_drafts),
                missing_sections=missing,
            ),
        )

    def run_post_checkpoints(
        self, output: FinalDocument, agent_input: OverseerInput
    ) -> list[CheckpointResult]:
        length = len(output.content)
        placeholders = find_placeholders(output.content)
        length_ok = self.config.min_content_chars <= length <= self.config.max_document_chars
        issues = []
        if not length_ok:
            issues.append(
                f"length {length} outside [{self.config.min_content_chars}, "
                f"{self.config.max_document_chars}]"
            )
        if placeholders:
            issues.append(f"unresolved placeholders: {', '.join(placeholders)}")

        order_ok, found = section_order_matches(
            output.content, agent_input.template.section_titles
        )
        return [
            self.create_checkpoint(
                "merged_document_quality",
                length_ok and not placeholders,
                "; ".join(issues) if issues else f"Document is {length} characters",
            ),
            self.create_checkpoint(
                "section_order_validation",
                order_ok,
                "Sections appear in template order"
                if order_ok
                else f"Found sections in order: {', '.join(found)}",
            ),
        ]
