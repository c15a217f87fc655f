"""Drafting agent - one text-generation call over a template or a section subset."""

from pydantic import BaseModel, Field

from backend.drafting.agents.base import AgentMetrics, BaseAgent
from backend.drafting.errors import ValidationError
from backend.drafting.llm.client import TextGenerationService
from backend.drafting.llm.prompts import section_subset_instruction
from backend.drafting.models.agents import CheckpointResult
from backend.drafting.models.context import ContextBundle
from backend.drafting.models.drafts import FullDraft, PartialDraft
from backend.drafting.models.matter import MatterContext
from backend.drafting.models.template import Template
from backend.drafting.pipeline.markdown_merge import (
    classify_headings,
    estimate_tokens,
    find_placeholders,
)


class DraftingInput(BaseModel):
    """Input for one drafting run.

    ``section_ids`` restricts drafting to a subset of the template (parallel
    workers); ``None`` drafts the entire template.
    """

    template: Template
    explanation: str = ""
    matter_context: MatterContext
    context_bundle: ContextBundle = Field(default_factory=ContextBundle.empty)
    section_ids: list[str] | None = None
    model_override: str | None = None


class DraftingAgent(BaseAgent[DraftingInput, PartialDraft]):
    """Generates Markdown for a template (or subset) with one service call."""

    name = "drafting"
    description = "Drafts document sections from template, explanation, and matter data"

    def __init__(
        self,
        generator: TextGenerationService,
        *,
        min_content_chars: int = 50,
        metrics: AgentMetrics | None = None,
    ) -> None:
        super().__init__(metrics=metrics)
        self._generator = generator
        self.min_content_chars = min_content_chars

    def validate_input(self, agent_input: DraftingInput) -> None:
        super().validate_input(agent_input)
        if not agent_input.matter_context.field_data:
            raise ValidationError("Matter has no field data", field="field_data")
        if agent_input.section_ids is not None:
            if not agent_input.section_ids:
                raise ValidationError("section_ids must not be empty", field="section_ids")
            known = {s.id for s in agent_input.template.sections}
            unknown = [sid for sid in agent_input.section_ids if sid not in known]
            if unknown:
                raise ValidationError(
                    f"Unknown section ids: {', '.join(unknown)}", field="section_ids"
                )

    def run_pre_checkpoints(self, agent_input: DraftingInput) -> list[CheckpointResult]:
        template = agent_input.template
        assigned = agent_input.section_ids or [s.id for s in template.sections]
        checkpoints = [
            self.create_checkpoint(
                "template_sections_present",
                bool(template.sections),
                f"Drafting {len(assigned)} of {len(template.sections)} sections"
                if template.sections
                else "Template has no sections",
            )
        ]

        required = [f for f in template.required_fields if f.required]
        field_data = agent_input.matter_context.field_data
        missing = [f.id for f in required if field_data.get(f.id) in (None, "")]
        if not template.required_fields:
            checkpoints.append(
                self.create_checkpoint(
                    "required_fields_available", False, "Template has no required fields defined"
                )
            )
        else:
            checkpoints.append(
                self.create_checkpoint(
                    "required_fields_available",
                    not missing,
                    f"Missing field data: {', '.join(missing)}"
                    if missing
                    else f"Template has {len(required)} required fields, all provided",
                )
            )
        return checkpoints

    async def execute(self, agent_input: DraftingInput) -> PartialDraft:
        template = agent_input.template
        explanation = agent_input.explanation or template.explanation_text
        if agent_input.section_ids is not None:
            template = template.subset(agent_input.section_ids)
            explanation = f"{explanation}\n\n{section_subset_instruction(template.section_titles)}"

        markdown = await self._generator.generate(
            template,
            explanation,
            agent_input.matter_context.field_data,
            model_override=agent_input.model_override,
            context_bundle=agent_input.context_bundle,
        )

        # Classified against the full template so out-of-assignment sections stay visible
        sections, extras = classify_headings(markdown, agent_input.template.section_titles)
        draft_cls = FullDraft if agent_input.section_ids is None else PartialDraft
        return draft_cls(
            markdown_body=markdown,
            sections_generated=sections,
            placeholders_remaining=find_placeholders(markdown),
            token_estimate=estimate_tokens(markdown),
            streaming_chunks=1,
            extra_headings=extras,
            model=agent_input.model_override,
        )

    def run_post_checkpoints(
        self, output: PartialDraft, agent_input: DraftingInput
    ) -> list[CheckpointResult]:
        content_length = len(output.markdown_body.strip())
        return [
            self.create_checkpoint(
                "no_placeholders_remaining",
                not output.placeholders_remaining,
                f"Unresolved placeholders: {', '.join(output.placeholders_remaining)}"
                if output.placeholders_remaining
                else "All placeholders resolved",
            ),
            self.create_checkpoint(
                "document_has_content",
                content_length > self.min_content_chars,
                f"Generated {content_length} characters",
            ),
            self.create_checkpoint(
                "streaming_heartbeat",
                output.streaming_chunks > 0,
                f"Received {output.streaming_chunks} chunk(s)",
            ),
        ]
