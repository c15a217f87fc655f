"""Draft models - units of work and their outputs across the pipeline."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.drafting.models.agents import CheckpointResult

PipelineMode = Literal["sequential", "parallel"]


class DraftTask(BaseModel):
    """Contiguous run of template sections assigned to one worker."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    index: int = Field(..., ge=0, description="Position in split order")
    section_ids: list[str]
    model_override: str | None = None


class PartialDraft(BaseModel):
    """Markdown produced by one drafting worker for a subset of sections."""

    markdown_body: str
    sections_generated: list[str] = Field(default_factory=list)
    placeholders_remaining: list[str] = Field(default_factory=list)
    token_estimate: int = 0
    streaming_chunks: int = 1
    # Headings that matched no template section (titles, sub-headings)
    extra_headings: list[str] = Field(default_factory=list)
    model: str | None = None


class FullDraft(PartialDraft):
    """Drafting output covering the entire template."""

    pass


class DocumentMetadata(BaseModel):
    """Metadata attached to the final document."""

    sections_generated: list[str] = Field(default_factory=list)
    total_duration_ms: float = 0.0
    document_type: str | None = None
    mode: PipelineMode = "sequential"
    worker_count: int = 1
    missing_sections: list[str] = Field(default_factory=list)
    checkpoints: list[CheckpointResult] = Field(default_factory=list)


class FinalDocument(BaseModel):
    """Terminal artifact of a pipeline run, handed to a document writer."""

    content: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
