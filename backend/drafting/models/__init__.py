"""Models package - re-exports for convenience."""

from backend.drafting.models.agents import AgentResult, CheckpointResult
from backend.drafting.models.context import ContextBundle, ContextSnippet
from backend.drafting.models.drafts import (
    DocumentMetadata,
    DraftTask,
    FinalDocument,
    FullDraft,
    PartialDraft,
    PipelineMode,
)
from backend.drafting.models.matter import MatterContext
from backend.drafting.models.template import RequiredField, Section, Template

__all__ = [
    # Agents
    "AgentResult",
    "CheckpointResult",
    # Context
    "ContextBundle",
    "ContextSnippet",
    # Drafts
    "DraftTask",
    "PartialDraft",
    "FullDraft",
    "FinalDocument",
    "DocumentMetadata",
    "PipelineMode",
    # Matter
    "MatterContext",
    # Template
    "Template",
    "Section",
    "RequiredField",
]
