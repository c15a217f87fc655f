"""Context bundle models - retrieved precedent snippets."""

from pydantic import BaseModel, ConfigDict, Field


class ContextSnippet(BaseModel):
    """Precedent excerpt with relevance score."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    citation: str = ""


class ContextBundle(BaseModel):
    """Retrieved context shared read-only by every drafting worker."""

    model_config = ConfigDict(frozen=True)

    snippets: list[ContextSnippet] = Field(default_factory=list)
    total_tokens: int = 0
    search_terms: list[str] = Field(default_factory=list)

    @classmethod
    def empty(cls, search_terms: list[str] | None = None) -> "ContextBundle":
        """Bundle returned when retrieval finds nothing."""
        return cls(snippets=[], total_tokens=0, search_terms=search_terms or [])

    @property
    def is_empty(self) -> bool:
        return not self.snippets
