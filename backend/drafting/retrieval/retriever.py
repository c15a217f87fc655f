"""Context retriever - precedent search for a matter.

KeywordContextRetriever scores precedents by query token overlap:
- Build search terms from document type, client, and scalar field data
- Similarity = fraction of search terms found in the precedent's tokens
- Filter out precedents with similarity = 0
- Sort by similarity descending, then by load order (for determinism)
- Apply limit
"""

import logging
import re
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from backend.drafting.errors import RetrievalError
from backend.drafting.models.context import ContextBundle, ContextSnippet
from backend.drafting.models.matter import MatterContext
from backend.drafting.pipeline.markdown_merge import estimate_tokens

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
MIN_TERM_LENGTH = 3


class ContextRetriever(Protocol):
    """Protocol for context retriever implementations."""

    async def search(self, matter_context: MatterContext) -> ContextBundle:
        """Return relevant precedents; an empty bundle when nothing matches.

        Raises:
            RetrievalError: Retriever failure (never raised for empty results)
        """
        ...


class Precedent(BaseModel):
    """Stored precedent document."""

    id: str
    title: str
    content: str
    citation: str = ""
    document_type: str | None = None


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def build_search_terms(matter_context: MatterContext) -> list[str]:
    """Distinct search terms in first-seen order."""
    parts: list[str] = [matter_context.document_type.replace("-", " "), matter_context.client]
    for value in matter_context.field_data.values():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            parts.append(str(value))

    terms: list[str] = []
    for part in parts:
        for token in tokenize(part):
            if len(token) >= MIN_TERM_LENGTH and token not in terms:
                terms.append(token)
    return terms


class NullContextRetriever:
    """Retriever with no precedent store; always returns an empty bundle."""

    async def search(self, matter_context: MatterContext) -> ContextBundle:
        return ContextBundle.empty(build_search_terms(matter_context))


class KeywordContextRetriever:
    """In-memory precedent store with deterministic token-overlap scoring."""

    def __init__(self, precedents: list[Precedent], max_results: int = 5) -> None:
        self._precedents = list(precedents)
        self._tokens = [set(tokenize(f"{p.title} {p.content}")) for p in self._precedents]
        self.max_results = max_results

    @classmethod
    def from_file(cls, path: str | Path, max_results: int = 5) -> "KeywordContextRetriever":
        """Load precedents from a YAML or JSON file.

        Accepts either a list of precedents or a mapping with a
        ``precedents`` key.

        Raises:
            RetrievalError: File missing or malformed
        """
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as f:
                data: Any = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise RetrievalError(f"Cannot load precedents from {path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("precedents", [])
        if not isinstance(data, list):
            raise RetrievalError(f"Precedent file {path} must contain a list of precedents")

        try:
            precedents = [Precedent.model_validate(item) for item in data]
        except PydanticValidationError as e:
            raise RetrievalError(f"Invalid precedent in {path}: {e}") from e

        logger.info(f"Loaded {len(precedents)} precedents from {path}")
        return cls(precedents, max_results=max_results)

    async def search(self, matter_context: MatterContext) -> ContextBundle:
        """Search precedents by overlap with the matter's search terms."""
        terms = build_search_terms(matter_context)
        if not terms:
            return ContextBundle.empty()

        scored: list[tuple[float, int]] = []
        for order, tokens in enumerate(self._tokens):
            match_count = sum(1 for term in terms if term in tokens)
            if match_count > 0:
                scored.append((match_count / len(terms), order))

        # Sort by score descending, then by load order for tie-breaking (deterministic)
        scored.sort(key=lambda x: (-x[0], x[1]))
        scored = scored[: self.max_results]

        snippets = [
            ContextSnippet(
                id=self._precedents[order].id,
                title=self._precedents[order].title,
                content=self._precedents[order].content,
                similarity=round(score, 4),
                citation=self._precedents[order].citation,
            )
            for score, order in scored
        ]
        total_tokens = sum(estimate_tokens(s.content) for s in snippets)

        logger.info(
            "Context search completed",
            extra={
                "structured": {
                    "document_type": matter_context.document_type,
                    "results": len(snippets),
                    "total_tokens": total_tokens,
                }
            },
        )
        return ContextBundle(snippets=snippets, total_tokens=total_tokens, search_terms=terms)
