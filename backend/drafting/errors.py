"""Error taxonomy for the drafting pipeline.

Fatal errors (validation, external service, fan-out) propagate to the caller.
Checkpoints are diagnostic records; only CheckpointFailure turns a set of
failed checkpoints into an exception.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backend.drafting.models.agents import CheckpointResult


class DraftingError(Exception):
    """Base class for all pipeline errors."""

    pass


class ValidationError(DraftingError):
    """Agent or pipeline input is missing required data.

    Raised before any external call is made.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TemplateLoadError(DraftingError):
    """Template or explanation file is missing or malformed."""

    def __init__(
        self, message: str, document_type: str | None = None, path: str | None = None
    ) -> None:
        super().__init__(message)
        self.document_type = document_type
        self.path = path


class CheckpointFailure(DraftingError):
    """A checkpoint declared fatal did not pass."""

    def __init__(self, checkpoints: Sequence[CheckpointResult]) -> None:
        self.checkpoints = list(checkpoints)
        names = ", ".join(c.name for c in self.checkpoints)
        details = "; ".join(c.message for c in self.checkpoints if c.message)
        message = f"Fatal checkpoints failed: {names}"
        if details:
            message = f"{message} ({details})"
        super().__init__(message)


class ExternalServiceError(DraftingError):
    """Failure reported by the text-generation or retrieval collaborator."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retriable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retriable = retriable


class GenerationTimeoutError(ExternalServiceError):
    """Text-generation call exceeded its timeout."""

    def __init__(self, message: str = "Text generation request timed out") -> None:
        super().__init__(message, status_code=408, retriable=True)


class RateLimitError(ExternalServiceError):
    """Text-generation service rejected the call with a rate limit."""

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.") -> None:
        super().__init__(message, status_code=429, retriable=True)


class AuthenticationError(ExternalServiceError):
    """API key rejected; retrying cannot help."""

    def __init__(self, message: str = "Invalid API key for text generation service") -> None:
        super().__init__(message, status_code=401, retriable=False)


class EmptyResponseError(ExternalServiceError):
    """Service answered but produced no usable content."""

    def __init__(self, message: str = "No content generated") -> None:
        super().__init__(message, retriable=True)


class RetrievalError(ExternalServiceError):
    """Context retriever failed (not raised for empty results)."""

    pass


@dataclass(frozen=True)
class TaskFailure:
    """One worker task that could not produce a partial draft."""

    task_id: str
    section_ids: list[str]
    error: BaseException


class FanOutError(DraftingError):
    """One or more parallel drafting workers failed after retries.

    No partial document is assembled when this is raised.
    """

    def __init__(self, failures: Sequence[TaskFailure]) -> None:
        self.failures = list(failures)
        parts = [
            f"{f.task_id} [{', '.join(f.section_ids)}]: {type(f.error).__name__}: {f.error}"
            for f in self.failures
        ]
        super().__init__(
            f"{len(self.failures)} drafting task(s) failed: " + "; ".join(parts)
        )

    @property
    def failed_section_ids(self) -> list[str]:
        """Section ids that could not be generated, in task order."""
        return [sid for f in self.failures for sid in f.section_ids]
