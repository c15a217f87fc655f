"""Agent result envelope and checkpoint records."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class CheckpointResult(BaseModel):
    """Diagnostic pass/fail assertion recorded alongside an agent result."""

    name: str
    passed: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class AgentResult(Generic[T]):
    """Uniform envelope returned by every agent run.

    ``error`` carries the original exception so callers can re-raise it
    unchanged via ``unwrap()``.
    """

    agent: str
    output: T | None = None
    pre_checkpoints: list[CheckpointResult] = field(default_factory=list)
    post_checkpoints: list[CheckpointResult] = field(default_factory=list)
    duration_ms: float = 0.0
    success: bool = False
    error: BaseException | None = None
    input_hash: str | None = None
    output_hash: str | None = None

    @property
    def checkpoints(self) -> list[CheckpointResult]:
        """Pre and post checkpoints in evaluation order."""
        return [*self.pre_checkpoints, *self.post_checkpoints]

    @property
    def failed_checkpoints(self) -> list[CheckpointResult]:
        return [c for c in self.checkpoints if not c.passed]

    def unwrap(self) -> T:
        """Return the output, or re-raise the error that failed the run."""
        if self.error is not None:
            raise self.error
        if not self.success or self.output is None:
            raise RuntimeError(f"{self.agent} produced no output")
        return self.output
