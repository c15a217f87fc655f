"""Run state for pipeline orchestration."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from backend.drafting.models.drafts import PipelineMode


class RunPhase(str, Enum):
    """Pipeline run phase."""

    IDLE = "idle"
    CONTEXT_BUILT = "context_built"
    SPLIT = "split"
    FANNED_OUT = "fanned_out"
    ALL_WORKERS_DONE = "all_workers_done"
    MERGED = "merged"
    POLISHED = "polished"
    DONE = "done"
    FAILED = "failed"


# FAILED is reachable from every non-terminal phase
_TRANSITIONS: dict[RunPhase, frozenset[RunPhase]] = {
    RunPhase.IDLE: frozenset({RunPhase.CONTEXT_BUILT}),
    # Sequential runs draft the whole document straight after context
    RunPhase.CONTEXT_BUILT: frozenset({RunPhase.SPLIT, RunPhase.DONE}),
    RunPhase.SPLIT: frozenset({RunPhase.FANNED_OUT}),
    RunPhase.FANNED_OUT: frozenset({RunPhase.ALL_WORKERS_DONE}),
    RunPhase.ALL_WORKERS_DONE: frozenset({RunPhase.MERGED}),
    RunPhase.MERGED: frozenset({RunPhase.POLISHED, RunPhase.DONE}),
    RunPhase.POLISHED: frozenset({RunPhase.DONE}),
    RunPhase.DONE: frozenset(),
    RunPhase.FAILED: frozenset(),
}

TERMINAL_PHASES = frozenset({RunPhase.DONE, RunPhase.FAILED})


@dataclass(frozen=True)
class PipelineEvent:
    """One phase transition, with optional details."""

    sequence: int
    phase: RunPhase
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineRun:
    """Mutable state of one orchestrator run.

    Owned by a single run; never shared across runs.
    """

    mode: PipelineMode
    run_id: str = field(default_factory=lambda: uuid4().hex)
    phase: RunPhase = RunPhase.IDLE
    events: list[PipelineEvent] = field(default_factory=list)

    def advance(self, phase: RunPhase, **details: Any) -> None:
        """Move to ``phase``.

        Raises:
            RuntimeError: The transition is not allowed from the current phase
        """
        allowed = _TRANSITIONS[self.phase]
        if phase is RunPhase.FAILED and self.phase not in TERMINAL_PHASES:
            allowed = allowed | {RunPhase.FAILED}
        if phase not in allowed:
            raise RuntimeError(
                f"Illegal pipeline transition {self.phase.value} -> {phase.value}"
            )
        self.phase = phase
        self.events.append(
            PipelineEvent(
                sequence=len(self.events),
                phase=phase,
                timestamp=datetime.now(UTC),
                details=details,
            )
        )

    def fail(self, error: BaseException) -> None:
        """Record failure unless the run already finished."""
        if self.phase not in TERMINAL_PHASES:
            self.advance(RunPhase.FAILED, error=type(error).__name__, message=str(error))

    @property
    def is_finished(self) -> bool:
        return self.phase in TERMINAL_PHASES
