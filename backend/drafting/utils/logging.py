"""Structured logging for drafting workers.

Each attempt is logged against its run and task with the task phase it
leaves the worker in:
- drafted:   the attempt produced a partial draft (INFO)
- backoff:   the attempt failed and a retry is scheduled (WARNING)
- exhausted: no attempts remain, the run will fail (ERROR)
"""

import logging
from typing import Any

from backend.drafting.pipeline.executor import WorkerContext

logger = logging.getLogger(__name__)

TASK_PHASES = {"success": "drafted", "retry": "backoff", "failed": "exhausted"}


def section_span(section_ids: tuple[str, ...]) -> str:
    """Compact label for a contiguous run of sections ("s7..s9")."""
    if not section_ids:
        return ""
    if len(section_ids) == 1:
        return section_ids[0]
    return f"{section_ids[0]}..{section_ids[-1]}"


class StructuredWorkerLogger:
    """Structured logger for worker attempts."""

    def log_attempt(
        self,
        ctx: WorkerContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log worker attempt with structured data."""
        phase = TASK_PHASES.get(outcome, outcome)
        log_data: dict[str, Any] = {
            "run_id": ctx.run_id,
            "task_id": ctx.task_id,
            "task_phase": phase,
            "section_ids": list(ctx.section_ids),
            "section_count": len(ctx.section_ids),
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = (
            f"Run {ctx.run_id} {ctx.task_id} [{section_span(ctx.section_ids)}] "
            f"attempt {attempt}: {phase}"
        )

        if phase == "drafted":
            logger.info(log_msg, extra={"structured": log_data})
        elif phase == "exhausted":
            logger.error(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
