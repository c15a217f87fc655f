"""Async worker executor with bounded retries, exponential backoff, and jitter.

Wraps each drafting worker invocation of the parallel pipeline:
- Attempts = retry_count + 1
- Delay before retry n: min(base * multiplier**(n-1), max) + uniform jitter
- Only retriable ExternalServiceErrors are retried; everything else propagates
- Once attempts are exhausted the last error is re-raised unchanged
- Metrics and structured logging per attempt
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from backend.drafting.config import PipelineConfig
from backend.drafting.errors import ExternalServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class WorkerContext:
    """Identifies one worker invocation for logs and metrics."""

    run_id: str
    task_id: str
    section_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for a worker call (milliseconds)."""

    retry_count: int = 1
    backoff_base_ms: int = 1000
    backoff_multiplier: float = 2.0
    backoff_max_ms: int = 5000
    jitter_max_ms: int = 250

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "RetryPolicy":
        return cls(
            retry_count=config.worker_retry_count,
            backoff_base_ms=config.retry_backoff_base_ms,
            backoff_multiplier=config.retry_backoff_multiplier,
            backoff_max_ms=config.retry_backoff_max_ms,
            jitter_max_ms=config.retry_jitter_max_ms,
        )

    def delay_ms(self, attempt: int) -> float:
        """Backoff before the retry that follows ``attempt`` (1-based), without jitter."""
        delay = self.backoff_base_ms * self.backoff_multiplier ** (attempt - 1)
        return float(min(delay, self.backoff_max_ms))


def is_retriable(error: BaseException) -> bool:
    """Whether a worker failure is worth another attempt."""
    return isinstance(error, ExternalServiceError) and error.retriable


# Metrics interface (implemented by utils.metrics)
class WorkerMetrics:
    """Interface for worker attempt metrics."""

    def inc_attempt(self, outcome: str) -> None:
        """Count one attempt by outcome (success, retry, failed)."""
        pass


# Logging interface (implemented by utils.logging)
class WorkerLogger:
    """Interface for structured worker logging."""

    def log_attempt(
        self,
        ctx: WorkerContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a worker attempt."""
        pass


class WorkerExecutor:
    """Runs worker coroutines under a retry policy."""

    def __init__(
        self,
        metrics: WorkerMetrics | None = None,
        logger: WorkerLogger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
        """
        self._metrics = metrics or WorkerMetrics()
        self._logger = logger or WorkerLogger()
        self._sleep = sleep_fn or asyncio.sleep

    async def execute(
        self,
        ctx: WorkerContext,
        policy: RetryPolicy,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Call ``fn`` until it succeeds or the policy gives up.

        Args:
            ctx: Worker identity for logs and metrics
            policy: Retry configuration
            fn: Zero-argument coroutine factory; called once per attempt

        Returns:
            Result of the first successful attempt

        Raises:
            The error of the last attempt, or the first non-retriable error
        """
        attempts = policy.retry_count + 1
        for attempt in range(1, attempts + 1):
            attempt_start = time.monotonic()
            try:
                result = await fn()
            except Exception as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                will_retry = attempt < attempts and is_retriable(e)
                outcome = "retry" if will_retry else "failed"
                self._metrics.inc_attempt(outcome)
                self._logger.log_attempt(
                    ctx, attempt, outcome, elapsed_ms, error_reason=type(e).__name__
                )
                if not will_retry:
                    raise

                jitter_ms = random.uniform(0, policy.jitter_max_ms)
                await self._sleep((policy.delay_ms(attempt) + jitter_ms) / 1000)
                continue

            elapsed_ms = (time.monotonic() - attempt_start) * 1000
            self._metrics.inc_attempt("success")
            self._logger.log_attempt(ctx, attempt, "success", elapsed_ms)
            return result

        # Unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without a result")
