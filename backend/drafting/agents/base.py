"""Base agent lifecycle shared by every pipeline agent.

run(input):
1. validate_input       - raises ValidationError before any external call
2. run_pre_checkpoints  - diagnostic; names in fatal_checkpoints abort the run
                          once all pre-checkpoints have been evaluated
3. execute              - timed; the only step that may await a service
4. run_post_checkpoints - diagnostic, only after a successful execute

Errors from every step are captured on the AgentResult rather than raised.
"""

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from backend.drafting.errors import CheckpointFailure, ValidationError
from backend.drafting.models.agents import AgentResult, CheckpointResult

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")

HASH_LENGTH = 16


def short_hash(value: Any) -> str:
    """Truncated sha256 of a model, string, or JSON-serializable value."""
    if isinstance(value, BaseModel):
        payload = value.model_dump_json()
    elif isinstance(value, str):
        payload = value
    else:
        payload = json.dumps(value, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()[:HASH_LENGTH]


# Metrics interface (implemented by utils.metrics)
class AgentMetrics:
    """Interface for agent run metrics."""

    def record_duration(self, agent: str, outcome: str, duration_ms: float) -> None:
        """Record agent run duration."""
        pass

    def inc_checkpoint_failure(self, agent: str, checkpoint: str) -> None:
        """Increment failed checkpoint counter."""
        pass


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """Abstract agent with validation, checkpoints, and timing."""

    name: str = "base"
    description: str = ""
    fatal_checkpoints: frozenset[str] = frozenset()

    def __init__(self, metrics: AgentMetrics | None = None) -> None:
        self._metrics = metrics or AgentMetrics()

    async def run(self, agent_input: InputT) -> AgentResult[OutputT]:
        """Run the full agent lifecycle.

        Never raises for errors in validation, checkpoints or execution;
        they are returned on the result with ``success=False``.
        """
        start_time = time.monotonic()
        result: AgentResult[OutputT] = AgentResult(agent=self.name)
        result.input_hash = short_hash(agent_input)

        logger.info(
            f"{self.name} agent started",
            extra={"structured": {"agent": self.name, "input_hash": result.input_hash}},
        )

        try:
            self.validate_input(agent_input)

            result.pre_checkpoints = self.run_pre_checkpoints(agent_input)
            self._record_failed(result.pre_checkpoints)
            fatal = [
                c
                for c in result.pre_checkpoints
                if not c.passed and c.name in self.fatal_checkpoints
            ]
            if fatal:
                raise CheckpointFailure(fatal)

            output = await self.execute(agent_input)
            duration_ms = (time.monotonic() - start_time) * 1000

            post_checkpoints = self.run_post_checkpoints(output, agent_input)
            self._record_failed(post_checkpoints)
        except Exception as e:
            result.duration_ms = (time.monotonic() - start_time) * 1000
            result.error = e
            self._metrics.record_duration(self.name, "failed", result.duration_ms)
            logger.error(
                f"{self.name} agent failed: {type(e).__name__}: {e}",
                extra={
                    "structured": {
                        "agent": self.name,
                        "input_hash": result.input_hash,
                        "error": type(e).__name__,
                        "duration_ms": round(result.duration_ms, 2),
                    }
                },
            )
            return result

        result.duration_ms = duration_ms
        result.output = output
        result.output_hash = short_hash(output)
        result.post_checkpoints = post_checkpoints
        result.success = True
        self._metrics.record_duration(self.name, "success", result.duration_ms)

        logger.info(
            f"{self.name} agent completed",
            extra={
                "structured": {
                    "agent": self.name,
                    "input_hash": result.input_hash,
                    "output_hash": result.output_hash,
                    "duration_ms": round(result.duration_ms, 2),
                    "checkpoints_failed": [c.name for c in result.failed_checkpoints],
                }
            },
        )
        return result

    def validate_input(self, agent_input: InputT) -> None:
        """Raise ValidationError when required input is missing."""
        if agent_input is None:
            raise ValidationError(f"{self.name} agent received no input")

    def run_pre_checkpoints(self, agent_input: InputT) -> list[CheckpointResult]:
        return []

    @abstractmethod
    async def execute(self, agent_input: InputT) -> OutputT:
        """Main processing step."""
        ...

    def run_post_checkpoints(
        self, output: OutputT, agent_input: InputT
    ) -> list[CheckpointResult]:
        """Diagnostic checks on the output; the input is available for reference."""
        return []

    def create_checkpoint(self, name: str, passed: bool, message: str = "") -> CheckpointResult:
        """Build a checkpoint record, logging it when it fails."""
        checkpoint = CheckpointResult(name=name, passed=passed, message=message)
        if not passed:
            logger.warning(
                f"{self.name} checkpoint failed: {name}",
                extra={"structured": {"agent": self.name, "checkpoint": name, "message": message}},
            )
        return checkpoint

    def _record_failed(self, checkpoints: list[CheckpointResult]) -> None:
        for checkpoint in checkpoints:
            if not checkpoint.passed:
                self._metrics.inc_checkpoint_failure(self.name, checkpoint.name)
