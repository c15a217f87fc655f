"""Unit tests for the base agent lifecycle."""

import pytest

from backend.drafting.agents.base import AgentMetrics, BaseAgent, short_hash
from backend.drafting.errors import CheckpointFailure, ExternalServiceError, ValidationError
from backend.drafting.models.agents import AgentResult, CheckpointResult


class RecordingMetrics(AgentMetrics):
    """Captures metric calls."""

    def __init__(self) -> None:
        self.durations: list[tuple[str, str]] = []
        self.checkpoint_failures: list[tuple[str, str]] = []

    def record_duration(self, agent: str, outcome: str, duration_ms: float) -> None:
        self.durations.append((agent, outcome))

    def inc_checkpoint_failure(self, agent: str, checkpoint: str) -> None:
        self.checkpoint_failures.append((agent, checkpoint))


class EchoAgent(BaseAgent[dict, str]):
    """Agent with configurable checkpoints and execution."""

    name = "echo"

    def __init__(
        self,
        *,
        pre: list[tuple[str, bool]] | None = None,
        post: list[tuple[str, bool]] | None = None,
        fatal: frozenset[str] = frozenset(),
        error: Exception | None = None,
        metrics: AgentMetrics | None = None,
    ) -> None:
        super().__init__(metrics=metrics)
        self.pre = pre or []
        self.post = post or []
        self.fatal_checkpoints = fatal
        self.error = error
        self.executed = 0

    def validate_input(self, agent_input: dict) -> None:
        super().validate_input(agent_input)
        if "text" not in agent_input:
            raise ValidationError("text is required", field="text")

    def run_pre_checkpoints(self, agent_input: dict) -> list[CheckpointResult]:
        return [self.create_checkpoint(name, passed) for name, passed in self.pre]

    async def execute(self, agent_input: dict) -> str:
        self.executed += 1
        if self.error is not None:
            raise self.error
        return agent_input["text"].upper()

    def run_post_checkpoints(self, output: str, agent_input: dict) -> list[CheckpointResult]:
        return [self.create_checkpoint(name, passed) for name, passed in self.post]


@pytest.mark.asyncio
async def test_successful_run_populates_result() -> None:
    agent = EchoAgent(pre=[("pre_ok", True)], post=[("post_ok", True)])

    result = await agent.run({"text": "hello"})

    assert result.success is True
    assert result.output == "HELLO"
    assert result.error is None
    assert [c.name for c in result.checkpoints] == ["pre_ok", "post_ok"]
    assert result.duration_ms >= 0
    assert result.input_hash == short_hash({"text": "hello"})
    assert result.output_hash == short_hash("HELLO")
    assert len(result.input_hash) == 16


@pytest.mark.asyncio
async def test_pre_checkpoint_accounting_with_non_fatal_failures() -> None:
    """k failed pre-checkpoints are all recorded and the run still executes."""
    agent = EchoAgent(pre=[("a", False), ("b", True), ("c", False), ("d", False)])

    result = await agent.run({"text": "x"})

    assert result.success is True
    assert agent.executed == 1
    assert len(result.pre_checkpoints) == 4
    assert [c.name for c in result.failed_checkpoints] == ["a", "c", "d"]


@pytest.mark.asyncio
async def test_fatal_pre_checkpoint_aborts_after_all_are_evaluated() -> None:
    agent = EchoAgent(pre=[("first", False), ("second", False)], fatal=frozenset({"first"}))

    result = await agent.run({"text": "x"})

    assert result.success is False
    assert agent.executed == 0
    assert isinstance(result.error, CheckpointFailure)
    assert [c.name for c in result.error.checkpoints] == ["first"]
    assert [c.name for c in result.pre_checkpoints] == ["first", "second"]


@pytest.mark.asyncio
async def test_validation_error_prevents_execution() -> None:
    agent = EchoAgent(pre=[("pre", True)])

    result = await agent.run({})

    assert result.success is False
    assert isinstance(result.error, ValidationError)
    assert result.checkpoints == []
    assert agent.executed == 0


@pytest.mark.asyncio
async def test_execute_error_is_captured_and_post_checkpoints_skipped() -> None:
    error = ExternalServiceError("boom", retriable=True)
    agent = EchoAgent(pre=[("pre", True)], post=[("post", True)], error=error)

    result = await agent.run({"text": "x"})

    assert result.success is False
    assert result.error is error
    assert [c.name for c in result.checkpoints] == ["pre"]


@pytest.mark.asyncio
async def test_post_checkpoint_error_is_captured() -> None:
    class BrokenPostAgent(EchoAgent):
        def run_post_checkpoints(self, output: str, agent_input: dict) -> list[CheckpointResult]:
            raise KeyError("missing analysis")

    metrics = RecordingMetrics()

    result = await BrokenPostAgent(metrics=metrics).run({"text": "x"})

    assert result.success is False
    assert isinstance(result.error, KeyError)
    assert result.output is None
    assert result.post_checkpoints == []
    assert metrics.durations == [("echo", "failed")]


@pytest.mark.asyncio
async def test_unwrap_reraises_original_error() -> None:
    error = ExternalServiceError("boom")
    result = await EchoAgent(error=error).run({"text": "x"})

    with pytest.raises(ExternalServiceError) as exc_info:
        result.unwrap()
    assert exc_info.value is error


def test_unwrap_without_output_raises_runtime_error() -> None:
    result: AgentResult[str] = AgentResult(agent="empty")

    with pytest.raises(RuntimeError, match="empty produced no output"):
        result.unwrap()


@pytest.mark.asyncio
async def test_metrics_record_outcome_and_failed_checkpoints() -> None:
    metrics = RecordingMetrics()
    agent = EchoAgent(pre=[("pre_bad", False)], post=[("post_bad", False)], metrics=metrics)

    await agent.run({"text": "x"})
    await EchoAgent(error=ExternalServiceError("x"), metrics=metrics).run({"text": "x"})

    assert metrics.durations == [("echo", "success"), ("echo", "failed")]
    assert metrics.checkpoint_failures == [("echo", "pre_bad"), ("echo", "post_bad")]


@pytest.mark.asyncio
async def test_failed_checkpoint_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="backend.drafting.agents.base"):
        await EchoAgent(pre=[("needs_attention", False)]).run({"text": "x"})

    assert "echo checkpoint failed: needs_attention" in caplog.text
