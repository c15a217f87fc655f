"""Prometheus metrics for agents, workers, and pipeline runs."""

from prometheus_client import Counter, Histogram

agent_duration_ms = Histogram(
    "agent_duration_ms",
    "Agent run duration in milliseconds",
    ["agent", "outcome"],
    buckets=[10, 50, 100, 500, 1000, 2500, 5000, 10000, 30000, 60000],
)

agent_checkpoint_failures_total = Counter(
    "agent_checkpoint_failures_total",
    "Total failed agent checkpoints",
    ["agent", "checkpoint"],
)

worker_attempts_total = Counter(
    "worker_attempts_total",
    "Total drafting worker attempts",
    ["outcome"],
)

pipeline_runs_total = Counter(
    "pipeline_runs_total",
    "Total pipeline runs",
    ["mode", "outcome"],
)


class PrometheusAgentMetrics:
    """Prometheus-based agent metrics implementation."""

    def record_duration(self, agent: str, outcome: str, duration_ms: float) -> None:
        """Record agent run duration."""
        agent_duration_ms.labels(agent=agent, outcome=outcome).observe(duration_ms)

    def inc_checkpoint_failure(self, agent: str, checkpoint: str) -> None:
        """Increment failed checkpoint counter."""
        agent_checkpoint_failures_total.labels(agent=agent, checkpoint=checkpoint).inc()


class PrometheusWorkerMetrics:
    """Prometheus-based worker metrics implementation."""

    def inc_attempt(self, outcome: str) -> None:
        """Increment worker attempt counter."""
        worker_attempts_total.labels(outcome=outcome).inc()


def record_pipeline_run(mode: str, outcome: str) -> None:
    """Count a finished pipeline run."""
    pipeline_runs_total.labels(mode=mode, outcome=outcome).inc()
