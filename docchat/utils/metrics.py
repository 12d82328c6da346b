"""Prometheus metrics for document lifecycle and chat."""

from prometheus_client import Counter, Histogram

questions_total = Counter(
    "questions_total",
    "Total questions by outcome",
    ["outcome"],
)

completion_latency_ms = Histogram(
    "completion_latency_ms",
    "Completion service latency in milliseconds",
    ["outcome"],
    buckets=[100, 250, 500, 1000, 2000, 4000, 8000, 16000, 32000],
)

document_transitions_total = Counter(
    "document_transitions_total",
    "Total document lifecycle transitions",
    ["status"],
)

deletion_step_failures_total = Counter(
    "deletion_step_failures_total",
    "Total failed document deletion steps",
    ["step"],
)

upstream_errors_total = Counter(
    "upstream_errors_total",
    "Total external collaborator failures",
    ["store"],
)


class PrometheusChatMetrics:
    """Prometheus-based metrics implementation."""

    def inc_question(self, outcome: str) -> None:
        """Increment question counter."""
        questions_total.labels(outcome=outcome).inc()

    def record_completion_latency(self, outcome: str, latency_ms: float) -> None:
        """Record completion latency."""
        completion_latency_ms.labels(outcome=outcome).observe(latency_ms)

    def inc_transition(self, status: str) -> None:
        """Increment lifecycle transition counter."""
        document_transitions_total.labels(status=status).inc()

    def inc_deletion_failure(self, step: str) -> None:
        """Increment deletion failure counter."""
        deletion_step_failures_total.labels(step=step).inc()

    def inc_upstream_error(self, store: str) -> None:
        """Increment upstream failure counter."""
        upstream_errors_total.labels(store=store).inc()
