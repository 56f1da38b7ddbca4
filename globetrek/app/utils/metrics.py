"""Prometheus metrics for the assembly pipeline and storage."""

from prometheus_client import Counter, Histogram

# Pipeline stage metrics
pipeline_stage_latency_ms = Histogram(
    "pipeline_stage_latency_ms",
    "Facet or image stage latency in milliseconds",
    ["stage", "outcome"],
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

pipeline_stage_failures_total = Counter(
    "pipeline_stage_failures_total",
    "Total pipeline stages that settled without data",
    ["stage", "reason"],
)

storage_write_failures_total = Counter(
    "storage_write_failures_total",
    "Total failed writes to the key-value store",
    ["key_kind"],
)


class PipelineMetrics:
    """Interface for pipeline metrics (no-op)."""

    def record_latency(self, stage: str, outcome: str, latency_ms: float) -> None:
        """Record stage latency."""
        pass

    def inc_failure(self, stage: str, reason: str) -> None:
        """Increment stage failure counter."""
        pass

    def inc_storage_failure(self, key_kind: str) -> None:
        """Increment storage write failure counter."""
        pass


class PrometheusPipelineMetrics(PipelineMetrics):
    """Prometheus-based pipeline metrics implementation."""

    def record_latency(self, stage: str, outcome: str, latency_ms: float) -> None:
        pipeline_stage_latency_ms.labels(stage=stage, outcome=outcome).observe(latency_ms)

    def inc_failure(self, stage: str, reason: str) -> None:
        pipeline_stage_failures_total.labels(stage=stage, reason=reason).inc()

    def inc_storage_failure(self, key_kind: str) -> None:
        storage_write_failures_total.labels(key_kind=key_kind).inc()
