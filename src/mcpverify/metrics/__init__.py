"""In-process metrics for the verification engine."""

from mcpverify.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
