"""Per-phase resource metrics for crawl benchmarking."""

from engine.metrics.collector import ErrorRecord, MetricsCollector, MetricsSnapshot, RequestRecord
from engine.metrics.formatting import compare_phase_metrics, format_phase_metrics

__all__ = [
    "MetricsCollector",
    "MetricsSnapshot",
    "RequestRecord",
    "ErrorRecord",
    "format_phase_metrics",
    "compare_phase_metrics",
]
