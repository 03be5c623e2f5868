"""Domain benchmark: coordination and cross-checking of both phases.

Use explicit imports:
    from engine.benchmark.runner import DomainBenchmarkRunner, BenchmarkConfig, run_domain_benchmark
    from engine.benchmark.comparison import compare_page, build_summary
    from engine.benchmark.models import DomainBenchmarkResult, PageResult
    from engine.benchmark.reporter import BenchmarkReporter, LoggingReporter, NullReporter
"""

import importlib
from typing import Any

_EXPORTS = {
    # Runner
    "DomainBenchmarkRunner": "engine.benchmark.runner",
    "BenchmarkConfig": "engine.benchmark.runner",
    "run_domain_benchmark": "engine.benchmark.runner",
    # Models
    "BenchmarkState": "engine.benchmark.models",
    "DomainBenchmarkResult": "engine.benchmark.models",
    "PageResult": "engine.benchmark.models",
    "ShallowDiff": "engine.benchmark.models",
    "BenchmarkSummary": "engine.benchmark.models",
    # Comparison
    "compare_page": "engine.benchmark.comparison",
    "compare_pages": "engine.benchmark.comparison",
    "build_summary": "engine.benchmark.comparison",
    # Reporter
    "Phase": "engine.benchmark.reporter",
    "BenchmarkReporter": "engine.benchmark.reporter",
    "NullReporter": "engine.benchmark.reporter",
    "LoggingReporter": "engine.benchmark.reporter",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazy import for benchmark submodules."""
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(f"module 'engine.benchmark' has no attribute '{name}'")
    return getattr(importlib.import_module(module), name)
