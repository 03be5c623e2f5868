"""Progress reporting hooks for benchmark runs.

Core logic never checks whether it runs in a terminal or under test;
callers that want progress output inject a reporter.
"""

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import structlog

from engine.metrics.collector import MetricsSnapshot

if TYPE_CHECKING:
    from engine.benchmark.models import DomainBenchmarkResult

logger = structlog.get_logger(__name__)


class Phase(StrEnum):
    """The two crawl phases."""

    LANGSHAKE = "langshake"
    TRADITIONAL = "traditional"


class BenchmarkReporter(Protocol):
    """Observer called on phase and item transitions."""

    def phase_started(self, phase: Phase, total: int) -> None: ...

    def item_finished(self, phase: Phase, index: int, url: str | None, ok: bool) -> None: ...

    def phase_finished(self, phase: Phase, snapshot: MetricsSnapshot) -> None: ...

    def benchmark_aborted(self, domain_root: str, error: str) -> None: ...

    def benchmark_finished(self, result: "DomainBenchmarkResult") -> None: ...


class NullReporter:
    """Reports nothing."""

    def phase_started(self, phase: Phase, total: int) -> None:
        pass

    def item_finished(self, phase: Phase, index: int, url: str | None, ok: bool) -> None:
        pass

    def phase_finished(self, phase: Phase, snapshot: MetricsSnapshot) -> None:
        pass

    def benchmark_aborted(self, domain_root: str, error: str) -> None:
        pass

    def benchmark_finished(self, result: "DomainBenchmarkResult") -> None:
        pass


class LoggingReporter:
    """Reports progress as structured log events."""

    def __init__(self) -> None:
        self._totals: dict[Phase, int] = {}
        self._completed: dict[Phase, int] = {}

    def phase_started(self, phase: Phase, total: int) -> None:
        self._totals[phase] = total
        self._completed[phase] = 0
        logger.info("phase_started", phase=phase.value, total=total)

    def item_finished(self, phase: Phase, index: int, url: str | None, ok: bool) -> None:
        self._completed[phase] = self._completed.get(phase, 0) + 1
        logger.info(
            "item_finished",
            phase=phase.value,
            index=index,
            url=url,
            ok=ok,
            progress=f"{self._completed[phase]}/{self._totals.get(phase, '?')}",
        )

    def phase_finished(self, phase: Phase, snapshot: MetricsSnapshot) -> None:
        logger.info(
            "phase_finished",
            phase=phase.value,
            duration_ms=round(snapshot.timing.duration_ms or 0, 1),
            requests=snapshot.requests.total,
            errors=snapshot.error_count,
        )

    def benchmark_aborted(self, domain_root: str, error: str) -> None:
        logger.warning("benchmark_aborted", domain_root=domain_root, error=error)

    def benchmark_finished(self, result: "DomainBenchmarkResult") -> None:
        summary = result.summary
        logger.info(
            "benchmark_finished",
            domain_root=result.domain_root,
            total_pages=summary.total_pages if summary else 0,
            all_match=summary.all_match if summary else False,
            merkle_roots_match=summary.merkle_roots_match if summary else False,
        )
