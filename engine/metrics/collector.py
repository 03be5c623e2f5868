"""Metrics collection for one crawl phase.

A collector is shared by every concurrent task of a phase, so all
mutation goes through one lock. It is scoped to exactly one phase:
calling start() a second time raises.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any

import psutil
import structlog

logger = structlog.get_logger(__name__)


def _stringify_error(error: BaseException | str | None) -> str:
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__


@dataclass(frozen=True)
class RequestRecord:
    """A single timed request."""

    url: str
    method: str
    start_time: float  # epoch seconds
    end_time: float
    bytes_downloaded: int
    bytes_uploaded: int
    status_code: int

    @property
    def duration_ms(self) -> float:
        return (self.end_time - self.start_time) * 1000

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "method": self.method,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "bytes_downloaded": self.bytes_downloaded,
            "bytes_uploaded": self.bytes_uploaded,
            "status_code": self.status_code,
        }


@dataclass(frozen=True)
class ErrorRecord:
    """A timestamped error."""

    url: str
    error: str
    time: float

    def to_dict(self) -> dict:
        return {"url": self.url, "error": self.error, "time": self.time}


@dataclass(frozen=True)
class TimingStats:
    start: float | None
    end: float | None
    duration_ms: float | None


@dataclass(frozen=True)
class CpuStats:
    user_micros: int
    system_micros: int

    @property
    def total_micros(self) -> int:
        return self.user_micros + self.system_micros


@dataclass(frozen=True)
class MemoryStats:
    start_rss: int | None
    end_rss: int | None
    peak_rss: int


@dataclass(frozen=True)
class RequestStats:
    total: int
    status_codes: dict[int, int]
    avg_request_time_ms: float | None
    rps: float | None
    total_bytes_downloaded: int
    total_bytes_uploaded: int


@dataclass(frozen=True)
class MetricsSnapshot:
    """Immutable summary of one phase."""

    timing: TimingStats
    cpu: CpuStats
    memory: MemoryStats
    requests: RequestStats
    errors: tuple[ErrorRecord, ...]
    disk_bytes: int
    max_concurrency: int

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timing": {
                "start": self.timing.start,
                "end": self.timing.end,
                "duration_ms": self.timing.duration_ms,
            },
            "cpu": {
                "user_micros": self.cpu.user_micros,
                "system_micros": self.cpu.system_micros,
            },
            "memory": {
                "start_rss": self.memory.start_rss,
                "end_rss": self.memory.end_rss,
                "peak_rss": self.memory.peak_rss,
            },
            "requests": {
                "total": self.requests.total,
                "status_codes": {str(k): v for k, v in self.requests.status_codes.items()},
                "avg_request_time_ms": self.requests.avg_request_time_ms,
                "rps": self.requests.rps,
                "total_bytes_downloaded": self.requests.total_bytes_downloaded,
                "total_bytes_uploaded": self.requests.total_bytes_uploaded,
            },
            "errors": {
                "total": self.error_count,
                "details": [e.to_dict() for e in self.errors],
            },
            "disk": {"total_bytes": self.disk_bytes},
            "concurrency": {"max": self.max_concurrency},
        }


class MetricsCollector:
    """Collects timing, CPU, memory, request and error metrics for a phase."""

    def __init__(self, phase: str = "", process: psutil.Process | None = None):
        self.phase = phase
        self._process = process or psutil.Process()
        self._lock = threading.Lock()

        # Timing
        self.start_time: float | None = None
        self.end_time: float | None = None

        # Resource usage
        self.start_rss: int | None = None
        self.end_rss: int | None = None
        self.peak_rss = 0
        self._start_cpu: Any = None
        self.cpu_user_micros = 0
        self.cpu_system_micros = 0

        # Requests
        self.requests: list[RequestRecord] = []
        self.total_bytes_downloaded = 0
        self.total_bytes_uploaded = 0
        self.status_codes: dict[int, int] = {}

        self.errors: list[ErrorRecord] = []
        self.disk_usage = 0

        # Concurrency
        self.current_concurrency = 0
        self.max_concurrency = 0

    @property
    def started(self) -> bool:
        return self.start_time is not None

    @property
    def finalized(self) -> bool:
        return self.end_time is not None

    def _rss(self) -> int:
        return int(self._process.memory_info().rss)

    def _sample_peak(self) -> None:
        rss = self._rss()
        if rss > self.peak_rss:
            self.peak_rss = rss

    def start(self) -> None:
        """Capture baseline wall clock, memory and CPU counters."""
        with self._lock:
            if self.start_time is not None:
                raise RuntimeError(f"MetricsCollector for phase {self.phase!r} was already started")
            self.start_time = time.time()
            self.start_rss = self._rss()
            self.peak_rss = self.start_rss
            self._start_cpu = self._process.cpu_times()

    def record_request(
        self,
        url: str,
        method: str,
        start_time: float,
        end_time: float,
        bytes_downloaded: int = 0,
        bytes_uploaded: int = 0,
        status_code: int = 200,
    ) -> None:
        """Record one completed request/response."""
        record = RequestRecord(
            url=url,
            method=method,
            start_time=start_time,
            end_time=end_time,
            bytes_downloaded=bytes_downloaded or 0,
            bytes_uploaded=bytes_uploaded or 0,
            status_code=status_code,
        )
        with self._lock:
            self.requests.append(record)
            self.total_bytes_downloaded += record.bytes_downloaded
            self.total_bytes_uploaded += record.bytes_uploaded
            self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1
            self._sample_peak()

    def record_error(self, url: str, error: BaseException | str | None) -> None:
        """Record an error event with a stringified cause."""
        with self._lock:
            self.errors.append(ErrorRecord(url=url, error=_stringify_error(error), time=time.time()))

    def record_disk_usage(self, num_bytes: int) -> None:
        """
        Add bytes written to disk during the phase.

        Caller-supplied: the crawlers keep everything in memory and never
        call this, so ``disk_bytes`` stays 0 unless an embedding caller
        records its own writes before the snapshot.
        """
        with self._lock:
            self.disk_usage += num_bytes

    def update_concurrency(self, current: int) -> None:
        """Set the in-flight count and track its running maximum."""
        with self._lock:
            self.current_concurrency = current
            if current > self.max_concurrency:
                self.max_concurrency = current

    def finalize(self) -> None:
        """Capture end-of-phase time, memory and CPU deltas."""
        with self._lock:
            self.end_time = time.time()
            self.end_rss = self._rss()
            if self.end_rss > self.peak_rss:
                self.peak_rss = self.end_rss
            end_cpu = self._process.cpu_times()
            if self._start_cpu is not None:
                self.cpu_user_micros = int(round((end_cpu.user - self._start_cpu.user) * 1_000_000))
                self.cpu_system_micros = int(
                    round((end_cpu.system - self._start_cpu.system) * 1_000_000)
                )

        logger.debug(
            "metrics_finalized",
            phase=self.phase,
            requests=len(self.requests),
            errors=len(self.errors),
            max_concurrency=self.max_concurrency,
        )

    def snapshot(self) -> MetricsSnapshot:
        """Immutable summary; derived values are computed at read time."""
        with self._lock:
            duration_ms = None
            if self.start_time is not None and self.end_time is not None:
                duration_ms = (self.end_time - self.start_time) * 1000

            request_times = [r.duration_ms for r in self.requests]
            avg_request_time = sum(request_times) / len(request_times) if request_times else None
            rps = None
            if duration_ms and self.requests:
                rps = len(self.requests) / (duration_ms / 1000)

            return MetricsSnapshot(
                timing=TimingStats(
                    start=self.start_time,
                    end=self.end_time,
                    duration_ms=duration_ms,
                ),
                cpu=CpuStats(
                    user_micros=self.cpu_user_micros,
                    system_micros=self.cpu_system_micros,
                ),
                memory=MemoryStats(
                    start_rss=self.start_rss,
                    end_rss=self.end_rss,
                    peak_rss=self.peak_rss,
                ),
                requests=RequestStats(
                    total=len(self.requests),
                    status_codes=dict(self.status_codes),
                    avg_request_time_ms=avg_request_time,
                    rps=rps,
                    total_bytes_downloaded=self.total_bytes_downloaded,
                    total_bytes_uploaded=self.total_bytes_uploaded,
                ),
                errors=tuple(self.errors),
                disk_bytes=self.disk_usage,
                max_concurrency=self.max_concurrency,
            )
