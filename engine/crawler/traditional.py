"""Reference crawl (the Traditional phase).

Extracts structured data from each canonical page with an external
extractor, under the same bounded concurrency as the LangShake phase.
One page failing never affects its siblings.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from engine.benchmark.reporter import BenchmarkReporter, NullReporter, Phase
from engine.integrity.merkle import CHECKSUM_FIELD
from engine.metrics.collector import MetricsCollector, MetricsSnapshot
from langbench.exceptions import BenchmarkError, ErrorKind

logger = structlog.get_logger(__name__)


@dataclass
class ExtractionResult:
    """Structured records found on a page."""

    records: list[dict[str, Any]]
    bytes_downloaded: int = 0
    status_code: int = 200


class Extractor(Protocol):
    """Page URL in, structured records out. Raises on failure."""

    async def extract(self, url: str) -> ExtractionResult: ...


@dataclass(frozen=True)
class PageTarget:
    """A page to extract, keyed by its module index."""

    index: int
    url: str


@dataclass(frozen=True)
class TraditionalPage:
    """Outcome of extracting one page."""

    index: int
    url: str
    records: list[dict[str, Any]] | None = None
    bytes_downloaded: int = 0
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def usable(self) -> bool:
        return self.records is not None


@dataclass(frozen=True)
class TraditionalPhaseResult:
    """Output of the Traditional phase."""

    pages: list[TraditionalPage]
    metrics: MetricsSnapshot
    _by_index: dict[int, TraditionalPage] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_index.update({page.index: page for page in self.pages})

    def page_for(self, index: int) -> TraditionalPage | None:
        """Page extracted for the module at ``index``, if one was attempted."""
        return self._by_index.get(index)

    @property
    def failed_count(self) -> int:
        return sum(1 for p in self.pages if not p.usable)


def strip_checksum_trailer(records: list[Any]) -> list[Any]:
    """Drop a trailing ``{"checksum": ...}`` object if an extractor returned one."""
    if records and isinstance(records[-1], dict) and CHECKSUM_FIELD in records[-1]:
        return records[:-1]
    return records


class TraditionalCrawler:
    """Runs the Traditional phase over a list of canonical page URLs."""

    def __init__(
        self,
        extractor: Extractor,
        concurrency: int = 4,
        reporter: BenchmarkReporter | None = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.extractor = extractor
        self.concurrency = concurrency
        self.reporter = reporter or NullReporter()
        self.metrics = MetricsCollector(phase=Phase.TRADITIONAL.value)

    async def _extract(self, target: PageTarget) -> TraditionalPage:
        start = time.time()
        try:
            extracted = await self.extractor.extract(target.url)
        except BenchmarkError as e:
            error_kind, error, cause = e.kind, e.message, e
        except Exception as e:
            error_kind = ErrorKind.PAGE_EXTRACTION_ERROR
            error = f"Failed to extract structured data from {target.url}: {e}"
            cause = e
        else:
            end = time.time()
            self.metrics.record_request(
                url=target.url,
                method="GET",
                start_time=start,
                end_time=end,
                bytes_downloaded=extracted.bytes_downloaded,
                bytes_uploaded=0,
                status_code=extracted.status_code,
            )
            records = strip_checksum_trailer(list(extracted.records or []))
            logger.debug(
                "page_extracted",
                url=target.url,
                records=len(records),
                elapsed_ms=round((end - start) * 1000, 1),
            )
            return TraditionalPage(
                index=target.index,
                url=target.url,
                records=records,
                bytes_downloaded=extracted.bytes_downloaded,
            )

        logger.warning("page_extraction_failed", url=target.url, kind=error_kind.value, error=error)
        self.metrics.record_error(target.url, cause)
        return TraditionalPage(
            index=target.index,
            url=target.url,
            error_kind=error_kind,
            error=error,
        )

    async def crawl(self, targets: list[PageTarget]) -> TraditionalPhaseResult:
        """
        Extract every target page.

        Args:
            targets: Pages to extract, in module order

        Returns:
            TraditionalPhaseResult with one page per target, in target order
        """
        self.metrics.start()
        self.reporter.phase_started(Phase.TRADITIONAL, len(targets))

        slots: list[TraditionalPage | None] = [None] * len(targets)
        semaphore = asyncio.Semaphore(self.concurrency)
        in_flight = 0

        async def process_page(position: int, target: PageTarget) -> None:
            nonlocal in_flight
            async with semaphore:
                in_flight += 1
                self.metrics.update_concurrency(in_flight)
                try:
                    page = await self._extract(target)
                finally:
                    in_flight -= 1
                    self.metrics.update_concurrency(in_flight)
            slots[position] = page
            self.reporter.item_finished(Phase.TRADITIONAL, position, target.url, page.usable)

        await asyncio.gather(*(process_page(i, t) for i, t in enumerate(targets)))

        self.metrics.finalize()
        snapshot = self.metrics.snapshot()
        self.reporter.phase_finished(Phase.TRADITIONAL, snapshot)

        pages = [slot for slot in slots if slot is not None]
        result = TraditionalPhaseResult(pages=pages, metrics=snapshot)
        logger.info(
            "traditional_phase_completed",
            pages=len(pages),
            failed=result.failed_count,
        )
        return result
