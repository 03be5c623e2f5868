"""Domain benchmark coordinator.

Sequences the LangShake phase, the Traditional phase and the
comparison. The phases never overlap: every module fetch (retries
included) settles before the first page extraction starts.
"""

from dataclasses import dataclass, field

import structlog

from engine.benchmark.comparison import build_summary, compare_pages
from engine.benchmark.models import BenchmarkState, DomainBenchmarkResult
from engine.benchmark.reporter import BenchmarkReporter, NullReporter, Phase
from engine.crawler.fetcher import Fetcher, FetchPolicy
from engine.crawler.langshake import ManifestCrawler
from engine.crawler.traditional import Extractor, PageTarget, TraditionalCrawler
from engine.crawler.url import validate_url
from engine.extraction.jsonld import StaticJsonLdExtractor
from langbench.config import DEFAULT_MANIFEST_PATH, Settings, get_settings
from langbench.exceptions import BenchmarkError, InvalidUrlError

logger = structlog.get_logger(__name__)


@dataclass
class BenchmarkConfig:
    """Configuration for a benchmark run."""

    concurrency: int = 4
    fetch_policy: FetchPolicy = field(default_factory=FetchPolicy)
    manifest_path: str = DEFAULT_MANIFEST_PATH
    allow_single_record_modules: bool = False
    extraction_timeout_seconds: float = 15.0
    user_agent: str = "LangShakeBench/0.1"

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "BenchmarkConfig":
        """Build engine configuration from application settings."""
        values = {
            "concurrency": settings.benchmark_concurrency,
            "fetch_policy": FetchPolicy(
                max_attempts=settings.fetch_max_attempts,
                timeout_seconds=settings.fetch_timeout_seconds,
                retry_delay_seconds=settings.fetch_retry_delay_seconds,
            ),
            "manifest_path": settings.manifest_path,
            "allow_single_record_modules": settings.allow_single_record_modules,
            "extraction_timeout_seconds": settings.extraction_timeout_seconds,
            "user_agent": settings.user_agent,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class DomainBenchmarkRunner:
    """Runs the full benchmark for one domain root."""

    def __init__(
        self,
        config: BenchmarkConfig | None = None,
        fetcher: Fetcher | None = None,
        extractor: Extractor | None = None,
        reporter: BenchmarkReporter | None = None,
    ):
        self.config = config or BenchmarkConfig()
        if self.config.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetcher = fetcher or Fetcher(
            policy=self.config.fetch_policy,
            user_agent=self.config.user_agent,
        )
        self.extractor = extractor or StaticJsonLdExtractor(
            self.fetcher,
            timeout_seconds=self.config.extraction_timeout_seconds,
        )
        self.reporter = reporter or NullReporter()
        self.state = BenchmarkState.INIT

    def _transition(self, state: BenchmarkState) -> None:
        logger.debug("benchmark_state", previous=self.state.value, state=state.value)
        self.state = state

    async def run(self, domain_root: str) -> DomainBenchmarkResult:
        """
        Benchmark a domain.

        Args:
            domain_root: Root URL of the domain (e.g. https://example.com)

        Returns:
            A fully populated result, or an error-tagged one if the
            manifest could not be used

        Raises:
            InvalidUrlError: domain_root is not a benchmarkable URL
        """
        validation = validate_url(domain_root)
        if not validation.is_valid:
            raise InvalidUrlError(str(domain_root), validation.error or "invalid url")
        domain_root = domain_root.strip()

        with structlog.contextvars.bound_contextvars(domain_root=domain_root):
            return await self._run(domain_root)

    async def _run(self, domain_root: str) -> DomainBenchmarkResult:
        self.state = BenchmarkState.INIT
        logger.info("benchmark_started", concurrency=self.config.concurrency)

        # Phase 1: LangShake
        langshake = ManifestCrawler(
            self.fetcher,
            concurrency=self.config.concurrency,
            manifest_path=self.config.manifest_path,
            allow_single_record_modules=self.config.allow_single_record_modules,
            reporter=self.reporter,
        )

        self._transition(BenchmarkState.FETCH_MANIFEST)
        try:
            manifest = await langshake.fetch_manifest(domain_root)
        except BenchmarkError as e:
            self._transition(BenchmarkState.ABORTED)
            self.reporter.benchmark_aborted(domain_root, e.message)
            return DomainBenchmarkResult(
                domain_root=domain_root,
                state=BenchmarkState.ABORTED,
                metrics={Phase.LANGSHAKE.value: langshake.metrics.snapshot()},
                error=e.message,
                error_kind=e.kind,
            )

        self._transition(BenchmarkState.CRAWL_MODULES)
        langshake_phase = await langshake.crawl_modules(manifest, domain_root)
        self._transition(BenchmarkState.CRAWL_MODULES_DONE)

        # Phase 2: Traditional, only for modules that name their page
        targets = [
            PageTarget(index=m.index, url=m.canonical_subject_url)
            for m in langshake_phase.modules
            if m.usable and m.canonical_subject_url
        ]
        self._transition(BenchmarkState.CRAWL_TRADITIONAL)
        traditional = TraditionalCrawler(
            self.extractor,
            concurrency=self.config.concurrency,
            reporter=self.reporter,
        )
        traditional_phase = await traditional.crawl(targets)

        self._transition(BenchmarkState.COMPARE)
        pages = compare_pages(langshake_phase.modules, traditional_phase)
        summary = build_summary(pages, manifest.declared_merkle_root)

        self._transition(BenchmarkState.DONE)
        result = DomainBenchmarkResult(
            domain_root=domain_root,
            state=BenchmarkState.DONE,
            pages=pages,
            summary=summary,
            metrics={
                Phase.LANGSHAKE.value: langshake_phase.metrics,
                Phase.TRADITIONAL.value: traditional_phase.metrics,
            },
        )
        self.reporter.benchmark_finished(result)
        return result


async def run_domain_benchmark(
    domain_root: str,
    concurrency: int | None = None,
    *,
    reporter: BenchmarkReporter | None = None,
    extractor: Extractor | None = None,
    fetcher: Fetcher | None = None,
    settings: Settings | None = None,
    **options,
) -> DomainBenchmarkResult:
    """
    Convenience function to benchmark a domain with configured defaults.

    Args:
        domain_root: Root URL of the domain
        concurrency: Override for the configured concurrency limit
        reporter: Optional progress reporter
        extractor: Optional Traditional-phase extractor
        fetcher: Optional fetcher for manifest and module requests
        settings: Settings to use instead of the environment
        **options: Overrides for any other BenchmarkConfig field

    Returns:
        DomainBenchmarkResult
    """
    config = BenchmarkConfig.from_settings(
        settings or get_settings(),
        concurrency=concurrency,
        **options,
    )
    runner = DomainBenchmarkRunner(
        config=config,
        fetcher=fetcher,
        extractor=extractor,
        reporter=reporter,
    )
    return await runner.run(domain_root)
