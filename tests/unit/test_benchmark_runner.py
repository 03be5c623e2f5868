"""Tests for the domain benchmark coordinator."""

import pytest

from engine.benchmark.models import BenchmarkState
from engine.benchmark.reporter import NullReporter, Phase
from engine.benchmark.runner import BenchmarkConfig, DomainBenchmarkRunner, run_domain_benchmark
from engine.crawler.traditional import ExtractionResult
from engine.integrity.merkle import compute_checksum
from langbench.config import Settings
from langbench.exceptions import ErrorKind, InvalidUrlError
from tests.fixtures.site import FAST_POLICY, FakeExtractor, FakeSite, article

ROOT = "https://example.com"
MANIFEST_URL = "https://example.com/.well-known/llm.json"


def make_runner(site: FakeSite, **kwargs) -> DomainBenchmarkRunner:
    config = BenchmarkConfig(concurrency=kwargs.pop("concurrency", 4), fetch_policy=FAST_POLICY)
    return DomainBenchmarkRunner(config=config, fetcher=site.fetcher(), **kwargs)


class RecordingReporter(NullReporter):
    """Keeps aborted/finished notifications."""

    def __init__(self) -> None:
        self.aborted: list[str] = []
        self.finished: list = []
        self.phases: list[Phase] = []

    def phase_started(self, phase: Phase, total: int) -> None:
        self.phases.append(phase)

    def benchmark_aborted(self, domain_root: str, error: str) -> None:
        self.aborted.append(error)

    def benchmark_finished(self, result) -> None:
        self.finished.append(result)


class BarrierExtractor:
    """Extractor that checks no module fetch is still running."""

    def __init__(self, site: FakeSite, module_count: int):
        self.site = site
        self.module_count = module_count
        self.violations = 0

    async def extract(self, url: str) -> ExtractionResult:
        module_requests = sum(1 for u in self.site.requested if "/ls/" in u)
        if self.site.in_flight or module_requests < self.module_count:
            self.violations += 1
        return ExtractionResult(records=[article(url)])


class TestBenchmarkConfig:
    """Tests for BenchmarkConfig."""

    def test_from_settings(self) -> None:
        """Settings map onto the engine configuration."""
        settings = Settings(
            benchmark_concurrency=7,
            fetch_max_attempts=2,
            fetch_timeout_seconds=3.0,
            fetch_retry_delay_seconds=0.1,
            allow_single_record_modules=True,
        )

        config = BenchmarkConfig.from_settings(settings)

        assert config.concurrency == 7
        assert config.fetch_policy.max_attempts == 2
        assert config.fetch_policy.timeout_seconds == 3.0
        assert config.fetch_policy.retry_delay_seconds == 0.1
        assert config.allow_single_record_modules

    def test_overrides(self) -> None:
        """Explicit values win; None leaves the setting."""
        settings = Settings(benchmark_concurrency=7)

        assert BenchmarkConfig.from_settings(settings, concurrency=2).concurrency == 2
        assert BenchmarkConfig.from_settings(settings, concurrency=None).concurrency == 7


class TestDomainBenchmarkRunner:
    """Benchmark scenarios end to end against a fake site."""

    @pytest.mark.asyncio
    async def test_manifest_unreachable_aborts(self, site: FakeSite) -> None:
        """Scenario A: no module or page is fetched after a manifest failure."""
        site.fail("/.well-known/llm.json")
        reporter = RecordingReporter()
        runner = make_runner(site, reporter=reporter)

        result = await runner.run(ROOT)

        assert result.is_aborted
        assert result.state == BenchmarkState.ABORTED
        assert runner.state == BenchmarkState.ABORTED
        assert result.error_kind == ErrorKind.MANIFEST_UNREACHABLE
        assert "llm.json" in result.error
        assert set(site.requested) == {MANIFEST_URL}
        assert result.pages == []
        assert result.summary is None
        assert reporter.phases == [Phase.LANGSHAKE]
        assert reporter.aborted == [result.error]
        assert reporter.finished == []

        data = result.to_dict()
        assert set(data) == {"domain_root", "error", "error_kind", "metrics"}
        assert data["metrics"]["langshake"]["errors"]["total"] == 1

    @pytest.mark.asyncio
    async def test_empty_modules_aborts(self, site: FakeSite) -> None:
        """Scenario B: an empty modules list aborts with its own message."""
        site.set_manifest([])
        runner = make_runner(site)

        result = await runner.run(ROOT)

        assert result.is_aborted
        assert result.error_kind == ErrorKind.MANIFEST_MODULES_EMPTY
        assert "modules array" in result.error and "is empty" in result.error
        assert site.requested == [MANIFEST_URL]

    @pytest.mark.asyncio
    async def test_malformed_manifest_aborts(self, site: FakeSite) -> None:
        """A manifest without modules aborts as malformed."""
        site.add_json("/.well-known/llm.json", {"version": "1.0"})
        runner = make_runner(site)

        result = await runner.run(ROOT)

        assert result.error_kind == ErrorKind.MANIFEST_MALFORMED

    @pytest.mark.asyncio
    async def test_matching_site(self, site: FakeSite) -> None:
        """Scenario C: matching records give equal roots everywhere."""
        site.publish({"/post": [article(site.url("/post"))]})
        reporter = RecordingReporter()
        runner = make_runner(site, reporter=reporter)

        result = await runner.run(ROOT)

        assert result.state == BenchmarkState.DONE
        assert not result.is_aborted
        summary = result.summary
        assert summary.all_match
        assert summary.merkle_root_langshake == summary.merkle_root_traditional
        assert summary.merkle_root_langshake == summary.merkle_root_declared
        assert summary.merkle_root_langshake_valid
        assert summary.merkle_root_traditional_valid
        assert summary.merkle_roots_match
        assert result.pages[0].url == site.url("/post")
        assert set(result.metrics) == {"langshake", "traditional"}
        assert result.metrics["langshake"].requests.total == 2
        assert result.metrics["traditional"].requests.total == 1
        assert reporter.phases == [Phase.LANGSHAKE, Phase.TRADITIONAL]
        assert reporter.finished == [result]

    @pytest.mark.asyncio
    async def test_corrupted_checksum(self, site: FakeSite) -> None:
        """Scenario D: a bad declared checksum is flagged but still compared."""
        records = [article(site.url("/post"))]
        site.add_module("/ls/post.json", records, checksum="0" * 64)
        site.add_html("/post", records)
        site.set_manifest(["/ls/post.json"], merkle_root=compute_checksum(records))
        runner = make_runner(site)

        result = await runner.run(ROOT)

        page = result.pages[0]
        assert page.langshake_checksum_valid is False
        assert page.langshake_checksum_declared == "0" * 64
        assert page.schemas_match
        summary = result.summary
        assert summary.checksum_mismatches == 1
        assert summary.merkle_root_langshake == compute_checksum(records)
        assert summary.merkle_roots_match

    @pytest.mark.asyncio
    async def test_inconsistent_subject_urls(self, site: FakeSite) -> None:
        """Scenario E: conflicting subject URLs are flagged, not merged or split."""
        records = [article(site.url("/a")), article(site.url("/b"))]
        site.add_module("/ls/mixed.json", records)
        site.set_manifest(["/ls/mixed.json"])
        runner = make_runner(site)

        result = await runner.run(ROOT)

        assert len(result.pages) == 1
        assert result.pages[0].error_kind == ErrorKind.MODULE_SUBJECT_URL_INCONSISTENT
        assert site.requests_for("/a") == 0
        assert site.requests_for("/b") == 0
        assert not result.summary.all_match

    @pytest.mark.asyncio
    async def test_partial_failure(self, site: FakeSite) -> None:
        """Failed modules and pages are flagged in place; others match."""
        site.publish({f"/p{i}": [article(site.url(f"/p{i}"))] for i in range(4)})
        site.fail("/ls/page-1.json")
        site.fail("/p3")
        runner = make_runner(site, concurrency=2)

        result = await runner.run(ROOT)

        assert result.state == BenchmarkState.DONE
        assert [p.index for p in result.pages] == [0, 1, 2, 3]
        assert result.pages[0].schemas_match
        assert result.pages[1].error_kind == ErrorKind.MODULE_FETCH_ERROR
        assert result.pages[2].schemas_match
        assert result.pages[3].error_kind == ErrorKind.PAGE_EXTRACTION_ERROR
        assert site.requests_for("/p1") == 0
        assert result.summary.pages_matched == 2
        assert result.summary.pages_failed == 2
        assert not result.summary.all_match

    @pytest.mark.asyncio
    async def test_phases_do_not_overlap(self, site: FakeSite) -> None:
        """Page extraction starts only after every module fetch settled."""
        site.publish({f"/p{i}": [article(site.url(f"/p{i}"))] for i in range(6)})
        for i in range(6):
            site.delay(f"/ls/page-{i}.json", 0.01)
        extractor = BarrierExtractor(site, module_count=6)
        runner = make_runner(site, extractor=extractor, concurrency=3)

        result = await runner.run(ROOT)

        assert extractor.violations == 0
        assert result.summary.all_match

    @pytest.mark.asyncio
    async def test_custom_extractor(self, site: FakeSite) -> None:
        """Any Extractor can stand in for the default."""
        records = [article(site.url("/post"))]
        site.add_module("/ls/post.json", records)
        site.set_manifest(["/ls/post.json"])
        extractor = FakeExtractor(pages={site.url("/post"): [{**records[0], "headline": "Other"}]})
        runner = make_runner(site, extractor=extractor)

        result = await runner.run(ROOT)

        assert extractor.calls == [site.url("/post")]
        assert not result.pages[0].schemas_match
        assert result.pages[0].diff is not None

    @pytest.mark.asyncio
    async def test_lone_surrogate_in_records(self, site: FakeSite) -> None:
        """Records carrying an unpaired surrogate escape hash and match on both sides."""
        site.publish({"/post": [article(site.url("/post"), headline="\ud800x")]})
        runner = make_runner(site)

        result = await runner.run(ROOT)

        assert result.state == BenchmarkState.DONE
        assert result.pages[0].langshake_checksum_valid
        assert result.summary.all_match
        assert result.summary.merkle_roots_match

    @pytest.mark.asyncio
    async def test_lone_surrogate_in_extracted_page(self, site: FakeSite) -> None:
        """An extracted page with an unpaired surrogate is compared, not fatal."""
        records = [article(site.url("/post"))]
        site.add_module("/ls/post.json", records)
        site.set_manifest(["/ls/post.json"])
        extractor = FakeExtractor(pages={site.url("/post"): [{**records[0], "headline": "\ud800"}]})
        runner = make_runner(site, extractor=extractor)

        result = await runner.run(ROOT)

        assert result.state == BenchmarkState.DONE
        page = result.pages[0]
        assert page.error is None
        assert not page.schemas_match
        assert page.traditional_checksum is not None
        assert not page.traditional_checksum_matches_langshake

    @pytest.mark.asyncio
    async def test_invalid_domain_root(self, site: FakeSite) -> None:
        """Bad roots are caller errors, not benchmark results."""
        runner = make_runner(site)

        with pytest.raises(InvalidUrlError):
            await runner.run("data:text/html,hi")
        with pytest.raises(ValueError):
            await runner.run("not a url")

        assert site.requested == []
        assert runner.state == BenchmarkState.INIT

    @pytest.mark.asyncio
    async def test_result_to_dict(self, site: FakeSite) -> None:
        """Completed results serialize pages, summary and both metrics."""
        site.publish({"/post": [article(site.url("/post"))]})
        runner = make_runner(site)

        data = (await runner.run(ROOT)).to_dict()

        assert data["domain_root"] == ROOT
        assert data["summary"]["all_match"] is True
        assert data["pages"][0]["comparison"]["schemas_match"] is True
        assert set(data["metrics"]) == {"langshake", "traditional"}

    @pytest.mark.asyncio
    async def test_run_domain_benchmark(self, site: FakeSite) -> None:
        """The convenience wrapper builds a runner from settings."""
        site.publish({"/post": [article(site.url("/post"))]})
        settings = Settings(fetch_retry_delay_seconds=0)

        result = await run_domain_benchmark(
            ROOT,
            concurrency=2,
            fetcher=site.fetcher(),
            settings=settings,
        )

        assert result.summary.all_match
