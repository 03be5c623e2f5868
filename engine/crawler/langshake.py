"""Manifest-driven crawl (the LangShake phase).

Fetches the well-known manifest, then fetches and validates every
module it lists under a concurrency limit. Results are index-aligned
with the manifest regardless of completion order.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from engine.benchmark.reporter import BenchmarkReporter, NullReporter, Phase
from engine.crawler.fetcher import Fetcher
from engine.crawler.modules import ModuleResult, ModuleValidator
from engine.crawler.url import manifest_url
from engine.integrity.merkle import compute_merkle_root
from engine.metrics.collector import MetricsCollector, MetricsSnapshot
from langbench.config import DEFAULT_MANIFEST_PATH
from langbench.exceptions import (
    BenchmarkError,
    ErrorKind,
    ManifestMalformedError,
    ManifestModulesEmptyError,
    ManifestUnreachableError,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Manifest:
    """The domain-level descriptor."""

    url: str
    modules: list[Any]  # Path strings; anything else fails its own slot
    declared_merkle_root: str | None = None


def parse_manifest(payload: Any, url: str) -> Manifest:
    """
    Validate a decoded manifest document.

    Raises:
        ManifestMalformedError: modules missing or not a list
        ManifestModulesEmptyError: modules present but empty
    """
    if not isinstance(payload, dict):
        raise ManifestMalformedError(url, "manifest is not a JSON object")

    modules = payload.get("modules")
    if not isinstance(modules, list):
        raise ManifestMalformedError(url)
    if not modules:
        raise ManifestModulesEmptyError(url)

    verification = payload.get("verification")
    declared_root = None
    if isinstance(verification, dict) and isinstance(verification.get("merkleRoot"), str):
        declared_root = verification["merkleRoot"] or None

    return Manifest(url=url, modules=list(modules), declared_merkle_root=declared_root)


@dataclass(frozen=True)
class LangshakePhaseResult:
    """Output of the manifest-driven phase."""

    manifest: Manifest
    modules: list[ModuleResult]
    merkle_root: str
    metrics: MetricsSnapshot

    @property
    def usable_modules(self) -> list[ModuleResult]:
        return [m for m in self.modules if m.usable]

    @property
    def failed_count(self) -> int:
        return sum(1 for m in self.modules if not m.usable)

    @property
    def merkle_root_valid(self) -> bool:
        """Computed module root equals the manifest's declared root."""
        return bool(self.merkle_root) and self.merkle_root == self.manifest.declared_merkle_root


class ManifestCrawler:
    """Runs the LangShake phase for one domain."""

    def __init__(
        self,
        fetcher: Fetcher,
        concurrency: int = 4,
        manifest_path: str = DEFAULT_MANIFEST_PATH,
        allow_single_record_modules: bool = False,
        reporter: BenchmarkReporter | None = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetcher = fetcher
        self.concurrency = concurrency
        self.manifest_path = manifest_path
        self.reporter = reporter or NullReporter()
        self.metrics = MetricsCollector(phase=Phase.LANGSHAKE.value)
        self.validator = ModuleValidator(
            fetcher,
            metrics=self.metrics,
            allow_single_record_modules=allow_single_record_modules,
        )

    async def fetch_manifest(self, domain_root: str) -> Manifest:
        """
        Fetch and parse the manifest; starts the phase metrics.

        The manifest request is counted as the phase's first request. On
        failure the phase metrics are finalized, the reporter sees a
        one-item phase whose item 0 failed, and the error propagates.

        Raises:
            ManifestUnreachableError, ManifestMalformedError, ManifestModulesEmptyError
        """
        url = manifest_url(domain_root, self.manifest_path)
        self.metrics.start()

        try:
            try:
                response = await self.fetcher.get(url)
            except BenchmarkError as e:
                raise ManifestUnreachableError(url, e.message) from e

            self.metrics.record_request(
                url=url,
                method="GET",
                start_time=response.started_at,
                end_time=response.ended_at,
                bytes_downloaded=response.bytes_downloaded,
                bytes_uploaded=0,
                status_code=response.status_code,
            )

            try:
                payload = response.json()
            except ValueError as e:
                raise ManifestMalformedError(url, "manifest is not valid JSON") from e

            manifest = parse_manifest(payload, url)
        except BenchmarkError as e:
            self.metrics.record_error(url, e.message)
            self.metrics.finalize()
            logger.warning("manifest_rejected", url=url, kind=e.kind.value, error=e.message)
            # Item 0 is the manifest; the phase ends with it
            self.reporter.phase_started(Phase.LANGSHAKE, 1)
            self.reporter.item_finished(Phase.LANGSHAKE, 0, url, False)
            self.reporter.phase_finished(Phase.LANGSHAKE, self.metrics.snapshot())
            raise

        logger.info(
            "manifest_fetched",
            url=url,
            modules=len(manifest.modules),
            declared_merkle_root=manifest.declared_merkle_root,
        )
        return manifest

    async def crawl_modules(self, manifest: Manifest, domain_root: str) -> LangshakePhaseResult:
        """
        Validate every module of an accepted manifest.

        Args:
            manifest: Manifest returned by fetch_manifest
            domain_root: Root the module paths resolve against

        Returns:
            LangshakePhaseResult with one slot per manifest entry
        """
        total = len(manifest.modules)
        self.reporter.phase_started(Phase.LANGSHAKE, total + 1)
        self.reporter.item_finished(Phase.LANGSHAKE, 0, manifest.url, True)

        slots: list[ModuleResult | None] = [None] * total
        semaphore = asyncio.Semaphore(self.concurrency)
        in_flight = 0

        async def process_module(index: int, path: Any) -> None:
            nonlocal in_flight
            async with semaphore:
                in_flight += 1
                self.metrics.update_concurrency(in_flight)
                try:
                    result = await self.validator.validate(index, path, domain_root)
                finally:
                    in_flight -= 1
                    self.metrics.update_concurrency(in_flight)
            slots[index] = result
            self.reporter.item_finished(Phase.LANGSHAKE, index + 1, result.url, result.usable)

        tasks = [process_module(i, path) for i, path in enumerate(manifest.modules)]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException) and slots[index] is None:
                # Unexpected failure inside one task; keep it in its own slot
                logger.error("module_task_failed", index=index, error=str(outcome))
                path = manifest.modules[index]
                self.metrics.record_error(str(path), outcome)
                slots[index] = ModuleResult(
                    index=index,
                    path=str(path),
                    url=None,
                    error_kind=ErrorKind.MODULE_FETCH_ERROR,
                    error=str(outcome) or type(outcome).__name__,
                )
                self.reporter.item_finished(Phase.LANGSHAKE, index + 1, None, False)

        modules = [slot for slot in slots if slot is not None]
        merkle_root = compute_merkle_root(m.computed_checksum for m in modules if m.computed_checksum)

        self.metrics.finalize()
        snapshot = self.metrics.snapshot()
        self.reporter.phase_finished(Phase.LANGSHAKE, snapshot)

        result = LangshakePhaseResult(
            manifest=manifest,
            modules=modules,
            merkle_root=merkle_root,
            metrics=snapshot,
        )

        logger.info(
            "langshake_phase_completed",
            modules=total,
            failed=result.failed_count,
            checksum_mismatches=sum(1 for m in modules if m.usable and not m.checksum_valid),
            merkle_root=merkle_root,
            merkle_root_valid=result.merkle_root_valid,
        )
        return result

    async def run(self, domain_root: str) -> LangshakePhaseResult:
        """Fetch the manifest and crawl its modules."""
        manifest = await self.fetch_manifest(domain_root)
        return await self.crawl_modules(manifest, domain_root)
