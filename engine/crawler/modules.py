"""Fetching and validation of manifest-referenced modules."""

from dataclasses import dataclass, field
from typing import Any

import structlog

from engine.crawler.fetcher import Fetcher
from engine.crawler.url import resolve_module_url
from engine.integrity.merkle import CHECKSUM_FIELD, compute_checksum
from engine.metrics.collector import MetricsCollector
from langbench.exceptions import (
    BenchmarkError,
    ErrorKind,
    ModuleStructureError,
    ModuleSubjectUrlError,
)

logger = structlog.get_logger(__name__)

SUBJECT_URL_FIELDS = ("url", "og:url")


@dataclass(frozen=True)
class ArrayForm:
    """Records followed by a ``{"checksum": ...}`` trailer."""

    records: list[dict[str, Any]]
    checksum: str


@dataclass(frozen=True)
class SingleRecordForm:
    """A bare record object, optionally carrying its own checksum field."""

    record: dict[str, Any]
    checksum: str | None


ModulePayload = ArrayForm | SingleRecordForm


def parse_module_payload(payload: Any, url: str | None = None) -> ModulePayload:
    """
    Resolve a module document into one of its two forms.

    Raises:
        ModuleStructureError: payload is neither form
    """
    if isinstance(payload, dict):
        checksum = payload.get(CHECKSUM_FIELD)
        record = {k: v for k, v in payload.items() if k != CHECKSUM_FIELD}
        return SingleRecordForm(record=record, checksum=checksum if isinstance(checksum, str) else None)

    if not isinstance(payload, list):
        raise ModuleStructureError(
            f"Module {url} is not a valid array with checksum (got {type(payload).__name__}).",
            url=url,
        )
    if len(payload) < 2:
        raise ModuleStructureError(
            f"Module {url} is not a valid array with checksum (needs at least one record "
            "and a checksum object).",
            url=url,
        )

    trailer = payload[-1]
    if (
        not isinstance(trailer, dict)
        or set(trailer) != {CHECKSUM_FIELD}
        or not isinstance(trailer[CHECKSUM_FIELD], str)
    ):
        raise ModuleStructureError(f"Module {url} missing checksum object.", url=url)

    records = payload[:-1]
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise ModuleStructureError(
                f"Module {url} record {position} is not an object "
                f"(got {type(record).__name__}).",
                url=url,
            )

    return ArrayForm(records=records, checksum=trailer[CHECKSUM_FIELD])


def record_subject_url(record: dict[str, Any], module_url: str | None = None) -> str | None:
    """
    The URL a record describes: ``url``, else ``og:url``.

    A record that carries both with different values is ambiguous and
    is refused rather than resolved by precedence.
    """
    values = [record.get(name) for name in SUBJECT_URL_FIELDS]
    present = [v for v in values if isinstance(v, str) and v]
    if len(set(present)) > 1:
        raise ModuleSubjectUrlError(module_url, present)
    return present[0] if present else None


def resolve_subject_url(records: list[dict[str, Any]], module_url: str | None = None) -> str | None:
    """
    Subject URL shared by all records of a module.

    Records without a subject URL are ignored.

    Raises:
        ModuleSubjectUrlError: records disagree
    """
    seen: list[str] = []
    for record in records:
        subject = record_subject_url(record, module_url)
        if subject and subject not in seen:
            seen.append(subject)
    if len(seen) > 1:
        raise ModuleSubjectUrlError(module_url, seen)
    return seen[0] if seen else None


@dataclass(frozen=True)
class ModuleResult:
    """Outcome of fetching and validating one module."""

    index: int
    path: str
    url: str | None
    records: list[dict[str, Any]] = field(default_factory=list)
    declared_checksum: str | None = None
    computed_checksum: str | None = None
    checksum_valid: bool = False
    canonical_subject_url: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def usable(self) -> bool:
        """Records were obtained and hashed (a checksum mismatch is still usable)."""
        return self.computed_checksum is not None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "path": self.path,
            "url": self.url,
            "declared_checksum": self.declared_checksum,
            "computed_checksum": self.computed_checksum,
            "checksum_valid": self.checksum_valid,
            "canonical_subject_url": self.canonical_subject_url,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
        }


class ModuleValidator:
    """Fetches one module, checks its shape, checksum and subject URL."""

    def __init__(
        self,
        fetcher: Fetcher,
        metrics: MetricsCollector | None = None,
        allow_single_record_modules: bool = False,
    ):
        self.fetcher = fetcher
        self.metrics = metrics
        self.allow_single_record_modules = allow_single_record_modules

    def _fail(self, index: int, path: str, url: str | None, error: BenchmarkError) -> ModuleResult:
        logger.warning(
            "module_invalid",
            path=path,
            url=url,
            kind=error.kind.value,
            error=error.message,
        )
        if self.metrics:
            self.metrics.record_error(url or path, error.message)
        return ModuleResult(
            index=index,
            path=path,
            url=url,
            error_kind=error.kind,
            error=error.message,
        )

    async def validate(self, index: int, path: str, domain_root: str) -> ModuleResult:
        """
        Fetch and validate the module at ``path``.

        Never raises: every failure is returned on the result.
        """
        url = resolve_module_url(path, domain_root)
        if url is None:
            return self._fail(
                index, str(path), None, ModuleStructureError(f"Module path {path!r} is not a valid path.")
            )

        try:
            response = await self.fetcher.get(url)
        except BenchmarkError as e:
            return self._fail(index, path, url, e)

        if self.metrics:
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
            try:
                payload = response.json()
            except ValueError as e:
                raise ModuleStructureError(str(e), url=url) from e

            parsed = parse_module_payload(payload, url)
            if isinstance(parsed, SingleRecordForm):
                if not self.allow_single_record_modules:
                    raise ModuleStructureError(
                        f"Module {url} is a single object, not a valid array with checksum.",
                        url=url,
                    )
                records = [parsed.record]
            else:
                records = parsed.records

            subject_url = resolve_subject_url(records, url)
        except BenchmarkError as e:
            return self._fail(index, path, url, e)

        computed = compute_checksum(records)
        checksum_valid = parsed.checksum == computed
        error_kind = None
        error = None
        if not checksum_valid:
            error_kind = ErrorKind.MODULE_CHECKSUM_MISMATCH
            error = f"Checksum mismatch for {path}: declared {parsed.checksum}, computed {computed}."
            logger.warning("module_checksum_mismatch", path=path, declared=parsed.checksum, computed=computed)
            if self.metrics:
                self.metrics.record_error(url, error)

        logger.debug(
            "module_validated",
            path=path,
            records=len(records),
            checksum_valid=checksum_valid,
            subject_url=subject_url,
            elapsed_ms=round(response.elapsed_ms, 1),
        )

        return ModuleResult(
            index=index,
            path=path,
            url=url,
            records=records,
            declared_checksum=parsed.checksum,
            computed_checksum=computed,
            checksum_valid=checksum_valid,
            canonical_subject_url=subject_url,
            error_kind=error_kind,
            error=error,
        )
