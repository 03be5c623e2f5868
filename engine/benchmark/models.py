"""Data models for domain benchmark results."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from engine.metrics.collector import MetricsSnapshot
from langbench.exceptions import ErrorKind


class BenchmarkState(StrEnum):
    """Coordinator lifecycle."""

    INIT = "init"
    FETCH_MANIFEST = "fetch_manifest"
    ABORTED = "aborted"  # Terminal: manifest-stage failure
    CRAWL_MODULES = "crawl_modules"
    CRAWL_MODULES_DONE = "crawl_modules_done"
    CRAWL_TRADITIONAL = "crawl_traditional"
    COMPARE = "compare"
    DONE = "done"


SHALLOW_DIFF_NOTE = "This is a shallow diff. For deep diffs, use a JSON diff tool."


@dataclass(frozen=True)
class ShallowDiff:
    """Top-level keys of each side's first record missing on the other side.

    Best-effort hint only: nested values and later records are not compared.
    """

    missing_in_traditional: list[str]
    missing_in_langshake: list[str]
    note: str = SHALLOW_DIFF_NOTE

    def to_dict(self) -> dict:
        return {
            "missing_in_traditional": self.missing_in_traditional,
            "missing_in_langshake": self.missing_in_langshake,
            "note": self.note,
        }


@dataclass(frozen=True)
class PageResult:
    """One canonical page correlated across both phases."""

    index: int
    url: str | None
    module_path: str
    langshake_records: list[dict[str, Any]] | None
    traditional_records: list[dict[str, Any]] | None
    langshake_checksum: str | None
    traditional_checksum: str | None
    langshake_checksum_declared: str | None = None
    langshake_checksum_valid: bool | None = None
    schemas_match: bool = False
    traditional_checksum_matches_langshake: bool = False
    diff: ShallowDiff | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        comparison: dict[str, Any] = {
            "schemas_match": self.schemas_match,
            "langshake_checksum": self.langshake_checksum,
            "langshake_checksum_declared": self.langshake_checksum_declared,
            "langshake_checksum_valid": self.langshake_checksum_valid,
            "traditional_checksum": self.traditional_checksum,
            "traditional_checksum_matches_langshake": self.traditional_checksum_matches_langshake,
        }
        if self.diff:
            comparison["diff"] = self.diff.to_dict()
        return {
            "index": self.index,
            "url": self.url,
            "module_path": self.module_path,
            "langshake": self.langshake_records,
            "traditional": self.traditional_records,
            "comparison": comparison,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class BenchmarkSummary:
    """Aggregate verdict for a domain."""

    total_pages: int
    pages_matched: int
    pages_failed: int
    checksum_mismatches: int
    all_match: bool
    details: str
    merkle_root_langshake: str
    merkle_root_traditional: str
    merkle_root_declared: str | None
    merkle_root_langshake_valid: bool
    merkle_root_traditional_valid: bool
    merkle_roots_match: bool

    def to_dict(self) -> dict:
        return {
            "total_pages": self.total_pages,
            "pages_matched": self.pages_matched,
            "pages_failed": self.pages_failed,
            "checksum_mismatches": self.checksum_mismatches,
            "all_match": self.all_match,
            "details": self.details,
            "merkle_root_langshake": self.merkle_root_langshake,
            "merkle_root_traditional": self.merkle_root_traditional,
            "merkle_root_declared": self.merkle_root_declared,
            "merkle_root_langshake_valid": self.merkle_root_langshake_valid,
            "merkle_root_traditional_valid": self.merkle_root_traditional_valid,
            "merkle_roots_match": self.merkle_roots_match,
        }


@dataclass(frozen=True)
class DomainBenchmarkResult:
    """Everything a benchmark run produced.

    Either fully populated (state DONE) or error-tagged (state ABORTED)
    with no pages and no summary.
    """

    domain_root: str
    state: BenchmarkState
    pages: list[PageResult] = field(default_factory=list)
    summary: BenchmarkSummary | None = None
    metrics: dict[str, MetricsSnapshot] = field(default_factory=dict)
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def is_aborted(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        metrics = {phase: snapshot.to_dict() for phase, snapshot in self.metrics.items()}
        if self.is_aborted:
            return {
                "domain_root": self.domain_root,
                "error": self.error,
                "error_kind": self.error_kind.value if self.error_kind else None,
                "metrics": metrics,
            }
        return {
            "domain_root": self.domain_root,
            "pages": [p.to_dict() for p in self.pages],
            "summary": self.summary.to_dict() if self.summary else None,
            "metrics": metrics,
        }
