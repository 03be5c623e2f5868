"""Per-page and aggregate cross-checks between the two phases."""

from typing import Any

import structlog

from engine.benchmark.models import BenchmarkSummary, PageResult, ShallowDiff
from engine.crawler.modules import ModuleResult
from engine.crawler.traditional import TraditionalPage, TraditionalPhaseResult
from engine.integrity.merkle import canonicalize, compute_checksum, compute_merkle_root
from langbench.exceptions import ErrorKind

logger = structlog.get_logger(__name__)


def shallow_diff(langshake: list[dict[str, Any]], traditional: list[dict[str, Any]]) -> ShallowDiff:
    """Key-set difference of the first record on each side."""
    l_keys = list(langshake[0]) if langshake and isinstance(langshake[0], dict) else []
    t_keys = list(traditional[0]) if traditional and isinstance(traditional[0], dict) else []
    return ShallowDiff(
        missing_in_traditional=[k for k in l_keys if k not in t_keys],
        missing_in_langshake=[k for k in t_keys if k not in l_keys],
    )


def compare_page(module: ModuleResult, page: TraditionalPage | None) -> PageResult:
    """
    Correlate one module with the page extracted for its subject URL.

    Args:
        module: LangShake phase slot
        page: Traditional phase slot, or None if no extraction was attempted

    Returns:
        PageResult; pages missing either side never match
    """
    url = module.canonical_subject_url or module.url
    if not module.usable:
        return PageResult(
            index=module.index,
            url=url,
            module_path=module.path,
            langshake_records=None,
            traditional_records=None,
            langshake_checksum=None,
            traditional_checksum=None,
            error_kind=module.error_kind,
            error=module.error,
        )

    base = {
        "index": module.index,
        "url": url,
        "module_path": module.path,
        "langshake_records": module.records,
        "langshake_checksum": module.computed_checksum,
        "langshake_checksum_declared": module.declared_checksum,
        "langshake_checksum_valid": module.checksum_valid,
    }

    if page is None:
        return PageResult(
            **base,
            traditional_records=None,
            traditional_checksum=None,
            error_kind=ErrorKind.MODULE_SUBJECT_URL_MISSING,
            error=f"Module {module.path} declares no canonical subject url; page was not crawled.",
        )

    if not page.usable or page.records is None:
        return PageResult(
            **base,
            traditional_records=None,
            traditional_checksum=None,
            error_kind=page.error_kind,
            error=page.error,
        )

    traditional_checksum = compute_checksum(page.records)
    schemas_match = canonicalize(module.records) == canonicalize(page.records)
    return PageResult(
        **base,
        traditional_records=page.records,
        traditional_checksum=traditional_checksum,
        schemas_match=schemas_match,
        traditional_checksum_matches_langshake=traditional_checksum == module.computed_checksum,
        diff=None if schemas_match else shallow_diff(module.records, page.records),
        error_kind=module.error_kind,
        error=module.error,
    )


def compare_pages(
    modules: list[ModuleResult],
    traditional: TraditionalPhaseResult,
) -> list[PageResult]:
    """One PageResult per module, in manifest order."""
    return [compare_page(module, traditional.page_for(module.index)) for module in modules]


def build_summary(pages: list[PageResult], declared_root: str | None) -> BenchmarkSummary:
    """
    Aggregate the per-page verdicts and Merkle roots.

    Each side's root is built from the checksums that side produced, in
    page order. The three flags are independent: each computed root
    against the declared root, and the computed roots against each other.
    """
    root_langshake = compute_merkle_root(p.langshake_checksum for p in pages if p.langshake_checksum)
    root_traditional = compute_merkle_root(
        p.traditional_checksum for p in pages if p.traditional_checksum
    )

    pages_matched = sum(1 for p in pages if p.schemas_match)
    all_match = pages_matched == len(pages)
    pages_failed = sum(1 for p in pages if p.langshake_records is None or p.traditional_records is None)
    checksum_mismatches = sum(1 for p in pages if p.langshake_checksum_valid is False)

    summary = BenchmarkSummary(
        total_pages=len(pages),
        pages_matched=pages_matched,
        pages_failed=pages_failed,
        checksum_mismatches=checksum_mismatches,
        all_match=all_match,
        details="All schemas match." if all_match else "Some schemas do not match.",
        merkle_root_langshake=root_langshake,
        merkle_root_traditional=root_traditional,
        merkle_root_declared=declared_root,
        merkle_root_langshake_valid=bool(declared_root) and root_langshake == declared_root,
        merkle_root_traditional_valid=bool(declared_root) and root_traditional == declared_root,
        merkle_roots_match=bool(root_langshake) and root_langshake == root_traditional,
    )

    logger.info(
        "comparison_completed",
        total_pages=summary.total_pages,
        pages_matched=pages_matched,
        all_match=all_match,
        merkle_roots_match=summary.merkle_roots_match,
    )
    return summary
