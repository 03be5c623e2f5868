"""Command-line runner for domain benchmarks.

Usage:
    langbench https://example.com
    langbench https://example.com --concurrency 8 --output results/example.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from engine.benchmark.models import DomainBenchmarkResult
from engine.benchmark.reporter import LoggingReporter, Phase
from engine.benchmark.runner import run_domain_benchmark
from engine.crawler.url import url_host, validate_url
from engine.metrics.formatting import compare_phase_metrics
from langbench.config import get_settings
from langbench.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="langbench",
        description="Benchmark a domain's LangShake manifest against traditional extraction",
    )
    parser.add_argument(
        "domain_root",
        help="Root URL of the domain to benchmark (e.g. https://example.com)",
    )
    parser.add_argument(
        "--concurrency",
        "-c",
        type=int,
        default=None,
        help="Max concurrent fetches per phase (default from BENCHMARK_CONCURRENCY)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Where to write the JSON result (default <output_dir>/<host>.json)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default from LOG_LEVEL)",
    )
    return parser


def default_output_path(domain_root: str, output_dir: str) -> Path:
    return Path(output_dir) / f"{url_host(domain_root)}.json"


def write_result(result: DomainBenchmarkResult, path: Path) -> Path:
    """Write the result as indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def print_report(result: DomainBenchmarkResult, output_path: Path) -> None:
    print("=" * 70)
    print(f"LANGSHAKE BENCHMARK: {result.domain_root}")
    print("=" * 70)

    if result.is_aborted:
        print(f"\nABORTED: {result.error}")
        print(f"\nResult written to {output_path}")
        return

    summary = result.summary
    if summary:
        print("\n--- PAGES ---")
        print(f"Total: {summary.total_pages}")
        print(f"Matched: {summary.pages_matched}")
        print(f"Failed: {summary.pages_failed}")
        print(f"Checksum mismatches: {summary.checksum_mismatches}")
        print(f"  {summary.details}")

        print("\n--- MERKLE ROOTS ---")
        print(f"Declared:    {summary.merkle_root_declared or 'N/A'}")
        print(f"LangShake:   {summary.merkle_root_langshake or 'N/A'}")
        print(f"Traditional: {summary.merkle_root_traditional or 'N/A'}")
        print(f"LangShake valid: {summary.merkle_root_langshake_valid}")
        print(f"Traditional valid: {summary.merkle_root_traditional_valid}")
        print(f"Roots match: {summary.merkle_roots_match}")

    for page in result.pages:
        if page.error:
            print(f"  [{page.index}] {page.url or page.module_path}: {page.error}")

    langshake = result.metrics.get(Phase.LANGSHAKE.value)
    traditional = result.metrics.get(Phase.TRADITIONAL.value)
    if langshake and traditional:
        print("\n--- LANGSHAKE VS TRADITIONAL ---")
        for metric, verdict in compare_phase_metrics(langshake, traditional).items():
            print(f"  {metric}: {verdict}")

    print(f"\nResult written to {output_path}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    validation = validate_url(args.domain_root)
    if not validation.is_valid:
        print(f"Invalid URL: {validation.error}", file=sys.stderr)
        return 2
    if args.concurrency is not None and args.concurrency < 1:
        print("Invalid concurrency: must be at least 1", file=sys.stderr)
        return 2

    settings = get_settings()
    setup_logging(args.log_level)

    domain_root = args.domain_root.strip()
    result = asyncio.run(
        run_domain_benchmark(
            domain_root,
            concurrency=args.concurrency,
            reporter=LoggingReporter(),
            settings=settings,
        )
    )

    output_path = Path(args.output) if args.output else default_output_path(domain_root, settings.output_dir)
    write_result(result, output_path)
    print_report(result, output_path)

    return 1 if result.is_aborted else 0


if __name__ == "__main__":
    sys.exit(main())
