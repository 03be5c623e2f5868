"""LangShake Benchmark - engine package.

Use explicit imports:
    from engine.integrity.merkle import compute_checksum, compute_merkle_root
    from engine.metrics.collector import MetricsCollector
    from engine.crawler.langshake import ManifestCrawler
    from engine.crawler.traditional import TraditionalCrawler
    from engine.benchmark.runner import DomainBenchmarkRunner, run_domain_benchmark
"""
