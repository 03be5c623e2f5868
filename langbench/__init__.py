"""LangShake Benchmark - application shell (config, logging, errors, CLI)."""

__version__ = "0.1.0"
