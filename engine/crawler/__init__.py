"""Crawler package for the two benchmark phases.

Use explicit imports when needed:
    from engine.crawler.fetcher import Fetcher, FetchPolicy
    from engine.crawler.modules import ModuleValidator, parse_module_payload
    from engine.crawler.langshake import ManifestCrawler
    from engine.crawler.traditional import TraditionalCrawler, Extractor
    from engine.crawler.url import validate_url, manifest_url, resolve_module_url
"""

import importlib
from typing import Any

_EXPORTS = {
    # Fetcher
    "Fetcher": "engine.crawler.fetcher",
    "FetchPolicy": "engine.crawler.fetcher",
    "FetchResponse": "engine.crawler.fetcher",
    # Modules
    "ArrayForm": "engine.crawler.modules",
    "SingleRecordForm": "engine.crawler.modules",
    "ModuleResult": "engine.crawler.modules",
    "ModuleValidator": "engine.crawler.modules",
    "parse_module_payload": "engine.crawler.modules",
    "resolve_subject_url": "engine.crawler.modules",
    # Phases
    "ManifestCrawler": "engine.crawler.langshake",
    "LangshakePhaseResult": "engine.crawler.langshake",
    "TraditionalCrawler": "engine.crawler.traditional",
    "TraditionalPhaseResult": "engine.crawler.traditional",
    "Extractor": "engine.crawler.traditional",
    "ExtractionResult": "engine.crawler.traditional",
    # URL utilities
    "validate_url": "engine.crawler.url",
    "validate_urls": "engine.crawler.url",
    "manifest_url": "engine.crawler.url",
    "resolve_module_url": "engine.crawler.url",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazy import for crawler submodules."""
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(f"module 'engine.crawler' has no attribute '{name}'")
    return getattr(importlib.import_module(module), name)
