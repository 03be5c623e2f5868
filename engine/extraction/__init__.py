"""Default structured-data extractor for the Traditional phase."""

from engine.extraction.jsonld import StaticJsonLdExtractor, extract_json_ld

__all__ = [
    "StaticJsonLdExtractor",
    "extract_json_ld",
]
