"""Static JSON-LD extraction.

A minimal Extractor: fetches raw HTML (no rendering) and reads
``<script type="application/ld+json">`` blocks. Microdata, RDFa and
framework-specific markup are not handled here.
"""

import asyncio
import json
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import structlog
from bs4 import BeautifulSoup

from engine.crawler.fetcher import Fetcher, FetchPolicy
from engine.crawler.traditional import ExtractionResult
from engine.integrity.merkle import CHECKSUM_FIELD, canonicalize
from langbench.exceptions import BenchmarkError, PageExtractionError, RequestTimeoutError

logger = structlog.get_logger(__name__)

ACCEPTED_CONTEXTS = ("schema.org", "ogp.me/ns#")


def _has_accepted_context(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    context = str(item.get("@context") or "").lower()
    return any(marker in context for marker in ACCEPTED_CONTEXTS)


def extract_json_ld(html: str) -> list[dict[str, Any]]:
    """
    Structured records from the JSON-LD blocks of a page.

    Top-level arrays contribute each element. Records outside the
    schema.org / Open Graph vocabularies are dropped, a top-level
    ``checksum`` field is removed, and exact duplicates are collapsed
    (first occurrence wins).
    """
    soup = BeautifulSoup(html, "html.parser")
    found: list[Any] = []

    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        content = script.string or script.get_text()
        if not content or not content.strip():
            continue
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            logger.debug("json_ld_parse_error", error=str(e))
            continue
        if isinstance(parsed, list):
            found.extend(parsed)
        else:
            found.append(parsed)

    records: list[dict[str, Any]] = []
    seen: set[str] = set()
    for item in found:
        if not _has_accepted_context(item):
            continue
        record = {k: v for k, v in item.items() if k != CHECKSUM_FIELD}
        key = canonicalize(record)
        if key in seen:
            continue
        seen.add(key)
        records.append(record)

    return records


class StaticJsonLdExtractor:
    """Extractor that reads JSON-LD from statically fetched HTML."""

    def __init__(self, fetcher: Fetcher | None = None, timeout_seconds: float = 15.0):
        policy = FetchPolicy(max_attempts=1, timeout_seconds=timeout_seconds, retry_delay_seconds=0)
        self.fetcher = fetcher.with_policy(policy) if fetcher else Fetcher(policy=policy)

    async def _load_file(self, url: str) -> str:
        path = Path(unquote(urlparse(url).path))
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            raise PageExtractionError(url, str(e)) from e

    async def extract(self, url: str) -> ExtractionResult:
        """
        Fetch a page and extract its JSON-LD records.

        Raises:
            PageExtractionError: the page could not be loaded
            RequestTimeoutError: the page request timed out
        """
        status_code = 200
        if url.startswith("file://"):
            html = await self._load_file(url)
            num_bytes = len(html.encode("utf-8"))
        else:
            try:
                response = await self.fetcher.get(url)
            except RequestTimeoutError:
                raise
            except BenchmarkError as e:
                raise PageExtractionError(url, e.message) from e
            html = response.text
            num_bytes = response.bytes_downloaded
            status_code = response.status_code

        records = extract_json_ld(html)
        logger.debug("json_ld_extracted", url=url, records=len(records), bytes=num_bytes)
        return ExtractionResult(records=records, bytes_downloaded=num_bytes, status_code=status_code)
