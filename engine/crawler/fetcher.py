"""HTTP fetcher with a fixed-delay retry policy."""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from langbench.exceptions import FetchError, RequestTimeoutError

logger = structlog.get_logger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


@dataclass(frozen=True)
class FetchPolicy:
    """How hard to try for one URL."""

    max_attempts: int = 3
    timeout_seconds: float = 10.0
    retry_delay_seconds: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must not be negative")


@dataclass(frozen=True)
class FetchResponse:
    """A successful response."""

    url: str
    final_url: str  # After redirects
    status_code: int
    content: bytes
    started_at: float  # epoch seconds, first attempt
    ended_at: float
    attempts: int

    @property
    def elapsed_ms(self) -> float:
        return (self.ended_at - self.started_at) * 1000

    @property
    def bytes_downloaded(self) -> int:
        return len(self.content)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON; raises ValueError if it is not JSON."""
        try:
            return json.loads(self.content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Response from {self.url} is not valid JSON: {e}") from e


class Fetcher:
    """GET requests with no-cache headers, per-attempt timeout and fixed retry delay."""

    def __init__(
        self,
        policy: FetchPolicy | None = None,
        user_agent: str = "LangShakeBench/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.policy = policy or FetchPolicy()
        self.user_agent = user_agent
        self._transport = transport

    def with_policy(self, policy: FetchPolicy) -> "Fetcher":
        """Same client setup, different retry policy."""
        return Fetcher(policy=policy, user_agent=self.user_agent, transport=self._transport)

    async def _get_once(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.policy.timeout_seconds,
            follow_redirects=True,
            max_redirects=5,
            transport=self._transport,
        ) as client:
            response = await client.get(
                url,
                headers={"User-Agent": self.user_agent, **NO_CACHE_HEADERS},
            )
            response.raise_for_status()
            return response

    async def get(self, url: str) -> FetchResponse:
        """
        Fetch a URL, retrying failed attempts.

        Args:
            url: Absolute URL to fetch

        Returns:
            FetchResponse for the first successful attempt

        Raises:
            RequestTimeoutError: the final attempt timed out
            FetchError: the final attempt failed for any other reason
        """
        started_at = time.time()
        last_error: Exception | None = None

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                response = await self._get_once(url)
                return FetchResponse(
                    url=url,
                    final_url=str(response.url),
                    status_code=response.status_code,
                    content=response.content,
                    started_at=started_at,
                    ended_at=time.time(),
                    attempts=attempt,
                )
            except httpx.HTTPStatusError as e:
                last_error = e
                error = f"HTTP error: {e.response.status_code}"
            except httpx.TimeoutException as e:
                last_error = e
                error = "Request timed out"
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                last_error = e
                error = str(e) or type(e).__name__

            if attempt < self.policy.max_attempts:
                logger.warning(
                    "fetch_retry",
                    url=url,
                    error=error,
                    attempt=attempt,
                    max_attempts=self.policy.max_attempts,
                )
                await asyncio.sleep(self.policy.retry_delay_seconds)

        # All attempts exhausted
        if isinstance(last_error, httpx.TimeoutException):
            raise RequestTimeoutError(
                url, self.policy.timeout_seconds, self.policy.max_attempts
            ) from last_error
        raise FetchError(url, error, self.policy.max_attempts) from last_error
