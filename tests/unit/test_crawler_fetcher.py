"""Tests for the retrying HTTP fetcher."""

import httpx
import pytest

from engine.crawler.fetcher import NO_CACHE_HEADERS, Fetcher, FetchPolicy
from langbench.exceptions import ErrorKind, FetchError, RequestTimeoutError
from tests.fixtures.site import FakeSite


class TestFetchPolicy:
    """Tests for FetchPolicy."""

    def test_defaults(self) -> None:
        """Three attempts, 10s timeout, 500ms delay."""
        policy = FetchPolicy()
        assert policy.max_attempts == 3
        assert policy.timeout_seconds == 10.0
        assert policy.retry_delay_seconds == 0.5

    def test_validation(self) -> None:
        """Nonsensical policies are rejected."""
        with pytest.raises(ValueError):
            FetchPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            FetchPolicy(timeout_seconds=0)
        with pytest.raises(ValueError):
            FetchPolicy(retry_delay_seconds=-1)


class TestFetcher:
    """Tests for Fetcher.get."""

    @pytest.mark.asyncio
    async def test_success(self, site: FakeSite) -> None:
        """A 200 response is returned after one attempt."""
        site.add_json("/data.json", {"ok": True})

        response = await site.fetcher().get(site.url("/data.json"))

        assert response.status_code == 200
        assert response.attempts == 1
        assert response.json() == {"ok": True}
        assert response.bytes_downloaded == len(b'{"ok": true}')
        assert response.ended_at >= response.started_at

    @pytest.mark.asyncio
    async def test_sends_no_cache_headers(self) -> None:
        """Every request carries no-cache headers and the user agent."""
        seen: list[httpx.Headers] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers)
            return httpx.Response(200, json=[])

        fetcher = Fetcher(user_agent="TestAgent/1.0", transport=httpx.MockTransport(handler))
        await fetcher.get("https://example.com/x.json")

        for name, value in NO_CACHE_HEADERS.items():
            assert seen[0][name] == value
        assert seen[0]["User-Agent"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    async def test_retries_until_success(self, site: FakeSite) -> None:
        """Transient failures are retried."""
        site.add_json("/flaky.json", [1])
        site.fail("/flaky.json", times=2)

        response = await site.fetcher().get(site.url("/flaky.json"))

        assert response.attempts == 3
        assert site.requests_for("/flaky.json") == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, site: FakeSite) -> None:
        """The final failure propagates as FetchError."""
        site.fail("/down.json")

        with pytest.raises(FetchError) as exc_info:
            await site.fetcher().get(site.url("/down.json"))

        assert exc_info.value.kind == ErrorKind.MODULE_FETCH_ERROR
        assert "HTTP error: 500" in exc_info.value.message
        assert exc_info.value.details["attempts"] == 3
        assert site.requests_for("/down.json") == 3

    @pytest.mark.asyncio
    async def test_not_found_is_retried(self, site: FakeSite) -> None:
        """Non-2xx responses count as failed attempts."""
        with pytest.raises(FetchError):
            await site.fetcher().get(site.url("/missing.json"))

        assert site.requests_for("/missing.json") == 3

    @pytest.mark.asyncio
    async def test_timeout(self, site: FakeSite) -> None:
        """A timed-out final attempt raises RequestTimeoutError."""
        site.timeout("/slow.json")

        with pytest.raises(RequestTimeoutError) as exc_info:
            await site.fetcher().get(site.url("/slow.json"))

        assert exc_info.value.kind == ErrorKind.REQUEST_TIMEOUT
        assert site.requests_for("/slow.json") == 3

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, site: FakeSite) -> None:
        """max_attempts=1 never retries."""
        site.fail("/down.json")
        policy = FetchPolicy(max_attempts=1, retry_delay_seconds=0)

        with pytest.raises(FetchError):
            await site.fetcher(policy).get(site.url("/down.json"))

        assert site.requests_for("/down.json") == 1

    @pytest.mark.asyncio
    async def test_fixed_retry_delay(self, site: FakeSite, monkeypatch: pytest.MonkeyPatch) -> None:
        """The same delay separates every attempt."""
        delays: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)

        monkeypatch.setattr("engine.crawler.fetcher.asyncio.sleep", fake_sleep)
        site.fail("/down.json")
        policy = FetchPolicy(max_attempts=3, retry_delay_seconds=0.5)

        with pytest.raises(FetchError):
            await site.fetcher(policy).get(site.url("/down.json"))

        assert [d for d in delays if d] == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_with_policy_keeps_transport(self, site: FakeSite) -> None:
        """A re-policied fetcher still talks to the same transport."""
        site.add_json("/data.json", {})
        fetcher = site.fetcher().with_policy(FetchPolicy(max_attempts=1))

        response = await fetcher.get(site.url("/data.json"))

        assert response.status_code == 200
        assert fetcher.policy.max_attempts == 1

    @pytest.mark.asyncio
    async def test_json_error(self, site: FakeSite) -> None:
        """Non-JSON bodies raise ValueError from json()."""
        site.add_raw("/page.html", "<html></html>")

        response = await site.fetcher().get(site.url("/page.html"))

        with pytest.raises(ValueError):
            response.json()
        assert site.requests_for("/page.html") == 1
