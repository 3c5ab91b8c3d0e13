import asyncio
import time

import httpx
import pytest

from amp_widget.runtime.fetcher import (
    CompletionSlot,
    FetchOutcome,
    FetchResult,
    PersonalizationFetcher,
)
from amp_widget.runtime.identity import Identity

BASE = "https://widgets.example.com"
CONFIG_ID = "cfg_abc123def456"
IDENTITY = Identity("email", "test@example.com")


def fetcher_for(handler, timeout_ms=500):
    return PersonalizationFetcher(BASE, CONFIG_ID, timeout_ms=timeout_ms,
                                  transport=httpx.MockTransport(handler))


def json_handler(body, status_code=200):
    def handler(request):
        return httpx.Response(status_code, json=body)
    return handler


class TestCompletionSlot:
    @pytest.mark.asyncio
    async def test_first_write_wins(self):
        seen = []
        slot = CompletionSlot(on_complete=seen.append)
        first = FetchResult.failure(FetchOutcome.TIMEOUT)
        late = FetchResult(outcome=FetchOutcome.RESOLVED, data={"given_name": "Alex"}, has_identity=True)

        assert slot.resolve(first) is True
        assert slot.resolve(late) is False
        assert await slot.wait() is first
        assert seen == [first]


class TestFetch:
    @pytest.mark.asyncio
    async def test_no_identity_completes_without_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        seen = []
        result = await fetcher_for(handler).fetch(None, on_complete=seen.append)
        assert result.outcome is FetchOutcome.NO_IDENTITY
        assert result.data is None and result.has_identity is False
        assert calls == []
        assert seen == [result]

    @pytest.mark.asyncio
    async def test_success(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"personalization_data": {"given_name": "Alex"},
                                             "has_identity": True})

        result = await fetcher_for(handler).fetch(Identity("email", "a+b@example.com"))
        assert result.outcome is FetchOutcome.RESOLVED
        assert result.data == {"given_name": "Alex"}
        assert result.has_identity is True
        assert len(requests) == 1
        assert requests[0].url.path == f"/api/profiles/{CONFIG_ID}/lookup"
        assert requests[0].url.params["id_value"] == "a+b@example.com"

    def test_lookup_url_encodes_identity(self):
        fetcher = PersonalizationFetcher(BASE, CONFIG_ID, timeout_ms=100)
        url = fetcher.lookup_url(Identity("email", "a+b@example.com"))
        assert url == f"{BASE}/api/profiles/{CONFIG_ID}/lookup?id_value=a%2Bb%40example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("handler", [
        json_handler({"personalization_data": {"x": 1}, "has_identity": True}, status_code=404),
        json_handler({"error": "boom"}, status_code=500),
        lambda request: httpx.Response(200, text="<html>not json</html>"),
        json_handler(["not", "an", "object"]),
    ])
    async def test_failures_collapse_to_no_data(self, handler):
        result = await fetcher_for(handler).fetch(IDENTITY)
        assert result.outcome is FetchOutcome.FAILED
        assert result.data is None
        assert result.has_identity is False

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await fetcher_for(handler).fetch(IDENTITY)
        assert result.outcome is FetchOutcome.FAILED
        assert result.data is None

    @pytest.mark.asyncio
    async def test_timeout_resolves_to_failure(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json={"personalization_data": {"given_name": "Late"},
                                             "has_identity": True})

        seen = []
        started = time.monotonic()
        result = await fetcher_for(handler, timeout_ms=100).fetch(IDENTITY, on_complete=seen.append)
        elapsed = time.monotonic() - started

        assert result.outcome is FetchOutcome.TIMEOUT
        assert result.data is None and result.has_identity is False
        assert elapsed < 1.0
        assert seen == [result]

    @pytest.mark.asyncio
    async def test_default_timeout_bounds_wait_at_three_seconds(self):
        async def handler(request):
            await asyncio.sleep(30)
            return httpx.Response(200, json={})

        fetcher = PersonalizationFetcher(BASE, CONFIG_ID, transport=httpx.MockTransport(handler))
        assert fetcher.timeout_ms == 3000

        started = time.monotonic()
        result = await fetcher.fetch(IDENTITY)
        elapsed = time.monotonic() - started

        assert result.outcome is FetchOutcome.TIMEOUT
        assert 2.9 <= elapsed < 3.5

    @pytest.mark.asyncio
    async def test_missing_personalization_data_key(self):
        result = await fetcher_for(json_handler({"has_identity": True})).fetch(IDENTITY)
        assert result.outcome is FetchOutcome.RESOLVED
        assert result.data is None

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_fast(self):
        def handler(request):
            raise RuntimeError("boom")

        started = time.monotonic()
        result = await fetcher_for(handler, timeout_ms=300).fetch(IDENTITY)
        elapsed = time.monotonic() - started

        assert result.outcome is FetchOutcome.FAILED
        assert result.data is None and result.has_identity is False
        assert elapsed < 0.3
