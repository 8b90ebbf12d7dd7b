"""Tests for the retrying HTTP request wrapper."""
import json

import httpx
import pytest

from sitebrief.services.http_client import (
    MAX_BACKOFF_MS,
    backoff_delay_ms,
    is_retryable_status,
    parse_body,
    request,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class _Sleeps:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class TestBackoff:
    def test_doubles_from_base_delay(self):
        assert backoff_delay_ms(1, 600) == 600
        assert backoff_delay_ms(2, 600) == 1200
        assert backoff_delay_ms(3, 600) == 2400

    def test_is_capped(self):
        assert backoff_delay_ms(6, 600) == MAX_BACKOFF_MS

    def test_jitter_never_exceeds_cap(self):
        for attempt in range(1, 8):
            assert backoff_delay_ms(attempt, 600, jitter_ratio=0.5) <= MAX_BACKOFF_MS


@pytest.mark.parametrize("status", [408, 409, 425, 429, 500, 502, 503])
def test_retryable_statuses(status):
    assert is_retryable_status(status)


@pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
def test_non_retryable_statuses(status):
    assert not is_retryable_status(status)


def test_parse_body_falls_back_to_raw_text():
    body = "<html>" + "x" * 5000
    parsed = parse_body(body)
    assert list(parsed) == ["_raw"]
    assert len(parsed["_raw"]) == 2000


@pytest.mark.asyncio
async def test_retries_server_error_then_succeeds():
    calls = []

    def handler(req: httpx.Request) -> httpx.Response:
        calls.append(req)
        if len(calls) == 1:
            return httpx.Response(500, json={"error": "boom"})
        return httpx.Response(200, json={"id": "job-1"})

    sleeps = _Sleeps()
    async with _client(handler) as client:
        result = await request(
            "https://api.test/crawl",
            retries=2,
            retry_base_delay_ms=600,
            http_client=client,
            sleep=sleeps,
        )

    assert result.ok is True
    assert result.status == 200
    assert result.attempts == 2
    assert result.data == {"id": "job-1"}
    assert sleeps.delays == [0.6]


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    calls = []

    def handler(req: httpx.Request) -> httpx.Response:
        calls.append(req)
        return httpx.Response(400, json={"error": "bad request"})

    sleeps = _Sleeps()
    async with _client(handler) as client:
        result = await request("https://api.test/crawl", retries=3, http_client=client, sleep=sleeps)

    assert result.ok is False
    assert result.status == 400
    assert result.attempts == 1
    assert result.data == {"error": "bad request"}
    assert len(calls) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_retries_are_exhausted_on_persistent_failure():
    def handler(req: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    sleeps = _Sleeps()
    async with _client(handler) as client:
        result = await request(
            "https://api.test/crawl",
            retries=2,
            retry_base_delay_ms=100,
            http_client=client,
            sleep=sleeps,
        )

    assert result.ok is False
    assert result.status == 503
    assert result.attempts == 3
    assert result.data == {"_raw": "unavailable"}
    assert sleeps.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    def handler(req: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={})

    async with _client(handler) as client:
        result = await request("https://api.test/crawl", retries=0, http_client=client, sleep=_Sleeps())

    assert result.attempts == 1
    assert result.ok is False


@pytest.mark.asyncio
async def test_timeout_reports_timed_out_and_budget():
    def handler(req: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=req)

    async with _client(handler) as client:
        result = await request(
            "https://api.test/crawl",
            timeout_ms=1234,
            retries=1,
            service="Firecrawl",
            http_client=client,
            sleep=_Sleeps(),
        )

    assert result.ok is False
    assert result.status == 0
    assert result.attempts == 2
    assert "timed out" in result.data["error"]
    assert result.data["timeout_ms"] == 1234


@pytest.mark.asyncio
async def test_transport_error_is_reported():
    def handler(req: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=req)

    async with _client(handler) as client:
        result = await request("https://api.test/crawl", retries=0, service="Firecrawl", http_client=client)

    assert result.ok is False
    assert result.data["error"] == "Firecrawl request failed."
    assert "connection refused" in result.data["detail"]


@pytest.mark.asyncio
async def test_sends_bearer_token_and_json_body():
    seen = {}

    def handler(req: httpx.Request) -> httpx.Response:
        seen["method"] = req.method
        seen["auth"] = req.headers.get("authorization")
        seen["content_type"] = req.headers.get("content-type")
        seen["body"] = json.loads(req.content)
        return httpx.Response(200, json={"success": True})

    async with _client(handler) as client:
        result = await request(
            "https://api.test/crawl",
            method="POST",
            body={"url": "https://example.com"},
            api_key="fc-key",
            http_client=client,
        )

    assert result.ok is True
    assert seen == {
        "method": "POST",
        "auth": "Bearer fc-key",
        "content_type": "application/json",
        "body": {"url": "https://example.com"},
    }
