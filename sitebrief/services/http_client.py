"""Retrying JSON-over-HTTP executor used for crawl-service calls."""
from __future__ import annotations

import asyncio
import json
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from sitebrief.services import logger as log_service

RAW_BODY_LIMIT = 2000
MAX_BACKOFF_MS = 5000
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_BASE_DELAY_MS = 600

RETRYABLE_STATUSES = frozenset({408, 409, 425, 429})

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class HttpResult:
    ok: bool
    status: int
    attempts: int
    data: Any = field(default_factory=dict)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES or status_code >= 500


def backoff_delay_ms(
    attempt: int,
    base_delay_ms: int,
    *,
    cap_ms: int = MAX_BACKOFF_MS,
    jitter_ratio: float = 0.0,
) -> float:
    """Delay before retrying after ``attempt`` (1-based): base * 2^(attempt-1), capped."""
    delay = min(base_delay_ms * 2 ** (attempt - 1), cap_ms)
    if jitter_ratio > 0:
        delay = min(delay * (1 + random.uniform(0, jitter_ratio)), cap_ms)
    return delay


def parse_body(text: str) -> Any:
    """Parse a response body as JSON, falling back to a truncated ``_raw`` payload."""
    try:
        return json.loads(text)
    except ValueError:
        return {"_raw": text[:RAW_BODY_LIMIT]}


def _positive(value: Any, fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


async def request(
    url: str,
    *,
    method: str = "GET",
    body: Any = None,
    api_key: str = "",
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    retries: int = 2,
    retry_base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS,
    jitter_ratio: float = 0.0,
    service: str = "http",
    http_client: httpx.AsyncClient | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> HttpResult:
    """Issue ``method url`` with a per-attempt timeout and bounded exponential-backoff retry.

    Retries happen only on transport errors and on 408/409/425/429/5xx responses.
    The result never raises for HTTP or body-decoding failures; timeouts surface as
    ``ok=False`` with an error mentioning "timed out" and the ``timeout_ms`` used.
    """
    timeout = _positive(timeout_ms, DEFAULT_TIMEOUT_MS)
    base_delay = _positive(retry_base_delay_ms, DEFAULT_RETRY_BASE_DELAY_MS)
    try:
        max_attempts = max(int(retries), 0) + 1
    except (TypeError, ValueError):
        max_attempts = 1

    headers = {"Authorization": f"Bearer {api_key}"}
    if body is not None:
        headers["Content-Type"] = "application/json"
    content = json.dumps(body) if body is not None else None

    async def _send(client: httpx.AsyncClient) -> HttpResult:
        result = HttpResult(
            ok=False,
            status=0,
            attempts=0,
            data={"error": f"{service} request failed."},
        )
        for attempt in range(1, max_attempts + 1):
            started = time.monotonic()
            try:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    content=content,
                    timeout=timeout / 1000.0,
                )
            except httpx.TimeoutException as exc:
                result = HttpResult(
                    ok=False,
                    status=0,
                    attempts=attempt,
                    data={
                        "error": f"{service} request timed out.",
                        "detail": str(exc) or "Request timed out",
                        "timeout_ms": timeout,
                    },
                )
            except httpx.HTTPError as exc:
                result = HttpResult(
                    ok=False,
                    status=0,
                    attempts=attempt,
                    data={
                        "error": f"{service} request failed.",
                        "detail": str(exc) or "Unknown request error",
                    },
                )
            else:
                data = parse_body(response.text)
                result = HttpResult(
                    ok=response.is_success,
                    status=response.status_code,
                    attempts=attempt,
                    data=data,
                )
                if result.ok or not is_retryable_status(response.status_code):
                    _log(result, service, method, url, started)
                    return result

            _log(result, service, method, url, started)
            if attempt < max_attempts:
                delay = backoff_delay_ms(attempt, base_delay, jitter_ratio=jitter_ratio)
                await sleep(delay / 1000.0)
        return result

    if http_client is None:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await _send(client)
    return await _send(http_client)


def _log(result: HttpResult, service: str, method: str, url: str, started: float) -> None:
    error = None
    if not result.ok:
        data = result.data if isinstance(result.data, dict) else {}
        error = str(data.get("error") or f"HTTP {result.status}")
    log_service.log_http_call(
        service=service,
        method=method,
        url=url,
        status=result.status,
        attempts=result.attempts,
        duration_ms=int((time.monotonic() - started) * 1000),
        error=error,
    )
