"""Single-shot Claude completion calls with timeout handling and text extraction."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import anthropic

from sitebrief.services import logger as log_service

DEFAULT_TIMEOUT_MS = 180000
DEFAULT_TEMPERATURE = 0.2


@dataclass
class CompletionResult:
    ok: bool
    text: str = ""
    stop_reason: str | None = None
    usage: dict[str, Any] | None = None
    error: dict[str, Any] | None = None


def get_client(api_key: str, base_url: str | None = None) -> anthropic.AsyncAnthropic:
    """Build an Anthropic client that never retries on its own."""
    kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
    if base_url:
        kwargs["base_url"] = base_url
    return anthropic.AsyncAnthropic(**kwargs)


def _block_value(block: Any, key: str) -> Any:
    if isinstance(block, dict):
        return block.get(key)
    return getattr(block, key, None)


def extract_text(content: Any) -> str:
    """Join every text-bearing content block; other block types are skipped."""
    if not isinstance(content, (list, tuple)):
        return ""
    parts: list[str] = []
    for block in content:
        text = _block_value(block, "text")
        if isinstance(text, str):
            parts.append(text)
    return "\n".join(parts).strip()


def _usage_dict(usage: Any) -> dict[str, Any] | None:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    dump = getattr(usage, "model_dump", None)
    if callable(dump):
        data = dump()
        return data if isinstance(data, dict) else None
    return None


class ClaudeCompletion:
    """Issues one user-role message per call; failures are returned, never retried."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str = "",
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        client: Any = None,
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.timeout_ms = timeout_ms
        self.client = client

    def _client(self) -> Any:
        if self.client is None:
            self.client = get_client(self.api_key, self.base_url)
        return self.client

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float | None = None,
        timeout_ms: int | None = None,
        caller: str = "brief",
    ) -> CompletionResult:
        timeout = timeout_ms if timeout_ms and timeout_ms > 0 else self.timeout_ms
        t0 = time.monotonic()
        try:
            response = await self._client().messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=self.temperature if temperature is None else temperature,
                messages=[{"role": "user", "content": prompt}],
                timeout=timeout / 1000.0,
            )
        except anthropic.APITimeoutError as exc:
            error = {
                "error": "Claude request timed out.",
                "detail": str(exc) or "Request timed out",
                "timeout_ms": timeout,
            }
            return self._failed(caller, t0, error)
        except anthropic.APIStatusError as exc:
            error = {
                "error": "Claude request failed.",
                "status": exc.status_code,
                "detail": exc.body if exc.body is not None else str(exc),
            }
            return self._failed(caller, t0, error)
        except anthropic.APIConnectionError as exc:
            error = {
                "error": "Claude request failed.",
                "detail": str(exc) or "Unknown request error",
            }
            return self._failed(caller, t0, error)
        except anthropic.APIError as exc:
            error = {
                "error": "Claude request failed.",
                "detail": str(exc) or type(exc).__name__,
            }
            return self._failed(caller, t0, error)

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        usage = _usage_dict(getattr(response, "usage", None))
        stop_reason = getattr(response, "stop_reason", None)
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            input_tokens=int((usage or {}).get("input_tokens") or 0),
            output_tokens=int((usage or {}).get("output_tokens") or 0),
            duration_ms=elapsed_ms,
        )
        return CompletionResult(
            ok=True,
            text=extract_text(getattr(response, "content", None)),
            stop_reason=stop_reason if isinstance(stop_reason, str) else None,
            usage=usage,
        )

    def _failed(self, caller: str, t0: float, error: dict[str, Any]) -> CompletionResult:
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="failed",
            error=str(error.get("error")),
        )
        return CompletionResult(ok=False, error=error)


async def complete(
    prompt: str,
    *,
    max_tokens: int,
    model: str,
    api_key: str,
    temperature: float = DEFAULT_TEMPERATURE,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    base_url: str | None = None,
    client: Any = None,
) -> CompletionResult:
    invoker = ClaudeCompletion(
        model=model,
        api_key=api_key,
        base_url=base_url,
        temperature=temperature,
        timeout_ms=timeout_ms,
        client=client,
    )
    return await invoker.complete(prompt, max_tokens=max_tokens)
