"""Tests for the Claude completion invoker."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import anthropic
import httpx
import pytest

from sitebrief.agents.completion import ClaudeCompletion, complete, extract_text, get_client

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _fake_client(response=None, error=None):
    create = AsyncMock(return_value=response, side_effect=error)
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def _response(*blocks, stop_reason="end_turn"):
    usage = SimpleNamespace(model_dump=lambda: {"input_tokens": 120, "output_tokens": 30})
    return SimpleNamespace(content=list(blocks), stop_reason=stop_reason, usage=usage)


class TestExtractText:
    def test_joins_text_blocks_from_objects_and_dicts(self):
        blocks = [
            SimpleNamespace(type="text", text="Hello"),
            {"type": "text", "text": "World"},
        ]
        assert extract_text(blocks) == "Hello\nWorld"

    def test_skips_non_text_blocks(self):
        blocks = [
            SimpleNamespace(type="tool_use", id="t1", input={}),
            SimpleNamespace(type="text", text="  only this  "),
        ]
        assert extract_text(blocks) == "only this"

    def test_handles_missing_content(self):
        assert extract_text(None) == ""
        assert extract_text([]) == ""


def test_get_client_disables_sdk_retries():
    with patch("sitebrief.agents.completion.anthropic.AsyncAnthropic") as mock_cls:
        get_client("sk-test", "https://api.anthropic.com")

    mock_cls.assert_called_once_with(
        api_key="sk-test",
        max_retries=0,
        base_url="https://api.anthropic.com",
    )


@pytest.mark.asyncio
async def test_complete_success_sends_single_user_message():
    client = _fake_client(_response(SimpleNamespace(type="text", text='{"title": "Acme"}')))
    invoker = ClaudeCompletion(model="claude-test", client=client)

    result = await invoker.complete("PROMPT", max_tokens=4000)

    assert result.ok is True
    assert result.text == '{"title": "Acme"}'
    assert result.stop_reason == "end_turn"
    assert result.usage == {"input_tokens": 120, "output_tokens": 30}
    client.messages.create.assert_awaited_once_with(
        model="claude-test",
        max_tokens=4000,
        temperature=0.2,
        messages=[{"role": "user", "content": "PROMPT"}],
        timeout=180.0,
    )


@pytest.mark.asyncio
async def test_complete_overrides_temperature_and_timeout():
    client = _fake_client(_response(SimpleNamespace(type="text", text="{}")))
    invoker = ClaudeCompletion(model="claude-test", client=client)

    await invoker.complete("PROMPT", max_tokens=100, temperature=0.0, timeout_ms=5000)

    kwargs = client.messages.create.await_args.kwargs
    assert kwargs["temperature"] == 0.0
    assert kwargs["timeout"] == 5.0


@pytest.mark.asyncio
async def test_complete_timeout_is_reported():
    client = _fake_client(error=anthropic.APITimeoutError(request=_REQUEST))
    invoker = ClaudeCompletion(model="claude-test", client=client, timeout_ms=5000)

    result = await invoker.complete("PROMPT", max_tokens=100)

    assert result.ok is False
    assert result.error["error"] == "Claude request timed out."
    assert result.error["timeout_ms"] == 5000


@pytest.mark.asyncio
async def test_complete_status_error_keeps_status_and_body():
    response = httpx.Response(529, request=_REQUEST)
    error = anthropic.APIStatusError(
        "Overloaded",
        response=response,
        body={"type": "error", "error": {"type": "overloaded_error"}},
    )
    invoker = ClaudeCompletion(model="claude-test", client=_fake_client(error=error))

    result = await invoker.complete("PROMPT", max_tokens=100)

    assert result.ok is False
    assert result.error["error"] == "Claude request failed."
    assert result.error["status"] == 529
    assert result.error["detail"] == {"type": "error", "error": {"type": "overloaded_error"}}


@pytest.mark.asyncio
async def test_complete_connection_error_is_reported():
    error = anthropic.APIConnectionError(request=_REQUEST)
    invoker = ClaudeCompletion(model="claude-test", client=_fake_client(error=error))

    result = await invoker.complete("PROMPT", max_tokens=100)

    assert result.ok is False
    assert result.error["error"] == "Claude request failed."


@pytest.mark.asyncio
async def test_complete_logs_call():
    client = _fake_client(_response(SimpleNamespace(type="text", text="ok")))
    invoker = ClaudeCompletion(model="claude-test", client=client)

    with patch("sitebrief.agents.completion.log_service") as mock_log:
        await invoker.complete("PROMPT", max_tokens=100, caller="brief")

    mock_log.log_llm_call.assert_called_once()
    kwargs = mock_log.log_llm_call.call_args.kwargs
    assert kwargs["caller"] == "brief"
    assert kwargs["input_tokens"] == 120
    assert kwargs["output_tokens"] == 30


@pytest.mark.asyncio
async def test_module_level_complete_uses_given_client():
    client = _fake_client(_response(SimpleNamespace(type="text", text="done")))

    result = await complete(
        "PROMPT",
        max_tokens=50,
        model="claude-test",
        api_key="sk-test",
        client=client,
    )

    assert result.text == "done"
    assert client.messages.create.await_args.kwargs["max_tokens"] == 50


@pytest.mark.asyncio
async def test_complete_other_sdk_errors_are_reported():
    error = anthropic.APIResponseValidationError(response=httpx.Response(200, request=_REQUEST), body=None)
    invoker = ClaudeCompletion(model="claude-test", client=_fake_client(error=error))

    result = await invoker.complete("PROMPT", max_tokens=100)

    assert result.ok is False
    assert result.error["error"] == "Claude request failed."
    assert result.error["detail"]
