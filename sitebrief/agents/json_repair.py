"""Tolerant JSON extraction for model output, with a one-shot model-assisted repair."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from sitebrief.agents.completion import ClaudeCompletion
from sitebrief.agents.prompt_builder import build_repair_prompt

RAW_PREVIEW_CHARS = 2000

_CONTROL_CHARS_RE = re.compile(r"[\u0000-\u0008\u000B\u000C\u000E-\u001F]")
_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def sanitize_json_text(text: str) -> str:
    """Drop a BOM and control characters; straighten curly quotes."""
    if text.startswith("\ufeff"):
        text = text[1:]
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    return _CONTROL_CHARS_RE.sub("", text)


def strip_code_fence(text: str) -> str:
    match = _CODE_FENCE_RE.search(text)
    if match and match.group(1):
        return match.group(1).strip()
    return text


def strip_trailing_commas(text: str) -> str:
    """Remove commas directly before ``}``/``]``, leaving quoted strings untouched."""
    result: list[str] = []
    in_string = False
    quote = ""
    escape = False
    length = len(text)

    for i, char in enumerate(text):
        if in_string:
            result.append(char)
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == quote:
                in_string = False
            continue

        if char in ('"', "'"):
            in_string = True
            quote = char
            result.append(char)
            continue

        if char == ",":
            lookahead = i + 1
            while lookahead < length and text[lookahead].isspace():
                lookahead += 1
            if lookahead < length and text[lookahead] in "}]":
                continue

        result.append(char)

    return "".join(result)


def extract_json_fragments(text: str) -> list[str]:
    """Return top-level balanced ``{...}``/``[...]`` spans, ignoring brackets in strings."""
    fragments: list[str] = []
    stack: list[str] = []
    start = -1
    in_string = False
    quote = ""
    escape = False
    pairs = {"}": "{", "]": "["}

    for i, char in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == quote:
                in_string = False
            continue

        if char in ('"', "'"):
            in_string = True
            quote = char
            continue

        if char in "{[":
            if not stack:
                start = i
            stack.append(char)
            continue

        if char not in pairs or not stack:
            continue

        if stack[-1] != pairs[char]:
            stack.clear()
            start = -1
            continue

        stack.pop()
        if not stack and start != -1:
            fragments.append(text[start : i + 1])
            start = -1

    return fragments


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def parse_json_candidate(candidate: Any) -> Any:
    """Parse one candidate as-is, then without trailing commas; unwrap double-encoded JSON."""
    if not isinstance(candidate, str):
        return None

    trimmed = sanitize_json_text(candidate).strip()
    if not trimmed:
        return None

    attempts = [trimmed]
    without_commas = strip_trailing_commas(trimmed)
    if without_commas != trimmed:
        attempts.append(without_commas)

    for attempt in attempts:
        try:
            parsed = json.loads(attempt)
        except ValueError:
            continue
        if isinstance(parsed, str):
            nested = parse_json_candidate(parsed)
            if _is_container(nested):
                return nested
        return parsed

    return None


def safe_json_parse(text: Any) -> dict[str, Any] | list[Any] | None:
    """Best-effort recovery of a JSON object or array from free-form model text."""
    if not isinstance(text, str):
        return None

    base = sanitize_json_text(text).strip()
    if not base:
        return None

    seen: set[str] = set()
    for candidate in (base, strip_code_fence(base)):
        trimmed = candidate.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)

        direct = parse_json_candidate(trimmed)
        if _is_container(direct):
            return direct

        for fragment in extract_json_fragments(trimmed):
            parsed = parse_json_candidate(fragment)
            if _is_container(parsed):
                return parsed

    return None


@dataclass
class RepairOutcome:
    ok: bool
    parsed: dict[str, Any] | None = None
    detail: dict[str, Any] | None = None


async def repair_json(
    raw_text: str,
    completion: ClaudeCompletion,
    *,
    max_tokens: int,
    timeout_ms: int | None = None,
) -> RepairOutcome:
    """Ask the model once to rewrite ``raw_text`` as schema-conformant JSON."""
    result = await completion.complete(
        build_repair_prompt(raw_text),
        max_tokens=max_tokens,
        temperature=0.0,
        timeout_ms=timeout_ms,
        caller="json_repair",
    )
    if not result.ok:
        return RepairOutcome(
            ok=False,
            detail={"error": "JSON repair request failed.", "detail": result.error},
        )

    parsed = safe_json_parse(result.text)
    if not isinstance(parsed, dict):
        return RepairOutcome(
            ok=False,
            detail={
                "error": "JSON repair returned invalid JSON.",
                "raw": result.text[:RAW_PREVIEW_CHARS],
                "stop_reason": result.stop_reason,
            },
        )
    return RepairOutcome(ok=True, parsed=parsed)
