from __future__ import annotations

import json
from typing import Any, Iterable

from sitebrief.models.pages import SourceChunk
from sitebrief.services.prompt_store import render_prompt

# Advisory per-field limits written into the prompt.
BRIEF_FIELD_LIMITS: dict[str, int] = {
    "key_facts": 10,
    "pricing_offers": 8,
    "claims_proof": 10,
    "faqs_policies": 8,
    "trust_signals": 8,
    "entities": 10,
    "risks_gaps": 5,
}

_EVIDENCE = {"source_url": "string", "evidence": "string"}

BRIEF_SCHEMA: dict[str, Any] = {
    "title": "string",
    "one_liner": "string",
    "executive_summary": "string",
    "key_facts": [{"label": "string", "value": "string", **_EVIDENCE}],
    "pricing_offers": [{"plan": "string", "price": "string", "notes": "string", **_EVIDENCE}],
    "claims_proof": [{"claim": "string", "proof": "string", **_EVIDENCE}],
    "faqs_policies": [{"question": "string", "answer": "string", **_EVIDENCE}],
    "trust_signals": [{"signal": "string", **_EVIDENCE}],
    "entities": [{"name": "string", "type": "string", "relevance": "string", **_EVIDENCE}],
    "risks_gaps": ["string"],
    "sources": [{"url": "string", "title": "string"}],
}


def schema_text() -> str:
    return json.dumps(BRIEF_SCHEMA, indent=2)


def format_limits(limits: dict[str, int] = BRIEF_FIELD_LIMITS) -> str:
    return "\n".join(f"- {name}: max {limit}" for name, limit in limits.items())


def format_source_block(index: int, source: SourceChunk) -> str:
    """Render one numbered source block; ``index`` is 1-based."""
    lines = [
        f"[Source {index}] URL: {source.url}",
        f"Title: {source.title or 'Untitled'}",
    ]
    if source.intent:
        lines.append(f"Intent: {source.intent}")
    lines.append(f"Content: {source.content.strip()}")
    return "\n".join(lines)


def build_prompt(goal: str, sources: Iterable[SourceChunk]) -> str:
    source_blocks = "\n\n".join(
        format_source_block(index, source) for index, source in enumerate(sources, 1)
    )
    return render_prompt(
        "brief.extraction_prompt",
        goal=goal,
        limits=format_limits(),
        schema=schema_text(),
        sources=source_blocks,
    )


def build_repair_prompt(malformed_text: str) -> str:
    return render_prompt(
        "brief.repair_prompt",
        schema=schema_text(),
        malformed=malformed_text,
    )
