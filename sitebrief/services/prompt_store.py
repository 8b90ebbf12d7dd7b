"""Prompt templates kept in ``prompts/prompts.json``, rendered with ``string.Template``."""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"

# (mtime_ns, catalog); reloaded whenever the file changes on disk.
_cached: tuple[int, dict[str, Any]] | None = None


def load_catalog() -> dict[str, Any]:
    global _cached
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _cached is not None and _cached[0] == mtime_ns:
        return _cached[1]

    catalog = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
    if not isinstance(catalog, dict):
        raise ValueError(f"Prompt catalog must be a JSON object: {PROMPTS_PATH}")
    _cached = (mtime_ns, catalog)
    return catalog


def get_template(key: str) -> Template:
    """Look up a dotted key; a list of lines is joined with newlines."""
    node: Any = load_catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(f"Unknown prompt: {key}")
        node = node[part]

    if isinstance(node, list) and all(isinstance(line, str) for line in node):
        node = "\n".join(node)
    if not isinstance(node, str):
        raise TypeError(f"Prompt {key} must be a string or a list of lines")
    return Template(node)


def render_prompt(key: str, **values: Any) -> str:
    template = get_template(key)
    try:
        return template.substitute(values)
    except KeyError as exc:
        raise KeyError(f"Prompt {key} needs a value for ${exc.args[0]}") from exc
