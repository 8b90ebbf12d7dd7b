from __future__ import annotations

import re
from urllib.parse import urlparse

_WHITESPACE_RE = re.compile(r"\s+")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
ELLIPSIS = "..."


def normalize_url_input(value: str) -> str:
    """Trim user input and default to https when no scheme is given."""
    trimmed = (value or "").strip()
    if not trimmed:
        return ""
    if _SCHEME_RE.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def is_valid_http_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def trim_content(text: str, max_chars: int) -> str:
    """Collapse whitespace and cut to ``max_chars``, appending "..." when cut.

    Already-trimmed text comes back unchanged, so the result is at most
    ``max_chars + 3`` characters long.
    """
    limit = max(int(max_chars), 0)
    compact = _WHITESPACE_RE.sub(" ", text or "").strip()
    if len(compact) <= limit:
        return compact
    if compact.endswith(ELLIPSIS) and len(compact) - len(ELLIPSIS) <= limit:
        return compact
    return f"{compact[:limit]}{ELLIPSIS}"


def extract_domain(url: str) -> str:
    """Extract domain from URL for display."""
    try:
        return urlparse(url).netloc
    except ValueError:
        return url
