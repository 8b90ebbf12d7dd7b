from __future__ import annotations

from dataclasses import dataclass
from typing import Any

UNKNOWN_URL = "Unknown URL"


@dataclass(frozen=True, slots=True)
class CrawlPage:
    """One crawled document as returned by the crawl service."""

    url: str
    title: str = ""
    markdown: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "CrawlPage":
        """Build a page from a raw crawl-service item, tolerating missing fields."""
        if not isinstance(payload, dict):
            return cls(url=UNKNOWN_URL)

        metadata = payload.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}

        url = ""
        for candidate in (metadata.get("sourceURL"), metadata.get("url"), payload.get("url")):
            if isinstance(candidate, str) and candidate.strip():
                url = candidate.strip()
                break

        title = metadata.get("title")
        markdown = payload.get("markdown")
        return cls(
            url=url or UNKNOWN_URL,
            title=title if isinstance(title, str) else "",
            markdown=markdown if isinstance(markdown, str) else "",
        )


@dataclass(frozen=True, slots=True)
class RankedPage:
    page: CrawlPage
    canonical_key: str
    intent: str
    score: int
    content_length: int


@dataclass(frozen=True, slots=True)
class SourceChunk:
    url: str
    title: str
    content: str
    intent: str = ""
