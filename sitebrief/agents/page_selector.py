"""Page ranking, intent classification and quota-based selection for crawl results."""

from __future__ import annotations

import re
from typing import Callable, Iterable
from urllib.parse import urlparse

from sitebrief.models.pages import CrawlPage, RankedPage

LENGTH_BONUS_CHARS = 1600
MAX_LENGTH_BONUS = 3
HOMEPAGE_BONUS = 2
BLOG_PENALTY = 1

# (pattern, weight); additive across every matching rule.
URL_WEIGHT_RULES: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"pricing|price|plans|plan", re.IGNORECASE), 4),
    (re.compile(r"faq|support|help|docs|documentation", re.IGNORECASE), 3),
    (re.compile(r"about|company|team|careers", re.IGNORECASE), 2),
    (re.compile(r"contact|press|media", re.IGNORECASE), 2),
    (re.compile(r"testimonial|review|customer|case-study|case-studies", re.IGNORECASE), 2),
    (re.compile(r"security|privacy|terms|compliance", re.IGNORECASE), 2),
    (re.compile(r"features|product|solutions|use-cases", re.IGNORECASE), 1),
    (re.compile(r"blog|insights|resources", re.IGNORECASE), 1),
)

_HOMEPAGE_PATH_RE = re.compile(r"^/(?:home|index(?:\.html?)?)?$", re.IGNORECASE)


def _pattern(expression: str) -> Callable[[str], bool]:
    compiled = re.compile(expression, re.IGNORECASE)
    return lambda target: compiled.search(target) is not None


def _is_homepage(target: str) -> bool:
    path = target.split("?", 1)[0].rstrip("/") or "/"
    return _HOMEPAGE_PATH_RE.match(path) is not None


# Evaluated in order against the URL path (+ query); first match wins.
INTENT_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (_is_homepage, "homepage"),
    (_pattern(r"pricing|price|plans?|billing"), "pricing"),
    (_pattern(r"faq|support|help|docs|documentation|knowledge-?base"), "faq"),
    (_pattern(r"testimonial|review|customer|case-stud|success-stor"), "trust"),
    (_pattern(r"about|company|team|careers|mission"), "about"),
    (_pattern(r"legal|privacy|terms|security|compliance|cookie|gdpr"), "legal"),
    (_pattern(r"features?|product|solutions?|use-cases?|platform|integrations?"), "product"),
    (_pattern(r"contact|press|media"), "contact"),
    (_pattern(r"blog|insights|resources|news|articles?"), "blog"),
)
DEFAULT_INTENT = "general"

INTENT_QUOTAS: tuple[tuple[str, int], ...] = (
    ("pricing", 4),
    ("product", 4),
    ("faq", 3),
    ("trust", 3),
    ("about", 2),
    ("legal", 2),
    ("contact", 2),
    ("blog", 1),
    ("general", 8),
)


def score_url(url: str) -> int:
    return sum(weight for pattern, weight in URL_WEIGHT_RULES if pattern.search(url or ""))


def canonical_key(url: str) -> str:
    """Origin + path without trailing slashes; query and fragment are dropped."""
    raw = (url or "").strip()
    try:
        parsed = urlparse(raw)
    except ValueError:
        return raw
    if not parsed.scheme or not parsed.netloc:
        return raw
    path = parsed.path.rstrip("/")
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"


def _intent_target(url: str) -> str:
    raw = (url or "").strip()
    try:
        parsed = urlparse(raw)
    except ValueError:
        return raw
    if not parsed.scheme or not parsed.netloc:
        return raw
    path = parsed.path or "/"
    return f"{path}?{parsed.query}" if parsed.query else path


def classify_intent(url: str) -> str:
    target = _intent_target(url)
    for predicate, intent in INTENT_RULES:
        if predicate(target):
            return intent
    return DEFAULT_INTENT


def rank_page(page: CrawlPage) -> RankedPage | None:
    """Score a page, or return ``None`` when it has no content to offer."""
    content = (page.markdown or "").strip()
    if not content:
        return None

    content_length = len(content)
    intent = classify_intent(page.url)
    score = score_url(page.url) + min(content_length // LENGTH_BONUS_CHARS, MAX_LENGTH_BONUS)
    if intent == "homepage":
        score += HOMEPAGE_BONUS
    elif intent == "blog":
        score -= BLOG_PENALTY

    return RankedPage(
        page=page,
        canonical_key=canonical_key(page.url),
        intent=intent,
        score=score,
        content_length=content_length,
    )


def rank_pages(pages: Iterable[CrawlPage]) -> list[RankedPage]:
    """Rank non-empty pages by score, then content length (both descending)."""
    ranked = [entry for entry in (rank_page(page) for page in pages) if entry is not None]
    ranked.sort(key=lambda entry: (entry.score, entry.content_length), reverse=True)
    return ranked


class PageSelector:
    """Picks a bounded, intent-diverse subset of crawled pages."""

    def __init__(self, quotas: tuple[tuple[str, int], ...] = INTENT_QUOTAS):
        self.quotas = quotas

    def select(self, pages: Iterable[CrawlPage], max_selected: int) -> list[RankedPage]:
        limit = max(int(max_selected), 0)
        ranked = rank_pages(pages)
        selected: list[RankedPage] = []
        seen_keys: set[str] = set()

        def take(entry: RankedPage) -> bool:
            if len(selected) >= limit or entry.canonical_key in seen_keys:
                return False
            selected.append(entry)
            seen_keys.add(entry.canonical_key)
            return True

        homepage = next((entry for entry in ranked if entry.intent == "homepage"), None)
        if homepage is not None:
            take(homepage)

        for intent, quota in self.quotas:
            taken = 0
            for entry in ranked:
                if taken >= quota or len(selected) >= limit:
                    break
                if entry.intent == intent and take(entry):
                    taken += 1

        for entry in ranked:
            if len(selected) >= limit:
                break
            take(entry)

        return selected


def select_pages(pages: Iterable[CrawlPage], max_selected: int) -> list[RankedPage]:
    return PageSelector().select(pages, max_selected)
