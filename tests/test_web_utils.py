import pytest

from sitebrief.tools.firecrawl import build_crawl_payload
from sitebrief.tools.web_utils import extract_domain, is_valid_http_url, normalize_url_input, trim_content


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("example.com", "https://example.com"),
        ("  https://example.com/x  ", "https://example.com/x"),
        ("HTTP://Example.com", "HTTP://Example.com"),
        ("", ""),
        ("   ", ""),
    ],
)
def test_normalize_url_input(raw, expected):
    assert normalize_url_input(raw) == expected


def test_is_valid_http_url():
    assert is_valid_http_url("https://example.com")
    assert not is_valid_http_url("ftp://example.com")
    assert not is_valid_http_url("https://")
    assert not is_valid_http_url("example.com")


def test_extract_domain():
    assert extract_domain("https://docs.example.com/a") == "docs.example.com"


def test_trim_content_collapses_whitespace():
    assert trim_content("  a\n\n b\t c  ", 100) == "a b c"


def test_trim_content_cuts_with_ellipsis():
    assert trim_content("abcdefghij", 4) == "abcd..."


@pytest.mark.parametrize("limit", [0, 1, 5, 12, 50])
def test_trim_content_is_idempotent(limit):
    text = "The quick   brown fox\njumps over the lazy dog " * 3
    once = trim_content(text, limit)
    assert trim_content(once, limit) == once
    assert len(once) <= limit + 3


def test_build_crawl_payload():
    payload = build_crawl_payload(
        "https://example.com",
        limit=25,
        max_discovery_depth=2,
        crawl_entire_domain=True,
    )
    assert payload == {
        "url": "https://example.com",
        "limit": 25,
        "maxDiscoveryDepth": 2,
        "crawlEntireDomain": True,
        "allowExternalLinks": False,
        "allowSubdomains": False,
        "ignoreQueryParameters": True,
        "sitemap": "include",
        "scrapeOptions": {"formats": ["markdown", "html"], "onlyMainContent": True},
    }
