"""Client for the Firecrawl v2 crawl API."""
from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from sitebrief.services import http_client
from sitebrief.services.http_client import HttpResult

SERVICE_NAME = "Firecrawl"


def build_crawl_payload(
    url: str,
    *,
    limit: int,
    max_discovery_depth: int,
    crawl_entire_domain: bool,
) -> dict[str, Any]:
    return {
        "url": url,
        "limit": limit,
        "maxDiscoveryDepth": max_discovery_depth,
        "crawlEntireDomain": crawl_entire_domain,
        "allowExternalLinks": False,
        "allowSubdomains": False,
        "ignoreQueryParameters": True,
        "sitemap": "include",
        "scrapeOptions": {
            "formats": ["markdown", "html"],
            "onlyMainContent": True,
        },
    }


class FirecrawlClient:
    """Starts crawl jobs and reads their status and paginated results."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.firecrawl.dev/v2",
        timeout_ms: int = 30000,
        retries: int = 2,
        retry_base_delay_ms: int = 600,
        http: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.strip().rstrip("/")
        self.timeout_ms = timeout_ms
        self.retries = retries
        self.retry_base_delay_ms = retry_base_delay_ms
        self._http = http

    async def _request(self, url: str, *, method: str = "GET", body: Any = None) -> HttpResult:
        return await http_client.request(
            url,
            method=method,
            body=body,
            api_key=self.api_key,
            timeout_ms=self.timeout_ms,
            retries=self.retries,
            retry_base_delay_ms=self.retry_base_delay_ms,
            service=SERVICE_NAME,
            http_client=self._http,
        )

    async def start_crawl(self, payload: dict[str, Any]) -> HttpResult:
        return await self._request(f"{self.base_url}/crawl", method="POST", body=payload)

    async def get_status(self, job_id: str) -> HttpResult:
        return await self._request(f"{self.base_url}/crawl/{quote(job_id, safe='')}")

    async def get_next(self, next_url: str) -> HttpResult:
        """Follow a ``next`` cursor URL returned by a status or page response."""
        return await self._request(next_url)
