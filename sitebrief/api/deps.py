from __future__ import annotations

from sitebrief.agents.orchestrator import BriefOrchestrator
from sitebrief.config import settings


class MissingCredentialError(Exception):
    """A required service key is not configured."""

    def __init__(self, env_name: str):
        self.env_name = env_name
        super().__init__(f"Missing {env_name}.")


def _require(value: str, env_name: str) -> None:
    if not value.strip():
        raise MissingCredentialError(env_name)


def get_crawl_orchestrator() -> BriefOrchestrator:
    """Orchestrator for starting crawls; only the Firecrawl key is needed."""
    _require(settings.firecrawl_api_key, "FIRECRAWL_API_KEY")
    return BriefOrchestrator()


def get_brief_orchestrator() -> BriefOrchestrator:
    """Orchestrator for status polling and extraction; both keys are needed."""
    _require(settings.firecrawl_api_key, "FIRECRAWL_API_KEY")
    _require(settings.claude_api_key, "CLAUDE_API_KEY")
    return BriefOrchestrator()
