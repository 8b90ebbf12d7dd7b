from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from sitebrief.agents.completion import ClaudeCompletion
from sitebrief.agents.json_repair import RAW_PREVIEW_CHARS, repair_json, safe_json_parse
from sitebrief.agents.page_selector import PageSelector
from sitebrief.agents.prompt_builder import BRIEF_FIELD_LIMITS, build_prompt
from sitebrief.config import RequestBudget, Settings, settings
from sitebrief.models.pages import CrawlPage, RankedPage, SourceChunk
from sitebrief.models.schemas import (
    DEFAULT_GOAL,
    Brief,
    BriefMeta,
    BriefResponse,
    CrawlStartResponse,
    FailureResponse,
    ProgressResponse,
    ReadyResponse,
)
from sitebrief.services import logger as log_service
from sitebrief.tools import web_utils
from sitebrief.tools.firecrawl import FirecrawlClient, build_crawl_payload

StatusOrBrief = ProgressResponse | ReadyResponse | BriefResponse | FailureResponse


class PipelineState(str, Enum):
    PENDING_CRAWL = "pending_crawl"
    PAGINATING = "paginating"
    SELECTING = "selecting"
    PROMPTING = "prompting"
    COMPLETING = "completing"
    PARSING = "parsing"
    REPAIRING = "repairing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PaginationOutcome:
    pages: list[CrawlPage] = field(default_factory=list)
    requests: int = 0
    truncated: bool = False
    error: dict[str, Any] | None = None


def normalize_goal(goal: str | None) -> str:
    cleaned = (goal or "").strip()
    return cleaned or DEFAULT_GOAL


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class BriefOrchestrator:
    """Turns a Firecrawl crawl job into a citation-backed brief.

    Flow for ``get_status_or_brief``:
      1. Fetch crawl status; report progress until the job is completed
      2. Follow ``next`` cursors within the pagination budget
      3. Rank and quota-select pages, trim them to the character budgets
      4. Build the prompt and call Claude once
      5. Parse the output, falling back to a single repair call

    Every branch returns a response model; upstream failures never raise.
    """

    def __init__(
        self,
        *,
        config: Settings | None = None,
        budget: RequestBudget | None = None,
        crawler: FirecrawlClient | None = None,
        completion: ClaudeCompletion | None = None,
        selector: PageSelector | None = None,
    ):
        self.config = config or settings
        self.budget = budget or RequestBudget.from_settings(self.config)
        self.crawler = crawler or FirecrawlClient(
            api_key=self.config.firecrawl_api_key,
            base_url=self.config.firecrawl_base_url,
            timeout_ms=self.budget.firecrawl_timeout_ms,
            retries=self.budget.firecrawl_retries,
            retry_base_delay_ms=self.budget.firecrawl_retry_base_delay_ms,
        )
        self.completion = completion or ClaudeCompletion(
            model=self.config.claude_model,
            api_key=self.config.claude_api_key,
            base_url=self.config.claude_base_url,
            temperature=self.config.claude_temperature,
            timeout_ms=self.budget.claude_timeout_ms,
        )
        self.selector = selector or PageSelector()

    @staticmethod
    def _enter(job_id: str, state: PipelineState, data: dict[str, Any] | None = None) -> None:
        status = "failed" if state is PipelineState.FAILED else "entered"
        log_service.log_pipeline_step(job_id, state.value, status, data)

    def _fail(
        self,
        job_id: str,
        error: str,
        *,
        detail: Any = None,
        raw: str | None = None,
        repair: dict[str, Any] | None = None,
        status_code: int = 502,
    ) -> FailureResponse:
        self._enter(job_id, PipelineState.FAILED, {"error": error})
        return FailureResponse(
            error=error,
            detail=detail,
            raw=raw,
            repair=repair,
            status_code=status_code,
        )

    async def start_crawl(self, url: str, goal: str | None = None) -> CrawlStartResponse | FailureResponse:
        """Submit a crawl job for ``url``."""
        target = web_utils.normalize_url_input(url)
        if not target or not web_utils.is_valid_http_url(target):
            return FailureResponse(error="Please provide a valid http(s) URL.", status_code=400)

        resolved_goal = normalize_goal(goal)
        limit = self.config.crawl_page_limit
        payload = build_crawl_payload(
            target,
            limit=limit,
            max_discovery_depth=self.config.crawl_max_discovery_depth,
            crawl_entire_domain=self.config.crawl_entire_domain,
        )
        result = await self.crawler.start_crawl(payload)
        job_id = result.data.get("id") if isinstance(result.data, dict) else None
        if not result.ok or not isinstance(job_id, str) or not job_id:
            log_service.log_event(
                event_type="crawl_start_failed",
                message="Firecrawl crawl failed",
                url=target,
                status=result.status,
                attempts=result.attempts,
            )
            return FailureResponse(
                error="Firecrawl crawl failed.",
                detail=result.data,
                status_code=502,
            )

        log_service.log_event(
            event_type="crawl_started",
            message="Firecrawl crawl started",
            job_id=job_id,
            url=target,
            limit=limit,
        )
        return CrawlStartResponse(job_id=job_id, goal=resolved_goal, limit=limit)

    async def get_status_or_brief(
        self,
        job_id: str,
        goal: str | None = None,
        extract: bool = False,
    ) -> StatusOrBrief:
        """Report crawl progress, or, once completed and requested, build the brief."""
        self._enter(job_id, PipelineState.PENDING_CRAWL)
        status_result = await self.crawler.get_status(job_id)
        if not status_result.ok:
            return self._fail(
                job_id,
                "Firecrawl status failed.",
                detail={
                    "status": status_result.status,
                    "attempts": status_result.attempts,
                    "detail": status_result.data,
                },
            )

        data = status_result.data if isinstance(status_result.data, dict) else {}
        crawl_status = data.get("status")
        completed = _as_int(data.get("completed"))
        total = _as_int(data.get("total"))

        if crawl_status != "completed":
            return ProgressResponse(
                status=crawl_status if isinstance(crawl_status, str) and crawl_status else "processing",
                completed=completed,
                total=total,
            )

        if not extract:
            return ReadyResponse(completed=completed, total=total)

        self._enter(job_id, PipelineState.PAGINATING)
        pagination = await self._collect_pages(data)

        self._enter(job_id, PipelineState.SELECTING, {"pages": len(pagination.pages)})
        ranked = self.selector.select(pagination.pages, self.budget.max_selected_pages)
        sources = self._build_sources(ranked)

        meta = BriefMeta(
            pages_used=len(sources),
            total_pages=len(pagination.pages),
            pagination_truncated=pagination.truncated,
            pagination_requests=pagination.requests,
            pagination_error=pagination.error,
            selected_intents=[source.intent for source in sources],
            model=self.completion.model,
        )

        if not sources:
            self._enter(job_id, PipelineState.DONE, {"pages_used": 0})
            return BriefResponse(result=Brief.not_found(), meta=meta)

        return await self._synthesize(job_id, normalize_goal(goal), sources, meta)

    async def _collect_pages(self, status_data: dict[str, Any]) -> PaginationOutcome:
        max_pages = self.budget.max_collected_pages
        outcome = PaginationOutcome()
        raw_pages: list[Any] = []

        def absorb(batch: Any) -> None:
            if not isinstance(batch, list):
                return
            room = max_pages - len(raw_pages)
            if len(batch) > room:
                outcome.truncated = True
            raw_pages.extend(batch[: max(room, 0)])

        absorb(status_data.get("data"))
        next_url = status_data.get("next")

        while isinstance(next_url, str) and next_url:
            if outcome.requests >= self.budget.max_pagination_requests or len(raw_pages) >= max_pages:
                outcome.truncated = True
                break

            result = await self.crawler.get_next(next_url)
            outcome.requests += 1
            if not result.ok:
                outcome.error = {
                    "status": result.status,
                    "attempts": result.attempts,
                    "detail": result.data,
                }
                log_service.log_event(
                    event_type="pagination_failed",
                    message="Stopped following crawl pagination",
                    requests=outcome.requests,
                    status=result.status,
                )
                break

            page_data = result.data if isinstance(result.data, dict) else {}
            absorb(page_data.get("data"))
            next_url = page_data.get("next")

        outcome.pages = [CrawlPage.from_payload(item) for item in raw_pages]
        return outcome

    def _build_sources(self, ranked: list[RankedPage]) -> list[SourceChunk]:
        """Trim selected pages against the per-page and total character budgets."""
        sources: list[SourceChunk] = []
        total_chars = 0

        for entry in ranked:
            markdown = entry.page.markdown
            content = web_utils.trim_content(markdown, self.budget.max_chars_per_page)
            if not content:
                continue
            if total_chars + len(content) > self.budget.max_total_chars:
                remaining = max(self.budget.max_total_chars - total_chars, 0)
                if remaining < self.budget.min_remaining_chars:
                    break
                content = web_utils.trim_content(markdown, remaining)
            total_chars += len(content)
            sources.append(
                SourceChunk(
                    url=entry.page.url,
                    title=entry.page.title,
                    content=content,
                    intent=entry.intent,
                )
            )

        return sources

    def _to_brief(self, parsed: dict[str, Any]) -> Brief:
        """Validate a parsed object; raises ``ValidationError`` on a schema mismatch."""
        brief = Brief.model_validate(parsed)
        if self.config.enforce_brief_limits:
            brief = brief.truncated(BRIEF_FIELD_LIMITS)
        return brief

    async def _synthesize(
        self,
        job_id: str,
        goal: str,
        sources: list[SourceChunk],
        meta: BriefMeta,
    ) -> BriefResponse | FailureResponse:
        self._enter(job_id, PipelineState.PROMPTING, {"sources": len(sources)})
        prompt = build_prompt(goal, sources)

        self._enter(job_id, PipelineState.COMPLETING, {"prompt_chars": len(prompt)})
        completion = await self.completion.complete(
            prompt,
            max_tokens=self.budget.claude_max_tokens,
            timeout_ms=self.budget.claude_timeout_ms,
        )
        if not completion.ok:
            return self._fail(job_id, "Claude extraction failed.", detail=completion.error)

        meta.stop_reason = completion.stop_reason
        meta.usage = completion.usage

        self._enter(job_id, PipelineState.PARSING, {"stop_reason": completion.stop_reason})
        parsed = safe_json_parse(completion.text)

        if not isinstance(parsed, dict):
            self._enter(job_id, PipelineState.REPAIRING)
            repair = await repair_json(
                completion.text,
                self.completion,
                max_tokens=self.budget.repair_max_tokens,
                timeout_ms=self.budget.repair_timeout_ms,
            )
            if not repair.ok:
                return self._fail(
                    job_id,
                    "Claude returned invalid JSON.",
                    raw=completion.text[:RAW_PREVIEW_CHARS],
                    repair=repair.detail,
                )
            parsed = repair.parsed
            meta.json_repaired = True

        try:
            brief = self._to_brief(parsed)
        except ValidationError as exc:
            return self._fail(
                job_id,
                "Claude returned JSON that does not match the brief schema.",
                detail=exc.errors(include_url=False, include_context=False),
                raw=completion.text[:RAW_PREVIEW_CHARS],
            )

        self._enter(job_id, PipelineState.DONE, {"pages_used": meta.pages_used, "repaired": meta.json_repaired})
        return BriefResponse(result=brief, meta=meta)
