from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from sitebrief.agents.orchestrator import BriefOrchestrator
from sitebrief.api.deps import get_brief_orchestrator, get_crawl_orchestrator
from sitebrief.models.schemas import CrawlStartRequest, FailureResponse

router = APIRouter(prefix="/api/flay", tags=["flay"])


def _failure(result: FailureResponse) -> JSONResponse:
    return JSONResponse(
        status_code=result.status_code,
        content=result.model_dump(mode="json", exclude_none=True),
    )


@router.post("")
async def start_crawl(
    request: CrawlStartRequest,
    orchestrator: BriefOrchestrator = Depends(get_crawl_orchestrator),
):
    """Start a crawl job. Returns the job id to poll."""
    result = await orchestrator.start_crawl(request.url, request.goal)
    if isinstance(result, FailureResponse):
        return _failure(result)
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True))


@router.get("/{job_id}")
async def get_crawl(
    job_id: str,
    goal: str | None = None,
    extract: bool = False,
    orchestrator: BriefOrchestrator = Depends(get_brief_orchestrator),
):
    """Crawl progress, or the extracted brief once the crawl is done and ``extract`` is set."""
    result = await orchestrator.get_status_or_brief(job_id, goal=goal, extract=extract)
    if isinstance(result, FailureResponse):
        return _failure(result)
    return JSONResponse(content=result.model_dump(mode="json"))
