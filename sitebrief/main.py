from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sitebrief.api.deps import MissingCredentialError
from sitebrief.api.routes import brief
from sitebrief.config import settings
from sitebrief.models.schemas import FailureResponse
from sitebrief.services.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("sitebrief API starting")
    yield
    logger.info("sitebrief API stopped")


app = FastAPI(
    title="Sitebrief",
    description="Crawl a website and extract a citation-backed brief with Anthropic Claude",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MissingCredentialError)
async def missing_credential_handler(request, exc: MissingCredentialError):
    logger.error(f"Request rejected: {exc}")
    failure = FailureResponse(error=str(exc), status_code=500)
    return JSONResponse(
        status_code=failure.status_code,
        content=failure.model_dump(mode="json", exclude_none=True),
    )


# Routes
app.include_router(brief.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "sitebrief"}
