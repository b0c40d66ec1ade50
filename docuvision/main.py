"""FastAPI application for the DocuVision AI gateway."""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from docuvision.admin import admin_router
from docuvision.ai import ai_router
from docuvision.config import Config, load_config
from docuvision.errors import (
    AllCredentialsExhausted,
    FatalError,
    ParseError,
    QuotaExceeded,
    TransientServiceError,
)
from docuvision.gemini_client import GeminiClient
from docuvision.key_manager import create_key_manager
from docuvision.quota_window import QuotaWindow
from docuvision.retry import RetryPolicy

logger = logging.getLogger(__name__)

QUOTA_SUGGESTION = (
    "Please wait for the quota to reset or upgrade your API plan at "
    "https://ai.google.dev/pricing"
)


def build_gemini_client(config: Config, http_client: httpx.AsyncClient) -> GeminiClient:
    return GeminiClient(
        http_client,
        model=config.gemini_model,
        api_version=config.gemini_api_version,
        retry_policy=RetryPolicy(
            max_attempts=config.max_retries,
            base_delay=config.retry_base_delay_seconds,
            max_delay=config.retry_max_delay_seconds,
            retry_on=(TransientServiceError,),
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: startup and shutdown."""
    config = load_config()

    logging.basicConfig(level=getattr(logging, config.log_level))

    http_client = httpx.AsyncClient(
        base_url=config.gemini_base_url,
        timeout=httpx.Timeout(10.0, read=config.request_timeout_seconds, write=30.0),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
    )

    app.state.config = config
    app.state.http_client = http_client
    app.state.key_manager = create_key_manager(config)
    app.state.gemini_client = build_gemini_client(config, http_client)
    app.state.quota_window = QuotaWindow()

    logger.info("DocuVision gateway started with %d keys", len(config.api_keys))

    yield

    await http_client.aclose()
    logger.info("DocuVision gateway stopped")


app = FastAPI(title="DocuVision AI Gateway", lifespan=lifespan)

app.include_router(admin_router)
app.include_router(ai_router)


def _retry_after(seconds: Optional[int]) -> Dict[str, str]:
    return {"Retry-After": str(seconds or 60)}


@app.exception_handler(AllCredentialsExhausted)
async def all_exhausted_handler(request: Request, exc: AllCredentialsExhausted):
    logger.error("All API keys exhausted on %s", request.url.path)
    return JSONResponse(
        status_code=429,
        headers=_retry_after(exc.retry_after),
        content={
            "success": False,
            "error": "API Quota Exceeded",
            "message": exc.message,
            "suggestion": QUOTA_SUGGESTION,
        },
    )


@app.exception_handler(QuotaExceeded)
async def quota_handler(request: Request, exc: QuotaExceeded):
    return JSONResponse(
        status_code=429,
        headers=_retry_after(exc.retry_after),
        content={
            "success": False,
            "error": "API Quota Exceeded",
            "message": exc.message,
            "suggestion": QUOTA_SUGGESTION,
        },
    )


@app.exception_handler(TransientServiceError)
async def transient_handler(request: Request, exc: TransientServiceError):
    return JSONResponse(
        status_code=503,
        headers=_retry_after(None),
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(FatalError)
async def fatal_handler(request: Request, exc: FatalError):
    logger.error("Gemini call failed on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    logger.error("Unparseable model output on %s: %r", request.url.path, exc.raw_text)
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body"},
    )


@app.get("/")
async def root(request: Request) -> Dict[str, object]:
    key_manager = request.app.state.key_manager
    return {
        "service": "DocuVision AI Gateway",
        "status": "running",
        "total_keys": key_manager.size,
    }


@app.get("/health")
async def health_check(request: Request) -> Dict[str, object]:
    """Health check endpoint with key pool status."""
    key_manager = request.app.state.key_manager
    return {
        "status": "healthy",
        "all_exhausted": key_manager.is_all_exhausted(),
        "total_keys": key_manager.size,
    }
