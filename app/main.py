"""
FastAPI application for the detection-risk orchestrator.

Creates the app, mounts the routers and renders orchestrator exceptions
as standardized JSON error responses.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import analytics, sessions, settings
from app.core.env_validation import get_env_summary, validate_required_env_vars
from app.core.errors import error_response_from_exception
from app.core.exceptions import OrchestratorException, RateLimitError
from app.core.logging_config import setup_logging

setup_logging("app")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Raises ConfigurationError on invalid values
    validate_required_env_vars()
    logger.info(f"Environment: {get_env_summary()}")
    yield


app = FastAPI(
    title="Detection-Risk Orchestrator",
    description="Scores finalized proposal drafts for AI-detection risk and escalates humanization on request",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(settings.router)
app.include_router(analytics.router)


@app.exception_handler(OrchestratorException)
async def orchestrator_exception_handler(request: Request, exc: OrchestratorException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code}: {exc.message}")
    response = error_response_from_exception(exc)
    if isinstance(exc, RateLimitError) and exc.details.get("retry_after") is not None:
        response.headers["Retry-After"] = str(exc.details["retry_after"])
    return response


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
