"""FastAPI application wiring for the Claims Suite services.

Run locally with ``claims-suite serve`` or
``uvicorn app.api.fastapi_app:app --port 8000``.
"""

# ruff: noqa: E402

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


def _truthy_env(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


# Prefer explicitly-exported environment variables over values in `.env`.
# Tests can opt out (and avoid accidental real network calls) by setting `CLAIMS_SKIP_DOTENV=1`.
if not _truthy_env("CLAIMS_SKIP_DOTENV"):
    try:
        load_dotenv(dotenv_path=Path(__file__).resolve().parents[2] / ".env", override=False)
    except OSError as e:
        logging.getLogger(__name__).warning(
            "Failed to load .env via python-dotenv (%s); proceeding with OS env only",
            type(e).__name__,
        )

from app.api.dependencies import get_default_settings
from app.api.routes.claims import router as claims_router
from app.api.routes.notes import router as notes_router
from app.api.routes.processor import router as processor_router
from app.api.schemas import error_payload
from app.coder.application.claims_service import ClaimsService
from app.common.exceptions import (
    ClaimsSuiteError,
    DuplicateRecordError,
    InputError,
    PipelineTimeoutError,
    ReasoningProviderError,
    RecordNotFoundError,
)
from app.processor.runtime import ProcessorRuntime
from config.settings import Settings
from observability.logging_config import get_logger

logger = get_logger("api")

API_VERSION = "0.1.0"
SHUTDOWN_GRACE_S = 5.0

_HTTP_ERROR_CODES = {
    400: "INVALID_INPUT",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "FILE_TOO_LARGE",
}


def status_for_error(exc: ClaimsSuiteError) -> int:
    if isinstance(exc, InputError):
        return 400
    if isinstance(exc, RecordNotFoundError):
        return 404
    if isinstance(exc, DuplicateRecordError):
        return 409
    if isinstance(exc, ReasoningProviderError):
        return 503 if exc.transient else 502
    if isinstance(exc, PipelineTimeoutError):
        return 504
    if exc.code == "SERVICE_UNAVAILABLE":
        return 503
    return 500


# ============================================================================
# Exception handlers
# ============================================================================


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_payload("INVALID_INPUT", "Request body failed validation", jsonable_encoder(details)),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 405:
        message = f"Method {request.method} is not allowed for {request.url.path}"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code, message),
        headers=dict(exc.headers or {}),
    )


async def _claims_error_handler(request: Request, exc: ClaimsSuiteError) -> JSONResponse:
    status_code = status_for_error(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={"path": request.url.path, "error_code": exc.code, "status_code": status_code},
    )
    return JSONResponse(
        status_code=status_code,
        content=error_payload(exc.code, exc.message, jsonable_encoder(exc.details)),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content=error_payload("INTERNAL_ERROR", "An unexpected error occurred"),
    )


# ============================================================================
# Application factory
# ============================================================================


def create_app(
    settings: Optional[Settings] = None,
    *,
    service: Optional[ClaimsService] = None,
) -> FastAPI:
    """Build the API. ``service`` overrides the settings-built ClaimsService (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan with resource management.

        Startup:
        - Loads the code registry and rule tables, opens the JSON stores
        - Recovers pending work items when ``PROCESSOR_AUTO_START`` is set

        Shutdown:
        - Gives in-flight items a short grace period, then cancels them
        """
        app_settings: Settings = app.state.settings
        runtime = ProcessorRuntime.from_settings(app_settings, service=service)
        app.state.runtime = runtime
        if app_settings.processor.auto_start:
            await runtime.initialize()

        yield  # Application runs

        await runtime.close(timeout_s=SHUTDOWN_GRACE_S)
        app.state.runtime = None

    app = FastAPI(
        title="Claims Suite API",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings or get_default_settings()
    app.state.runtime = None

    # CORS (dev-friendly defaults)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(ClaimsSuiteError, _claims_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(notes_router, prefix="/api")
    app.include_router(claims_router, prefix="/api")
    app.include_router(processor_router, prefix="/api")

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Claims Suite API",
            "version": API_VERSION,
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "upload": "/api/notes/upload",
                "notes": "/api/notes",
                "claims": "/api/claims",
                "processor_status": "/api/processor/status",
                "processor_progress": "/api/processor/progress/{work_item_id}",
            },
        }

    @app.get("/health")
    async def health() -> dict[str, bool]:
        # Liveness probe: keep payload stable and minimal.
        return {"ok": True}

    return app


app = create_app()

__all__ = ["app", "create_app", "status_for_error"]
