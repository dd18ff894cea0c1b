"""Dependency injection factories for API endpoints.

The processor runtime (and through it the stores and the claims service) is
built once per application in the lifespan and kept on ``app.state``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from app.coder.application.claims_service import ClaimsService
from app.common.exceptions import ClaimsSuiteError
from app.processor.runtime import ProcessorRuntime
from config.settings import Settings, StoreSettings
from observability.logging_config import get_logger

logger = get_logger("api_dependencies")


@lru_cache(maxsize=1)
def get_default_settings() -> Settings:
    """Get cached Settings from environment."""
    return Settings()


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_default_settings()


def get_store_settings(settings: Settings = Depends(get_settings)) -> StoreSettings:
    return settings.store


def get_runtime(request: Request) -> ProcessorRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise ClaimsSuiteError("Processor runtime is not available", code="SERVICE_UNAVAILABLE")
    return runtime


def get_claims_service(runtime: ProcessorRuntime = Depends(get_runtime)) -> ClaimsService:
    return runtime.service


__all__ = [
    "get_claims_service",
    "get_default_settings",
    "get_runtime",
    "get_settings",
    "get_store_settings",
]
