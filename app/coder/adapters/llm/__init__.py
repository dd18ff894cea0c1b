# Reasoning provider adapters
from __future__ import annotations

from app.common.llm import OpenAICompatClient
from config.settings import ReasoningSettings
from observability.logging_config import get_logger

from .openai_compat_reasoner import OpenAICompatReasoner
from .reasoning_port import ReasoningProvider
from .stub_reasoner import DeterministicStubReasoner

logger = get_logger("reasoning")


def build_reasoning_provider(settings: ReasoningSettings | None = None) -> ReasoningProvider:
    """Select the configured provider, falling back to the offline stub."""
    settings = settings or ReasoningSettings()
    if settings.provider == "stub":
        return DeterministicStubReasoner(reason="REASONING_PROVIDER=stub")
    if not settings.api_key:
        return DeterministicStubReasoner(reason="REASONING_API_KEY not set")
    logger.info("Using OpenAI-compatible reasoning provider", extra={"model": settings.model})
    return OpenAICompatReasoner(OpenAICompatClient(settings))


__all__ = [
    "DeterministicStubReasoner",
    "OpenAICompatReasoner",
    "ReasoningProvider",
    "build_reasoning_provider",
]
