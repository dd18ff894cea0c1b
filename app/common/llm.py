"LLM client infrastructure shared across app."

from __future__ import annotations

import json
from typing import Any

import httpx

from app.common.exceptions import ErrorKind, ReasoningProviderError
from app.infra.llm_control import (
    classify_status_code,
    classify_transport_error,
    parse_retry_after_seconds,
)
from config.settings import ReasoningSettings
from observability.logging_config import get_logger

logger = get_logger("common.llm")


def normalize_openai_base_url(base_url: str | None) -> str:
    normalized = (base_url or "").strip().rstrip("/")
    if normalized.endswith("/v1"):
        normalized = normalized[:-3].rstrip("/")
    return normalized or "https://api.openai.com"


def _openai_request_id(response: httpx.Response) -> str | None:
    for header_name in ("x-request-id", "request-id", "x-openai-request-id", "openai-request-id"):
        value = response.headers.get(header_name)
        if value:
            return value
    return None


def _openai_error_message(response: httpx.Response) -> str:
    message = ""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            message = str(err.get("message") or "")

    if not message:
        message = str((response.text or "")).strip()

    message = " ".join(message.split())
    if len(message) > 500:
        message = message[:500] + "…"

    return message or f"HTTP {response.status_code} from provider"


def strip_markdown_code_fences(text: str) -> str:
    if not text:
        return ""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.lstrip("`").strip()
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:].strip()
    if cleaned.endswith("```"):
        cleaned = cleaned[: -3].strip()
    return cleaned.strip()


class OpenAICompatClient:
    """Async client for an OpenAI-compatible Chat Completions endpoint.

    The client makes exactly one request per call. Failures are raised as
    ReasoningProviderError with a transient/permanent classification; retrying
    is the caller's decision.
    """

    def __init__(self, settings: ReasoningSettings, *, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.model = settings.model
        self.base_url = normalize_openai_base_url(settings.base_url)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}" if self.settings.api_key else "",
            "Content-Type": "application/json",
        }

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(connect=10.0, read=self.settings.timeout_s, write=30.0, pool=30.0)

    async def complete_json(self, *, system_prompt: str, user_prompt: str) -> Any:
        """Run one chat completion in JSON mode and return the parsed payload."""
        url = f"{self.base_url}/v1/chat/completions"
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.settings.temperature,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout(), transport=self._transport) as client:
                response = await client.post(url, headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            kind = classify_transport_error(exc)
            logger.warning(
                "Chat Completions transport error",
                extra={"model": self.model, "error_type": type(exc).__name__, "kind": kind.value},
            )
            raise ReasoningProviderError(
                f"Transport error contacting reasoning provider (model={self.model}): {type(exc).__name__}",
                kind=kind,
            ) from exc

        if response.status_code >= 400:
            kind = classify_status_code(response.status_code)
            retry_after = parse_retry_after_seconds(response.headers)
            logger.warning(
                "Chat Completions API error",
                extra={
                    "status": response.status_code,
                    "model": self.model,
                    "kind": kind.value,
                    "request_id": _openai_request_id(response),
                },
            )
            raise ReasoningProviderError(
                f"Reasoning provider request failed (status={response.status_code}, model={self.model}): "
                f"{_openai_error_message(response)}",
                kind=kind,
                status_code=response.status_code,
                retry_after_s=retry_after,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ReasoningProviderError(
                f"Malformed Chat Completions response (model={self.model})",
                kind=ErrorKind.PERMANENT,
            ) from exc

        cleaned = strip_markdown_code_fences(content)
        if cleaned in {"", "null", "None"}:
            raise ReasoningProviderError("Reasoning provider returned an empty response", kind=ErrorKind.PERMANENT)
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ReasoningProviderError(
                f"Reasoning provider returned invalid JSON (model={self.model})",
                kind=ErrorKind.PERMANENT,
            ) from exc


__all__ = ["OpenAICompatClient", "normalize_openai_base_url", "strip_markdown_code_fences"]
