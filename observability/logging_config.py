"""Structured logging configuration."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT_ENV_VAR = "CLAIMS_LOG_FORMAT"
LOG_LEVEL_ENV_VAR = "CLAIMS_LOG_LEVEL"


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs JSON-structured log records."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Include extra fields if present
        if hasattr(record, "extra_fields"):
            log_dict.update(record.extra_fields)

        # Include exception info if present
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


class StructuredLogger(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that supports structured fields."""

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra", {}) or {})
        kwargs["extra"] = {"extra_fields": extra}
        return msg, kwargs


_configured = False


def _default_level() -> int:
    raw = os.getenv(LOG_LEVEL_ENV_VAR, "INFO").strip().upper()
    return logging.getLevelName(raw) if isinstance(logging.getLevelName(raw), int) else logging.INFO


def configure_logging(
    level: int | None = None,
    structured: bool | None = None,
) -> None:
    """Configure logging for the application.

    ``CLAIMS_LOG_FORMAT=console`` switches to a Rich console handler for local
    development; the default is one JSON object per line on stderr.
    """
    global _configured
    if _configured:
        return

    if structured is None:
        structured = os.getenv(LOG_FORMAT_ENV_VAR, "json").strip().lower() != "console"

    root_logger = logging.getLogger()
    root_logger.setLevel(level if level is not None else _default_level())

    handler: logging.Handler
    if structured:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(StructuredFormatter())
    else:
        handler = RichHandler(console=Console(stderr=True), show_time=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root_logger.addHandler(handler)
    _configured = True


def get_logger(name: str, **extra: Any) -> StructuredLogger:
    """Get a structured logger with optional default extra fields."""
    configure_logging()
    base_logger = logging.getLogger(name)
    return StructuredLogger(base_logger, extra)
