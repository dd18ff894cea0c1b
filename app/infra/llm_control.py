"""Retry classification utilities for outbound reasoning-provider calls.

Classification happens here, where the HTTP response is in hand; the
processing pipeline only ever reads ``ErrorKind`` off the raised error.
"""

from __future__ import annotations

from typing import Mapping

import httpx

from app.common.exceptions import ErrorKind

TRANSIENT_STATUS_CODES = frozenset({429})

# Transport failures worth retrying: the request may never have reached the provider
TRANSIENT_TRANSPORT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    httpx.ReadError,
    httpx.WriteError,
)


def classify_status_code(status_code: int) -> ErrorKind:
    """429 and 5xx are transient; every other error status is permanent."""
    if status_code in TRANSIENT_STATUS_CODES or 500 <= status_code <= 599:
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


def classify_transport_error(exc: httpx.HTTPError) -> ErrorKind:
    if isinstance(exc, TRANSIENT_TRANSPORT_ERRORS):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


def parse_retry_after_seconds(headers: Mapping[str, str]) -> float | None:
    value = headers.get("retry-after") or headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    try:
        return float(value)
    except ValueError:
        return None


__all__ = [
    "TRANSIENT_STATUS_CODES",
    "TRANSIENT_TRANSPORT_ERRORS",
    "classify_status_code",
    "classify_transport_error",
    "parse_retry_after_seconds",
]
