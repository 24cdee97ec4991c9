"""Exception hierarchy and error classification.

Run-level errors (query configuration, extraction, store bootstrap,
reviewer credentials) abort the whole invocation before any remote
call. Round-level errors (``ReviewError`` and its subclasses) end one
function's round as failed without touching the cache, leaving siblings
in the same batch unaffected.

classify_error() tags failures for structured logging:
- which errors are transient vs permanent
- informative messages (timeout vs auth vs server)
"""

from __future__ import annotations

import asyncio
from enum import Enum


class DocuforceError(Exception):
    """Base class for every error raised by docuforce itself."""


# ── Run-level ────────────────────────────────────────────


class QueryConfigError(DocuforceError):
    """Structural query is missing, malformed or lacks a capture."""


class ExtractionError(DocuforceError):
    """Source text could not be parsed cleanly."""


class StoreNotInitializedError(DocuforceError):
    """The cache database has not been created yet (run --init)."""


class ReviewerConfigError(DocuforceError):
    """The remote reviewer cannot be reached with current settings."""


# ── Round-level ──────────────────────────────────────────


class ReviewError(DocuforceError):
    """A single review round failed; nothing was written to the cache."""


class ReviewerCallError(ReviewError):
    """A reviewer API call failed or returned something unusable.

    ``status_code`` carries the HTTP status of the underlying failure,
    when there was one, so classify_error() still sees it.
    """

    def __init__(
        self, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class RunFailedError(ReviewError):
    """The reviewer run ended in a terminal status other than completed."""

    def __init__(self, status: str) -> None:
        super().__init__(f"reviewer run ended with status {status!r}")
        self.status = status


class ReviewTimeoutError(ReviewError):
    """The reviewer run did not finish within the polling deadline."""

    def __init__(self, deadline: float) -> None:
        super().__init__(
            f"reviewer run still pending after {deadline:g}s"
        )
        self.deadline = deadline


class VerdictDecodeError(ReviewError):
    """The reviewer reply is not a valid verdict for this fingerprint."""


class UnsupportedContentError(ReviewError):
    """The reviewer replied with a non-text payload (contract violation)."""

    def __init__(self, kind: str) -> None:
        super().__init__(
            f"reviewer replied with unsupported content kind {kind!r}"
        )
        self.kind = kind


# ── Classification ───────────────────────────────────────


class ErrorClass(Enum):
    TRANSIENT = "transient"  # 429, network errors
    SERVER = "server"  # 500, 502, 503
    TIMEOUT = "timeout"  # deadline exceeded
    CLIENT = "client"  # 400, 401, 403, contract violations
    UNKNOWN = "unknown"  # unclassified


def classify_error(error: Exception) -> ErrorClass:
    """Classify an error to determine handling strategy.

    Checks our own hierarchy and structured attributes first
    (status_code), falls back to string matching for untyped
    exceptions.
    """
    # 1. Our own round errors
    if isinstance(error, ReviewTimeoutError):
        return ErrorClass.TIMEOUT
    if isinstance(error, (VerdictDecodeError, UnsupportedContentError)):
        return ErrorClass.CLIENT
    if isinstance(error, RunFailedError):
        return ErrorClass.SERVER

    # 2. Structured status_code attribute (httpx, openai)
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return ErrorClass.TRANSIENT
        if 400 <= status_code < 500:
            return ErrorClass.CLIENT
        if 500 <= status_code < 600:
            return ErrorClass.SERVER

    # 3. Timeout types
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT

    # 4. Fall back to string matching
    msg = str(error).lower()

    if "timeout" in msg or "timed out" in msg:
        return ErrorClass.TIMEOUT
    if "429" in msg or "rate limit" in msg or "rate_limit" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("500", "502", "503", "504")):
        return ErrorClass.SERVER
    if "econnrefused" in msg or "connection" in msg:
        return ErrorClass.TRANSIENT
    if any(code in msg for code in ("400", "401", "403", "404")):
        return ErrorClass.CLIENT

    return ErrorClass.UNKNOWN


_RETRYABLE = frozenset({
    ErrorClass.TRANSIENT,
    ErrorClass.SERVER,
    ErrorClass.TIMEOUT,
})


def is_retryable(error: Exception) -> bool:
    """Return True if rerunning later is likely to succeed."""
    return classify_error(error) in _RETRYABLE
