"""Shared constants: single source of truth for cross-module values.

StrEnum members are str-compatible, so values coming back from the
remote reviewer (run status strings) compare and log unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class CaptureName(StrEnum):
    """Capture groups every structural query must expose."""

    COMMENT = "comment"
    IDENTIFIER = "identifier"
    BODY = "body"


REQUIRED_CAPTURES: tuple[CaptureName, ...] = (
    CaptureName.COMMENT,
    CaptureName.IDENTIFIER,
    CaptureName.BODY,
)


class RunStatus(StrEnum):
    """Lifecycle of one reviewer run against a conversation thread."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"


# Polling stops on these; everything else keeps the round waiting.
TERMINAL_RUN_STATUSES = frozenset({
    RunStatus.COMPLETED,
    RunStatus.FAILED,
    RunStatus.CANCELLED,
    RunStatus.EXPIRED,
})


class RoundOutcome(StrEnum):
    """How one review round ended."""

    CACHED = "cached"
    REVIEWED = "reviewed"
    FAILED = "failed"


class ContentKind(StrEnum):
    """Payload variants a reviewer message can carry."""

    TEXT = "text"
    REFUSAL = "refusal"
    UNSUPPORTED = "unsupported"


# ── Reviewer Persona Defaults ────────────────────────────

DEFAULT_REVIEWER_NAME = "Naggy"
DEFAULT_REVIEWER_MODEL = "gpt-4o"

# ── Storage ──────────────────────────────────────────────

DEFAULT_DATA_DIR = ".docuforce"
CACHE_TABLE = "cache"
HASH_HEX_LENGTH = 64

# ── Polling ──────────────────────────────────────────────

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_REVIEW_TIMEOUT_SECONDS = 600.0
DEFAULT_REVIEW_MAX_CONCURRENCY = 8

# ── Circuit Breaker Configuration ────────────────────────

CB_REVIEWER_FAILURE_THRESHOLD = 5
CB_REVIEWER_RECOVERY_TIMEOUT = 30

# ── Retry Strategy ───────────────────────────────────────

RETRY_MAX_ATTEMPTS = 3
RETRY_INITIAL_WAIT = 2
RETRY_MAX_WAIT = 30

# ── Misc ─────────────────────────────────────────────────

ERROR_TRUNCATION_CHARS = 200
