"""Decode the reviewer's reply into a cache entry."""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from docuforce.resilience.errors import VerdictDecodeError
from docuforce.review.schemas import CacheEntry

logger = logging.getLogger(__name__)

# Tolerated despite the instructions: ```json ... ``` around the object.
_FENCE_RE = re.compile(
    r"^\s*```(?:json)?\s*\n(?P<body>.*?)\n?\s*```\s*$", re.DOTALL
)


def parse_verdict(payload: str, expected_hash: str) -> CacheEntry:
    """Validate *payload* as a verdict for *expected_hash*.

    Raises :class:`VerdictDecodeError` on invalid JSON, missing or
    mistyped fields, an out-of-range confidence, or a ``hash`` that
    differs from the fingerprint that was sent.
    """
    fenced = _FENCE_RE.match(payload)
    if fenced is not None:
        logger.debug("event=verdict_fence_stripped hash=%s", expected_hash)
        payload = fenced.group("body")

    try:
        entry = CacheEntry.model_validate_json(payload)
    except ValidationError as exc:
        raise VerdictDecodeError(
            f"reply is not a valid verdict ({exc.error_count()} "
            f"problem(s)): {_first_problem(exc)}"
        ) from exc

    if entry.hash != expected_hash:
        raise VerdictDecodeError(
            f"verdict hash {entry.hash[:12]}… does not match "
            f"fingerprint {expected_hash[:12]}…"
        )
    return entry


def _first_problem(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err["loc"]) or "<root>"
    return f"{loc}: {err['msg']}"
