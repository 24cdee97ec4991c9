"""Pydantic models for review rounds and their verdicts."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from docuforce.config import Settings
from docuforce.constants import ContentKind, RoundOutcome
from docuforce.prompts import build_instructions
from docuforce.resilience.errors import UnsupportedContentError


class CacheEntry(BaseModel):
    """A reviewer verdict, keyed by the fingerprint it was produced for."""

    model_config = ConfigDict(extra="ignore")

    name: str
    confidence: float = Field(ge=0.0, le=1.0)
    hash: str = Field(min_length=1)
    errors: list[str]
    warnings: list[str]


class ReviewerPersona(BaseModel):
    """How a reviewer session is initialised. Never persisted."""

    model_config = ConfigDict(frozen=True)

    name: str
    instructions: str
    model: str

    @classmethod
    def from_settings(cls, settings: Settings) -> ReviewerPersona:
        return cls(
            name=settings.reviewer_name,
            instructions=build_instructions(settings.subject_language),
            model=settings.reviewer_model,
        )


class ConversationSession(BaseModel):
    """Remote identifiers owned by one round; torn down when it ends."""

    thread_id: str | None = None
    persona_id: str | None = None
    run_id: str | None = None


# ── Reviewer message payloads ────────────────────────────


@dataclass(frozen=True)
class TextContent:
    value: str
    kind: ContentKind = ContentKind.TEXT


@dataclass(frozen=True)
class RefusalContent:
    value: str
    kind: ContentKind = ContentKind.REFUSAL


@dataclass(frozen=True)
class UnsupportedContent:
    """Image or any other non-text block; the reviewer must never send one."""

    remote_type: str
    kind: ContentKind = ContentKind.UNSUPPORTED


MessageContent = TextContent | RefusalContent | UnsupportedContent


def content_text(content: MessageContent) -> str:
    """Textual payload of a reply; refusals count as text."""
    match content:
        case TextContent(value=value) | RefusalContent(value=value):
            return value
        case UnsupportedContent(remote_type=remote_type):
            raise UnsupportedContentError(remote_type)


# ── Round results ────────────────────────────────────────


class RoundResult(BaseModel):
    """Outcome of one function's round."""

    name: str
    fingerprint: str
    outcome: RoundOutcome
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome != RoundOutcome.FAILED


class ReviewSummary(BaseModel):
    """All round results of one batch, in input order."""

    results: list[RoundResult] = Field(
        default_factory=lambda: list[RoundResult]()
    )

    def count(self, outcome: RoundOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def cached(self) -> int:
        return self.count(RoundOutcome.CACHED)

    @property
    def reviewed(self) -> int:
        return self.count(RoundOutcome.REVIEWED)

    @property
    def failed(self) -> int:
        return self.count(RoundOutcome.FAILED)
