"""Drive one review round per function record.

A round: look up the fingerprint; on a miss open a conversation (thread
plus persona), send the function, start a run, poll until it reaches a
terminal status, read the reply, decode it and upsert the verdict. The
conversation is torn down on every exit path.

Rounds are independent. A failed round is logged and reported in its
RoundResult; it never raises into sibling rounds and never writes to
the cache, so the function is simply reviewed again on the next run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from docuforce.config import Settings
from docuforce.constants import TERMINAL_RUN_STATUSES, RoundOutcome, RunStatus
from docuforce.extraction.schemas import FunctionRecord
from docuforce.fingerprint import compute_fingerprint
from docuforce.logger import ReviewLogger
from docuforce.prompts import build_review_message
from docuforce.repositories.protocols import CacheRepository
from docuforce.resilience.errors import (
    ReviewTimeoutError,
    RunFailedError,
    classify_error,
    is_retryable,
)
from docuforce.resilience.idempotency import InFlightRounds
from docuforce.review.client import ReviewerClient
from docuforce.review.schemas import (
    CacheEntry,
    ConversationSession,
    ReviewerPersona,
    ReviewSummary,
    RoundResult,
    content_text,
)
from docuforce.review.verdict import parse_verdict

logger = logging.getLogger(__name__)


class ReviewOrchestrator:
    """Runs review rounds against a cache and a remote reviewer."""

    def __init__(
        self,
        cache: CacheRepository,
        client: ReviewerClient,
        settings: Settings | None = None,
        *,
        persona: ReviewerPersona | None = None,
        review_logger: ReviewLogger | None = None,
    ) -> None:
        if settings is None:
            settings = Settings()
        self._cache = cache
        self._client = client
        self._settings = settings
        self._persona = persona or ReviewerPersona.from_settings(settings)
        self._review_logger = review_logger
        self._in_flight: InFlightRounds[RoundResult] = InFlightRounds()

    def fingerprint(self, record: FunctionRecord) -> str:
        return compute_fingerprint(
            record,
            include_name=self._settings.fingerprint_includes_name,
        )

    async def review_all(
        self, records: Sequence[FunctionRecord]
    ) -> ReviewSummary:
        """Fan out one round per record with bounded concurrency.

        Results come back in input order regardless of completion order.
        """
        semaphore = asyncio.Semaphore(
            self._settings.review_max_concurrency
        )

        async def bounded(record: FunctionRecord) -> RoundResult:
            async with semaphore:
                return await self.review(record)

        results = await asyncio.gather(
            *(bounded(r) for r in records), return_exceptions=True
        )

        summary = ReviewSummary()
        for record, result in zip(records, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                # review() contains its own errors; this is a bug guard
                logger.error(
                    "event=round_crashed name=%s error=%s",
                    record.name,
                    result,
                    exc_info=result,
                )
                result = RoundResult(
                    name=record.name,
                    fingerprint=self.fingerprint(record),
                    outcome=RoundOutcome.FAILED,
                    error=str(result),
                )
            summary.results.append(result)

        logger.info(
            "event=review_batch_complete total=%d cached=%d "
            "reviewed=%d failed=%d joined=%d",
            len(summary.results),
            summary.cached,
            summary.reviewed,
            summary.failed,
            self._in_flight.joined,
        )
        return summary

    async def review(self, record: FunctionRecord) -> RoundResult:
        """Run (or join) the round for one record."""
        fingerprint = self.fingerprint(record)
        result = await self._in_flight.run(
            fingerprint, lambda: self._round(record, fingerprint)
        )
        if result.name != record.name:
            result = result.model_copy(update={"name": record.name})
        return result

    async def _round(
        self, record: FunctionRecord, fingerprint: str
    ) -> RoundResult:
        started = time.monotonic()

        # CheckCache: a read error ends the round before any remote call
        try:
            cached = await self._cache.get(fingerprint)
        except Exception as exc:
            logger.error(
                "event=cache_read_failed name=%s hash=%s error=%s",
                record.name,
                fingerprint,
                exc,
            )
            return self._finish(
                record, fingerprint, RoundOutcome.FAILED, started, exc
            )
        if cached is not None:
            logger.debug(
                "event=cache_hit name=%s hash=%s", record.name, fingerprint
            )
            return self._finish(
                record, fingerprint, RoundOutcome.CACHED, started
            )

        try:
            entry = await self._remote_review(record, fingerprint)
        except Exception as exc:
            logger.warning(
                "event=round_failed name=%s hash=%s error_class=%s "
                "retryable=%s error=%s",
                record.name,
                fingerprint,
                classify_error(exc).value,
                is_retryable(exc),
                exc,
            )
            return self._finish(
                record, fingerprint, RoundOutcome.FAILED, started, exc
            )

        # Persist: only a successful upsert counts as reviewed
        try:
            await self._cache.upsert(entry)
        except Exception as exc:
            logger.error(
                "event=cache_write_failed name=%s hash=%s error=%s",
                record.name,
                fingerprint,
                exc,
            )
            return self._finish(
                record, fingerprint, RoundOutcome.FAILED, started, exc
            )

        logger.info(
            "event=round_reviewed name=%s hash=%s confidence=%.2f "
            "errors=%d warnings=%d",
            record.name,
            fingerprint,
            entry.confidence,
            len(entry.errors),
            len(entry.warnings),
        )
        return self._finish(
            record, fingerprint, RoundOutcome.REVIEWED, started
        )

    async def _remote_review(
        self, record: FunctionRecord, fingerprint: str
    ) -> CacheEntry:
        """BeginSession through ParseVerdict; teardown is unconditional."""
        async with self._conversation() as (session, thread_id, persona_id):
            await self._client.add_message(
                thread_id, build_review_message(record, fingerprint)
            )
            run_id = await self._client.start_run(thread_id, persona_id)
            session.run_id = run_id
            status = await self._poll(thread_id, run_id)
            if status != RunStatus.COMPLETED:
                raise RunFailedError(status)

            content = await self._client.latest_message(thread_id)

        return parse_verdict(content_text(content), fingerprint)

    async def _poll(self, thread_id: str, run_id: str) -> RunStatus:
        """Re-fetch run status at a fixed interval until it is terminal."""
        deadline = self._settings.review_deadline
        interval = self._settings.poll_interval_seconds

        try:
            async with asyncio.timeout(deadline):
                while True:
                    status = await self._client.run_status(thread_id, run_id)
                    if status in TERMINAL_RUN_STATUSES:
                        return status
                    logger.debug(
                        "event=run_pending run=%s status=%s",
                        run_id,
                        status,
                    )
                    await asyncio.sleep(interval)
        except TimeoutError as exc:
            raise ReviewTimeoutError(deadline or 0.0) from exc

    @asynccontextmanager
    async def _conversation(
        self,
    ) -> AsyncIterator[tuple[ConversationSession, str, str]]:
        """Own a thread and a persona for the duration of one round.

        Yields the session along with its thread and persona ids.
        """
        session = ConversationSession()
        try:
            thread_id = await self._client.create_thread()
            session.thread_id = thread_id
            persona_id = await self._client.create_persona(self._persona)
            session.persona_id = persona_id
            yield session, thread_id, persona_id
        finally:
            await self._teardown(session)

    async def _teardown(self, session: ConversationSession) -> None:
        # Teardown failures are logged, never raised: they must not mask
        # the round's own outcome.
        if session.persona_id is not None:
            try:
                await self._client.delete_persona(session.persona_id)
            except Exception as exc:
                logger.warning(
                    "event=persona_teardown_failed persona=%s error=%s",
                    session.persona_id,
                    exc,
                )
        if session.thread_id is not None:
            try:
                await self._client.delete_thread(session.thread_id)
            except Exception as exc:
                logger.warning(
                    "event=thread_teardown_failed thread=%s error=%s",
                    session.thread_id,
                    exc,
                )

    def _finish(
        self,
        record: FunctionRecord,
        fingerprint: str,
        outcome: RoundOutcome,
        started: float,
        error: Exception | None = None,
    ) -> RoundResult:
        duration_ms = (time.monotonic() - started) * 1000
        message = f"{type(error).__name__}: {error}" if error else None
        if self._review_logger is not None:
            self._review_logger.log_round(
                fingerprint, record.name, outcome, duration_ms, message
            )
        return RoundResult(
            name=record.name,
            fingerprint=fingerprint,
            outcome=outcome,
            error=message,
            duration_ms=duration_ms,
        )
