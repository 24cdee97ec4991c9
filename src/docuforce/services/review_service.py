"""Review pipeline: load the query, extract, consult the cache, review, report."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.ext.asyncio import async_sessionmaker

from docuforce.config import (
    Settings,
    create_app_engine,
    sqlite_database_path,
)
from docuforce.extraction.extractor import extract_functions
from docuforce.extraction.query import StructuralQuery
from docuforce.extraction.schemas import FunctionRecord
from docuforce.logger import ReviewLogger
from docuforce.models.base import Base
from docuforce.repositories.cache_repo import SqlCacheRepository
from docuforce.repositories.protocols import CacheRepository
from docuforce.resilience.errors import (
    ExtractionError,
    StoreNotInitializedError,
)
from docuforce.review.client import OpenAIReviewerClient, ReviewerClient
from docuforce.review.orchestrator import ReviewOrchestrator
from docuforce.review.schemas import CacheEntry, ReviewSummary, RoundResult

logger = logging.getLogger(__name__)


@dataclass
class FunctionVerdict:
    """One extracted function next to its round result and verdict."""

    record: FunctionRecord
    result: RoundResult
    entry: CacheEntry | None = None


@dataclass
class ReviewReport:
    """Everything a caller needs to present one review run."""

    source_path: Path
    summary: ReviewSummary
    verdicts: list[FunctionVerdict] = field(
        default_factory=lambda: list[FunctionVerdict]()
    )
    duration_ms: float = 0.0


async def init_store(settings: Settings) -> Path | None:
    """Create the data directory and the cache schema if absent.

    Returns the database file path (None for in-memory URLs).
    """
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    db_path = sqlite_database_path(settings.database_url)
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_app_engine(settings.database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()

    logger.info("event=store_initialized url=%s", settings.database_url)
    return db_path


async def run_review(
    source_path: Path,
    settings: Settings,
    *,
    client: ReviewerClient | None = None,
    review_logger: ReviewLogger | None = None,
) -> ReviewReport:
    """Review every function in *source_path* that is not cached yet.

    Run-level failures (query configuration, unreadable or unparsable
    source, missing store, missing credentials) raise before any remote
    call. Round-level failures are reported in the summary.
    """
    started = time.monotonic()

    # 1. Query first: a bad query must stop everything
    structural_query = StructuralQuery.load(
        settings.subject_language, settings.query_path
    )

    # 2. Extraction
    try:
        source = source_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ExtractionError(f"cannot read {source_path}: {exc}") from exc
    records = extract_functions(source, structural_query)

    # 3. Store must already exist
    db_path = sqlite_database_path(settings.database_url)
    if db_path is not None and not db_path.exists():
        raise StoreNotInitializedError(
            f"cache database {db_path} does not exist; run with --init"
        )

    owns_client = client is None
    if client is None:
        client = OpenAIReviewerClient.from_settings(settings)

    engine = create_app_engine(settings.database_url)
    try:
        cache = SqlCacheRepository(
            async_sessionmaker(engine, expire_on_commit=False)
        )
        orchestrator = ReviewOrchestrator(
            cache, client, settings, review_logger=review_logger
        )
        summary = await orchestrator.review_all(records)

        verdicts: list[FunctionVerdict] = []
        for record, result in zip(records, summary.results, strict=True):
            entry = await _read_verdict(cache, result)
            verdicts.append(
                FunctionVerdict(record=record, result=result, entry=entry)
            )
    finally:
        await engine.dispose()
        if owns_client:
            await client.close()

    return ReviewReport(
        source_path=source_path,
        summary=summary,
        verdicts=verdicts,
        duration_ms=(time.monotonic() - started) * 1000,
    )


async def _read_verdict(
    cache: CacheRepository, result: RoundResult
) -> CacheEntry | None:
    """Stored verdict for a successful round; None if it cannot be read."""
    if not result.ok:
        return None
    try:
        return await cache.get(result.fingerprint)
    except Exception as exc:
        logger.warning(
            "event=verdict_readback_failed hash=%s error=%s",
            result.fingerprint,
            exc,
        )
        return None
