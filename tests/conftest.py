"""Shared test fixtures: file-backed SQLite, fakes, sample records."""

import json
import os

# Force a demo API key for all tests; no real reviewer calls are made.
# Set unconditionally at import time, so even if you have a real key
# in your shell environment, pytest overwrites it before any
# Settings() is created.
os.environ["OPENAI_API_KEY"] = "for-demo-purposes-only"

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from docuforce.config import Settings, create_app_engine
from docuforce.extraction.schemas import FunctionRecord, SourcePosition
from docuforce.fingerprint import compute_fingerprint
from docuforce.models.base import Base
from docuforce.repositories.cache_repo import SqlCacheRepository
from docuforce.review.schemas import CacheEntry, TextContent

FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures"


def make_record(
    name: str = "f",
    doc_string: str = "/// Returns one.\n",
    body: str = "fn f() -> i32 { 1 }",
    row: int = 0,
) -> FunctionRecord:
    return FunctionRecord(
        name=name,
        doc_string=doc_string,
        body=body,
        position=SourcePosition(row=row, column=0),
    )


def make_entry(
    record: FunctionRecord,
    *,
    confidence: float = 0.9,
    errors: list[str] | None = None,
    warnings: list[str] | None = None,
) -> CacheEntry:
    return CacheEntry(
        name=record.name,
        confidence=confidence,
        hash=compute_fingerprint(record),
        errors=errors or [],
        warnings=warnings or [],
    )


def verdict_reply(
    confidence: float = 0.9,
    errors: list[str] | None = None,
    warnings: list[str] | None = None,
) -> Callable[[str], TextContent]:
    """Reply factory that echoes the fingerprint and name it was sent."""

    def _reply(message: str) -> TextContent:
        fields = dict(
            line.split(": ", 1)
            for line in message.splitlines()[:2]
        )
        return TextContent(
            json.dumps({
                "name": fields["Function name"],
                "confidence": confidence,
                "hash": fields["Fingerprint"],
                "errors": errors or [],
                "warnings": warnings or [],
            })
        )

    return _reply


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to tmp_path with a fast poll interval."""
    data_dir = tmp_path / ".docuforce"
    return Settings(
        data_dir=data_dir,
        database_url=f"sqlite:///{data_dir}/cache.db",
        log_dir=data_dir / "logs",
        poll_interval_seconds=0.001,
        review_timeout_seconds=5,
    )


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Function-scoped engine on a fresh database file."""
    engine = create_app_engine(f"sqlite:///{tmp_path / 'cache.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def cache_repo(
    session_factory: async_sessionmaker[AsyncSession],
) -> SqlCacheRepository:
    return SqlCacheRepository(session_factory)
