"""SQL implementation of CacheRepository."""

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docuforce.models.cache import CacheRecord
from docuforce.review.schemas import CacheEntry


class SqlCacheRepository:
    """Verdict cache that owns its own sessions.

    Review rounds run concurrently, so every operation opens a
    short-lived session from the factory instead of sharing one.
    Database errors propagate; a failed upsert must never look like a
    cached verdict.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._session_factory = session_factory

    async def get(self, fingerprint: str) -> CacheEntry | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CacheRecord).where(
                    CacheRecord.hash == fingerprint
                )
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return CacheEntry(
                name=record.name,
                confidence=record.confidence,
                hash=record.hash,
                errors=list(record.errors),
                warnings=list(record.warnings),
            )

    async def upsert(self, entry: CacheEntry) -> None:
        """Insert or replace the row keyed by ``entry.hash``."""
        stmt = sqlite_insert(CacheRecord).values(
            hash=entry.hash,
            name=entry.name,
            confidence=entry.confidence,
            errors=entry.errors,
            warnings=entry.warnings,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CacheRecord.hash],
            set_={
                "name": stmt.excluded.name,
                "confidence": stmt.excluded.confidence,
                "errors": stmt.excluded.errors,
                "warnings": stmt.excluded.warnings,
            },
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(CacheRecord)
            )
            return result.scalar_one()
