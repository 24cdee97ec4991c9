"""In-memory fake cache repository for testing.

Dict-backed implementation of CacheRepository.
No SQLAlchemy and no I/O, so operations complete instantly.
"""

from __future__ import annotations

from docuforce.review.schemas import CacheEntry


class FakeCacheRepository:
    """Dict-backed CacheRepository that records every call."""

    def __init__(
        self,
        entries: list[CacheEntry] | None = None,
        *,
        fail_reads: Exception | None = None,
        fail_writes: Exception | None = None,
    ) -> None:
        self._store: dict[str, CacheEntry] = {
            e.hash: e.model_copy(deep=True) for e in entries or []
        }
        self._fail_reads = fail_reads
        self._fail_writes = fail_writes
        self.lookups: list[str] = []
        self.writes: list[CacheEntry] = []

    async def get(self, fingerprint: str) -> CacheEntry | None:
        self.lookups.append(fingerprint)
        if self._fail_reads is not None:
            raise self._fail_reads
        entry = self._store.get(fingerprint)
        return entry.model_copy(deep=True) if entry else None

    async def upsert(self, entry: CacheEntry) -> None:
        if self._fail_writes is not None:
            raise self._fail_writes
        self.writes.append(entry)
        self._store[entry.hash] = entry.model_copy(deep=True)

    async def count(self) -> int:
        return len(self._store)

    def snapshot(self) -> dict[str, CacheEntry]:
        """Copy of the stored entries keyed by fingerprint."""
        return {k: v.model_copy(deep=True) for k, v in self._store.items()}
