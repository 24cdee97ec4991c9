"""Protocol-based repository interfaces.

SQL implementations satisfy these protocols structurally (no inheritance).
Test doubles can be plain classes or mocks matching the same signature.
"""

from typing import Protocol

from docuforce.review.schemas import CacheEntry


class CacheRepository(Protocol):
    async def get(self, fingerprint: str) -> CacheEntry | None: ...
    async def upsert(self, entry: CacheEntry) -> None: ...
    async def count(self) -> int: ...
