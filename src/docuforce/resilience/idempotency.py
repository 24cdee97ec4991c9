"""In-flight round deduplication by fingerprint.

Two functions in one batch can share a fingerprint (identical doc and
body). Without coordination both rounds would miss the cache and each
open its own remote conversation. InFlightRounds lets the first round
own the work; later arrivals for the same fingerprint await its outcome.

Single-process only.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field


@dataclass
class _Pending[T]:
    fingerprint: str
    done: asyncio.Event = field(default_factory=asyncio.Event)
    outcome: T | None = None
    error: BaseException | None = None
    waiters: int = 0


class InFlightRounds[T]:
    """Runs at most one round per fingerprint at a time.

    Usage::

        rounds = InFlightRounds[RoundOutcome]()
        outcome = await rounds.run(fingerprint, lambda: do_round(record))
    """

    def __init__(self) -> None:
        self._pending: dict[str, _Pending[T]] = {}
        self._lock = asyncio.Lock()
        self.joined = 0

    async def run(
        self,
        fingerprint: str,
        round_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Run *round_fn* unless a round for *fingerprint* is running.

        A joining caller receives the owner's outcome, or the owner's
        exception re-raised. Registration and removal both happen under
        the lock so a late caller can never start a duplicate round
        between the owner finishing and its entry being dropped.
        """
        async with self._lock:
            pending = self._pending.get(fingerprint)
            owner = pending is None
            if pending is None:
                pending = _Pending(fingerprint=fingerprint)
                self._pending[fingerprint] = pending
            else:
                pending.waiters += 1
                self.joined += 1

        if not owner:
            await pending.done.wait()
            if pending.error is not None:
                raise pending.error
            return pending.outcome  # type: ignore[return-value]

        try:
            outcome = await round_fn()
            pending.outcome = outcome
            return outcome
        except BaseException as exc:
            pending.error = exc
            raise
        finally:
            pending.done.set()
            async with self._lock:
                self._pending.pop(fingerprint, None)

    @property
    def active(self) -> list[str]:
        """Fingerprints with a round currently running."""
        return list(self._pending)
