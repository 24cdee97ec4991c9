"""Tests for InFlightRounds."""

from __future__ import annotations

import asyncio

import pytest

from docuforce.resilience.idempotency import InFlightRounds


async def test_deduplicates_concurrent_rounds() -> None:
    """Two concurrent rounds for one fingerprint: only one executes."""
    rounds: InFlightRounds[str] = InFlightRounds()
    call_count = 0

    async def _slow_round() -> str:
        nonlocal call_count
        call_count += 1
        await asyncio.sleep(0.05)
        return "reviewed"

    r1, r2 = await asyncio.gather(
        rounds.run("abc", _slow_round),
        rounds.run("abc", _slow_round),
    )
    assert (r1, r2) == ("reviewed", "reviewed")
    assert call_count == 1
    assert rounds.joined == 1


async def test_independent_fingerprints_run_separately() -> None:
    rounds: InFlightRounds[str] = InFlightRounds()
    call_count = 0

    async def _round() -> str:
        nonlocal call_count
        call_count += 1
        return "ok"

    await asyncio.gather(
        rounds.run("a", _round),
        rounds.run("b", _round),
    )
    assert call_count == 2
    assert rounds.joined == 0


async def test_sequential_rounds_both_execute() -> None:
    """Once a round has finished, the fingerprint can run again."""
    rounds: InFlightRounds[int] = InFlightRounds()
    call_count = 0

    async def _round() -> int:
        nonlocal call_count
        call_count += 1
        return call_count

    assert await rounds.run("abc", _round) == 1
    assert await rounds.run("abc", _round) == 2
    assert rounds.active == []


async def test_owner_error_propagates_to_joiners() -> None:
    rounds: InFlightRounds[str] = InFlightRounds()

    async def _failing() -> str:
        await asyncio.sleep(0.05)
        raise RuntimeError("remote down")

    results = await asyncio.gather(
        rounds.run("abc", _failing),
        rounds.run("abc", _failing),
        return_exceptions=True,
    )
    assert all(isinstance(r, RuntimeError) for r in results)
    assert rounds.active == []


async def test_active_lists_running_fingerprints() -> None:
    rounds: InFlightRounds[None] = InFlightRounds()
    started = asyncio.Event()
    release = asyncio.Event()

    async def _round() -> None:
        started.set()
        await release.wait()

    task = asyncio.create_task(rounds.run("abc", _round))
    await started.wait()
    assert rounds.active == ["abc"]

    release.set()
    await task
    assert rounds.active == []


async def test_cancelled_owner_releases_fingerprint() -> None:
    rounds: InFlightRounds[None] = InFlightRounds()
    started = asyncio.Event()

    async def _round() -> None:
        started.set()
        await asyncio.sleep(10)

    task = asyncio.create_task(rounds.run("abc", _round))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert rounds.active == []
