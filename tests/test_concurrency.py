"""
Tests for the cancellation token and the single-flight slot.
"""

import asyncio

import pytest

from interrogator.core.concurrency import CancellationToken, SingleFlight


def test_token_stays_cancelled() -> None:
    token = CancellationToken()
    assert not token.cancelled
    token.cancel()
    token.cancel()
    assert token.cancelled


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_attempt(self) -> None:
        flight: SingleFlight[str] = SingleFlight(name="test")
        calls = 0

        async def work() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return "store"

        results = await asyncio.gather(*(flight.run(work) for _ in range(3)))
        assert results == ["store"] * 3
        assert calls == 1
        assert flight.done
        assert flight.result == "store"

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self) -> None:
        flight: SingleFlight[str] = SingleFlight(name="test")

        async def broken() -> str:
            raise RuntimeError("boom")

        async def fine() -> str:
            return "ok"

        with pytest.raises(RuntimeError, match="boom"):
            await flight.run(broken)
        assert not flight.done
        assert await flight.run(fine) == "ok"

    @pytest.mark.asyncio
    async def test_reset_discards_attempt_still_running(self) -> None:
        flight: SingleFlight[str] = SingleFlight(name="test")
        release = asyncio.Event()

        async def slow() -> str:
            await release.wait()
            return "stale"

        pending = asyncio.ensure_future(flight.run(slow))
        await asyncio.sleep(0)
        flight.reset()
        release.set()
        assert await pending == "stale"

        assert not flight.done
        assert flight.result is None
