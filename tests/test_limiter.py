"""Tests for the request scheduler."""

import asyncio
import time

import pytest

from fdc_gateway.services.limiter import RequestLimiter


def _run_callers(
    limiter: RequestLimiter, count: int, work_seconds: float
) -> tuple[list[tuple[int, float]], int]:
    dispatches: list[tuple[int, float]] = []
    peak = 0
    active = 0

    async def call(index: int) -> int:
        async def operation() -> int:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            dispatches.append((index, time.monotonic()))
            await asyncio.sleep(work_seconds)
            active -= 1
            return index

        return await limiter.schedule(operation)

    async def main() -> list[int]:
        tasks = []
        for index in range(count):
            tasks.append(asyncio.create_task(call(index)))
            # Let each caller reach the limiter before the next one arrives.
            await asyncio.sleep(0)
        return await asyncio.gather(*tasks)

    results = asyncio.run(main())
    assert results == list(range(count))
    return dispatches, peak


def test_limiter_serialises_and_spaces_dispatches() -> None:
    limiter = RequestLimiter(max_concurrent=1, min_interval_ms=20)

    dispatches, peak = _run_callers(limiter, count=5, work_seconds=0.001)

    assert peak == 1
    assert [index for index, _ in dispatches] == [0, 1, 2, 3, 4]
    times = [moment for _, moment in dispatches]
    gaps = [later - earlier for earlier, later in zip(times, times[1:], strict=False)]
    assert all(gap >= 0.019 for gap in gaps)
    assert limiter.active == 0
    assert limiter.pending == 0


def test_limiter_respects_concurrency_cap_with_spacing() -> None:
    limiter = RequestLimiter(max_concurrent=2, min_interval_ms=10)

    dispatches, peak = _run_callers(limiter, count=6, work_seconds=0.03)

    assert peak <= 2
    assert [index for index, _ in dispatches] == list(range(6))
    times = sorted(moment for _, moment in dispatches)
    gaps = [later - earlier for earlier, later in zip(times, times[1:], strict=False)]
    assert all(gap >= 0.009 for gap in gaps)


def test_limiter_without_spacing_allows_full_concurrency() -> None:
    limiter = RequestLimiter(max_concurrent=3, min_interval_ms=0)

    _, peak = _run_callers(limiter, count=6, work_seconds=0.01)

    assert peak == 3


def test_limiter_releases_slot_when_operation_fails() -> None:
    limiter = RequestLimiter(max_concurrent=1, min_interval_ms=0)

    async def failing() -> None:
        raise RuntimeError("boom")

    async def succeeding() -> str:
        return "ok"

    async def main() -> str:
        with pytest.raises(RuntimeError):
            await limiter.schedule(failing)
        return await limiter.schedule(succeeding)

    assert asyncio.run(main()) == "ok"
    assert limiter.active == 0


def test_cancelled_waiter_does_not_leak_slot() -> None:
    limiter = RequestLimiter(max_concurrent=1, min_interval_ms=0)
    order: list[str] = []

    async def main() -> None:
        gate = asyncio.Event()

        async def holder() -> None:
            order.append("holder")
            await gate.wait()

        async def record(name: str) -> None:
            order.append(name)

        first = asyncio.create_task(limiter.schedule(holder))
        await asyncio.sleep(0)
        cancelled = asyncio.create_task(limiter.schedule(lambda: record("cancelled")))
        queued = asyncio.create_task(limiter.schedule(lambda: record("queued")))
        await asyncio.sleep(0)
        assert limiter.pending == 2

        cancelled.cancel()
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, queued)
        assert cancelled.cancelled()

    asyncio.run(main())

    assert order == ["holder", "queued"]
    assert limiter.active == 0
    assert limiter.pending == 0


def test_limiter_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        RequestLimiter(max_concurrent=0)
    with pytest.raises(ValueError):
        RequestLimiter(min_interval_ms=-1)
