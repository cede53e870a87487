import asyncio

import pytest

from exchanges.rate_limiter import UpdateThrottle


@pytest.mark.asyncio
async def test_burst_yields_leading_and_trailing_emission():
    received = []
    throttle = UpdateThrottle(received.append, interval_ms=500)
    for idx in range(10):
        throttle.push(idx)
        await asyncio.sleep(0.005)
    assert received == [0]

    await asyncio.sleep(0.6)
    assert received == [0, 9]
    await throttle.aclose()


@pytest.mark.asyncio
async def test_push_after_idle_period_is_immediate():
    received = []
    throttle = UpdateThrottle(received.append, interval_ms=30)
    throttle.push("a")
    await asyncio.sleep(0.05)
    throttle.push("b")
    assert received == ["a", "b"]
    assert not throttle.has_pending
    await throttle.aclose()


@pytest.mark.asyncio
async def test_trailing_emission_is_spaced_by_interval():
    stamps = []
    loop = asyncio.get_running_loop()
    throttle = UpdateThrottle(lambda value: stamps.append((value, loop.time())), interval_ms=50)
    throttle.push(1)
    throttle.push(2)
    await asyncio.sleep(0.1)
    assert [value for value, _ in stamps] == [1, 2]
    assert stamps[1][1] - stamps[0][1] >= 0.045
    await throttle.aclose()


@pytest.mark.asyncio
async def test_cancel_drops_pending_value():
    received = []
    throttle = UpdateThrottle(received.append, interval_ms=30)
    throttle.push(1)
    throttle.push(2)
    assert throttle.has_pending
    throttle.cancel()
    await asyncio.sleep(0.06)
    assert received == [1]


@pytest.mark.asyncio
async def test_closed_throttle_ignores_pushes():
    received = []
    throttle = UpdateThrottle(received.append, interval_ms=30)
    throttle.push(1)
    throttle.push(2)
    await throttle.aclose()
    throttle.push(3)
    throttle.emit_now(4)
    await asyncio.sleep(0.06)
    assert received == [1]


@pytest.mark.asyncio
async def test_emit_now_supersedes_pending_value():
    received = []
    throttle = UpdateThrottle(received.append, interval_ms=30)
    throttle.push("live-1")
    throttle.push("live-2")
    throttle.emit_now("mock")
    await asyncio.sleep(0.06)
    assert received == ["live-1", "mock"]
    await throttle.aclose()


@pytest.mark.asyncio
async def test_callback_errors_are_logged_on_both_edges():
    calls = []

    def explode(value):
        calls.append(value)
        raise RuntimeError("listener bug")

    throttle = UpdateThrottle(explode, interval_ms=20)
    throttle.push(1)
    throttle.push(2)
    await asyncio.sleep(0.05)
    assert calls == [1, 2]
    await throttle.aclose()
