"""Tests for cancellation tokens and idle signalling."""

from __future__ import annotations

import asyncio

import pytest

from nightfall.concurrency import CancellationToken, IdleSignal, OperationCancelled


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_guard_returns_result_when_not_cancelled() -> None:
    token = CancellationToken()

    async def work() -> int:
        await asyncio.sleep(0)
        return 7

    assert await token.guard(work()) == 7


@pytest.mark.anyio("asyncio")
async def test_guard_abandons_work_when_token_fires() -> None:
    token = CancellationToken()
    started = asyncio.Event()
    finished: list[bool] = []

    async def slow() -> None:
        started.set()
        await asyncio.sleep(10)
        finished.append(True)

    async def cancel_soon() -> None:
        await started.wait()
        token.cancel()

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(OperationCancelled):
        await token.guard(slow())
    await canceller

    assert finished == []
    assert token.cancelled


@pytest.mark.anyio("asyncio")
async def test_guard_on_cancelled_token_never_starts_work() -> None:
    token = CancellationToken()
    token.cancel()
    calls: list[int] = []

    async def work() -> None:
        calls.append(1)

    with pytest.raises(OperationCancelled):
        await token.guard(work())

    assert calls == []


@pytest.mark.anyio("asyncio")
async def test_sleep_reports_cancellation() -> None:
    token = CancellationToken()

    assert await token.sleep(0) is False
    asyncio.get_running_loop().call_soon(token.cancel)
    assert await token.sleep(5) is True


@pytest.mark.anyio("asyncio")
async def test_idle_signal_times_out_or_fires() -> None:
    idle = IdleSignal()

    assert await idle.wait(0.01) is False

    idle.notify()
    assert await idle.wait(5) is True
    assert await idle.wait() is True
