"""Tests for request cancellation helpers and the background task runner."""

import asyncio

import pytest

from neochat.application.chat.utilities.background import BackgroundTaskRunner
from neochat.core.cancellation import race_cancel
from neochat.domain.errors import OperationAborted


@pytest.mark.asyncio
async def test_race_cancel_returns_result():
    async def work():
        return 42

    assert await race_cancel(work(), asyncio.Event()) == 42
    assert await race_cancel(work(), None) == 42


@pytest.mark.asyncio
async def test_race_cancel_aborts_and_cancels_child():
    cancel = asyncio.Event()
    cleaned_up = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(30)
        finally:
            cleaned_up.set()

    asyncio.get_running_loop().call_later(0.01, cancel.set)
    with pytest.raises(OperationAborted):
        await race_cancel(slow(), cancel)
    assert cleaned_up.is_set()


@pytest.mark.asyncio
async def test_race_cancel_with_event_already_set():
    cancel = asyncio.Event()
    cancel.set()
    ran = []

    async def work():
        ran.append(True)

    with pytest.raises(OperationAborted):
        await race_cancel(work(), cancel)
    assert ran == []


@pytest.mark.asyncio
async def test_race_cancel_propagates_errors():
    async def broken():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        await race_cancel(broken(), asyncio.Event())


@pytest.mark.asyncio
async def test_background_runner_swallows_failures_and_drains():
    runner = BackgroundTaskRunner()
    done = []

    async def ok():
        await asyncio.sleep(0)
        done.append("ok")

    async def fails():
        raise RuntimeError("background boom")

    async def spawns_more():
        runner.spawn(ok(), name="nested")

    runner.spawn(ok(), name="ok")
    runner.spawn(fails(), name="fails")
    runner.spawn(spawns_more(), name="spawner")
    await runner.drain()

    assert done == ["ok", "ok"]
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_background_runner_cancel_all():
    runner = BackgroundTaskRunner()
    runner.spawn(asyncio.sleep(30), name="sleeper")

    await runner.cancel_all()

    assert runner.pending == 0
