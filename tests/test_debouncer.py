"""Debouncer tests."""

import asyncio

from everywhere.core.debouncer import Debouncer


async def test_only_last_callback_runs() -> None:
    """A burst of calls runs only the most recent callback, once."""
    debouncer = Debouncer(20)
    calls: list[int] = []

    for index in range(5):
        debouncer.debounce(lambda index=index: calls.append(index))

    await asyncio.sleep(0.08)
    assert calls == [4]
    assert debouncer.coalesced_calls == 4


async def test_callback_waits_for_quiet_period() -> None:
    """Nothing runs before the window has elapsed."""
    debouncer = Debouncer(50)
    calls: list[str] = []

    debouncer.debounce(lambda: calls.append("fired"))
    await asyncio.sleep(0.01)
    assert calls == []
    assert debouncer.pending

    await asyncio.sleep(0.1)
    assert calls == ["fired"]
    assert not debouncer.pending


async def test_coroutine_callback_is_awaited() -> None:
    """Coroutine callbacks run to completion as tasks."""
    debouncer = Debouncer(10)
    done = asyncio.Event()

    async def callback() -> None:
        await asyncio.sleep(0)
        done.set()

    debouncer.debounce(callback)
    await asyncio.wait_for(done.wait(), timeout=1.0)


async def test_clear_drops_pending_callback() -> None:
    """Clearing cancels the pending timer."""
    debouncer = Debouncer(10)
    calls: list[str] = []

    debouncer.debounce(lambda: calls.append("fired"))
    debouncer.clear()
    await asyncio.sleep(0.05)
    assert calls == []


async def test_flush_runs_pending_callback_now() -> None:
    """Flushing runs the pending callback without waiting."""
    debouncer = Debouncer(10_000)
    calls: list[str] = []

    debouncer.debounce(lambda: calls.append("fired"))
    await debouncer.flush()
    assert calls == ["fired"]
    assert not debouncer.pending


async def test_failing_callback_is_contained() -> None:
    """A raising callback does not break later calls."""
    debouncer = Debouncer(5)
    calls: list[str] = []

    def boom() -> None:
        raise RuntimeError("boom")

    debouncer.debounce(boom)
    await asyncio.sleep(0.03)
    debouncer.debounce(lambda: calls.append("after"))
    await asyncio.sleep(0.03)
    assert calls == ["after"]


async def test_aclose_cancels_running_callback() -> None:
    """Closing cancels callbacks still running."""
    debouncer = Debouncer(0)
    started = asyncio.Event()
    finished: list[str] = []

    async def slow() -> None:
        started.set()
        await asyncio.sleep(10)
        finished.append("done")

    debouncer.debounce(slow)
    await asyncio.wait_for(started.wait(), timeout=1.0)
    await debouncer.aclose()
    assert finished == []


def test_negative_delay_is_zero() -> None:
    """Negative windows are treated as zero."""
    assert Debouncer(-5).delay_ms == 0
