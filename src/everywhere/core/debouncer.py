"""Event-loop debouncer with cancel-and-reschedule semantics."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

DebouncedCallback = Callable[[], Awaitable[None] | None]


class Debouncer:
    """Collapses bursts of calls into one call after a quiet period.

    Each call to ``debounce`` cancels the pending timer and starts a new
    one, so only the most recent callback runs, once the window has elapsed
    with no further calls. Coroutine callbacks are scheduled as tasks owned
    by the debouncer.

    Attributes:
        delay_ms: Quiet period in milliseconds.
        name: Label used in log events.
    """

    def __init__(self, delay_ms: int, name: str = "debouncer") -> None:
        """Initialize debouncer.

        Args:
            delay_ms: Quiet period in milliseconds.
            name: Label used in log events.
        """
        self._delay = max(delay_ms, 0) / 1000.0
        self._name = name
        self._handle: asyncio.TimerHandle | None = None
        self._callback: DebouncedCallback | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._coalesced_count = 0

    @property
    def delay_ms(self) -> int:
        """Quiet period in milliseconds."""
        return int(self._delay * 1000)

    @property
    def pending(self) -> bool:
        """Whether a callback is waiting for its window to elapse."""
        return self._handle is not None

    @property
    def coalesced_calls(self) -> int:
        """Number of calls that replaced a still-pending one."""
        return self._coalesced_count

    def debounce(self, callback: DebouncedCallback) -> None:
        """Schedule ``callback`` after the quiet period, replacing any pending one.

        Must be called from within a running event loop.

        Args:
            callback: Plain function or coroutine function to run.
        """
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
            self._coalesced_count += 1
        self._callback = callback
        self._handle = loop.call_later(self._delay, self._fire)

    def clear(self) -> None:
        """Drop the pending callback, if any."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._callback = None

    async def flush(self) -> None:
        """Run the pending callback now and wait for it to finish."""
        callback = self._callback
        self.clear()
        if callback is None:
            return
        result = callback()
        if inspect.isawaitable(result):
            await result

    async def aclose(self) -> None:
        """Cancel the pending timer and any callbacks still running."""
        self.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is None:
            return

        logger.debug("debounce_fired", debouncer=self._name)
        try:
            result = callback()
        except Exception:
            logger.exception("debounce_callback_error", debouncer=self._name)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "debounce_callback_error",
                debouncer=self._name,
                error=str(error),
            )
