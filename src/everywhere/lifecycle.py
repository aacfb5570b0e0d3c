"""Signal-driven shutdown coordination for the server process."""
import asyncio
import signal

import structlog

logger = structlog.get_logger()

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """One-shot shutdown signal shared by the server's concurrent tasks.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
        timeout: Seconds in-flight work gets to finish after the trigger.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize shutdown coordinator.

        Args:
            timeout: Seconds to allow for shutdown completion.
        """
        self._event = asyncio.Event()
        self.timeout = timeout

    @property
    def is_triggered(self) -> bool:
        """Whether a shutdown signal has been received."""
        return self._event.is_set()

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Trigger on SIGTERM and SIGINT.

        Args:
            loop: Running event loop receiving the signals.
        """
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.trigger, sig)

    def trigger(self, sig: signal.Signals | None = None) -> None:
        """Signal all waiting tasks to begin shutdown.

        Calling it again has no further effect.
        """
        if self._event.is_set():
            return
        logger.info("shutdown_triggered", signal=sig.name if sig is not None else None)
        self._event.set()

    async def wait_for_trigger(self) -> None:
        """Block until ``trigger`` is called."""
        await self._event.wait()
