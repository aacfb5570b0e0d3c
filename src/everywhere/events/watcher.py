"""Watchdog-backed source of file change notifications."""

import asyncio
import threading
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from everywhere.events.bus import EventBus
from everywhere.events.normalizer import decode_path, is_tracked, normalize_event
from everywhere.events.types import TEMP_FILE_PATTERNS

logger = structlog.get_logger()

EVENT_PRIORITY: dict[type[FileSystemEvent], int] = {
    FileCreatedEvent: 3,
    DirCreatedEvent: 3,
    FileMovedEvent: 3,
    DirMovedEvent: 3,
    FileDeletedEvent: 2,
    DirDeletedEvent: 2,
    FileModifiedEvent: 1,
}

PathFilter = Callable[[Path], bool]


def is_temp_file(path: str) -> bool:
    """Check if path is an editor swap or temporary file.

    Args:
        path: File path to check.

    Returns:
        True if the file is a temporary file.
    """
    name = Path(path).name
    return any(
        name.endswith(pattern) or name == pattern.lstrip(".")
        for pattern in TEMP_FILE_PATTERNS
    )


def get_event_priority(event: FileSystemEvent) -> int:
    """Get priority value for an event type.

    Higher priority events survive debouncing, so a create is never lost
    behind the modify events that follow it.

    Args:
        event: Filesystem event.

    Returns:
        Priority value (higher = more important).
    """
    return EVENT_PRIORITY.get(type(event), 0)


def _event_key(event: FileSystemEvent) -> str:
    if isinstance(event, FileSystemMovedEvent):
        return decode_path(event.dest_path)
    return decode_path(event.src_path)


class DebouncingHandler(FileSystemEventHandler):
    """Watchdog event handler with per-path debouncing.

    Watchdog calls this from its observer thread; debounced events are
    handed to the event loop with ``run_coroutine_threadsafe``.

    Attributes:
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[FileSystemEvent], Coroutine[Any, Any, None]],
        debounce_ms: int = 50,
        ignore: PathFilter | None = None,
    ) -> None:
        """Initialize debouncing handler.

        Args:
            loop: Event loop for scheduling async callbacks.
            callback: Async function to call with debounced events.
            debounce_ms: Debounce window in milliseconds.
            ignore: Predicate for paths that must not produce events.
        """
        super().__init__()
        self._loop = loop
        self._callback = callback
        self._debounce_ms = debounce_ms
        self._ignore = ignore
        self._pending: dict[str, tuple[threading.Timer, FileSystemEvent, int]] = {}
        self._lock = threading.Lock()
        self._coalesced_count = 0

    @property
    def coalesced_events(self) -> int:
        """Number of events coalesced by debouncing."""
        return self._coalesced_count

    def _emit_event(self, key: str) -> None:
        with self._lock:
            entry = self._pending.pop(key, None)
            if entry is None:
                return
            _, event, _ = entry

        logger.debug("watcher_emit", path=key, event_type=event.event_type)
        try:
            future = asyncio.run_coroutine_threadsafe(self._callback(event), self._loop)
            future.result(timeout=5.0)
        except Exception as e:
            logger.error("watcher_callback_error", error=str(e), path=key)

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle filesystem event with debouncing.

        Args:
            event: Raw watchdog filesystem event.
        """
        if not is_tracked(event):
            return

        key = _event_key(event)
        if is_temp_file(key):
            return
        if self._ignore is not None and self._ignore(Path(key)):
            return

        event_priority = get_event_priority(event)

        with self._lock:
            existing = self._pending.get(key)

            if existing is not None:
                timer, stored_event, stored_priority = existing
                timer.cancel()
                if event_priority <= stored_priority:
                    event, event_priority = stored_event, stored_priority
                self._coalesced_count += 1

            timer = threading.Timer(
                self._debounce_ms / 1000.0,
                self._emit_event,
                args=(key,),
            )
            timer.daemon = True
            self._pending[key] = (timer, event, event_priority)
            timer.start()

    def cancel_all(self) -> None:
        """Cancel all pending timers during shutdown."""
        with self._lock:
            for timer, _, _ in self._pending.values():
                timer.cancel()
            self._pending.clear()


class FilesystemWatcher:
    """Publishes file change notifications for the workspace roots.

    Wraps a watchdog Observer and a DebouncingHandler; every debounced
    event is normalized and published on the event bus.

    Attributes:
        paths: Directories being watched.
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        paths: list[Path],
        loop: asyncio.AbstractEventLoop,
        event_bus: EventBus,
        debounce_ms: int = 50,
        ignore: PathFilter | None = None,
    ) -> None:
        """Initialize filesystem watcher.

        Args:
            paths: Directories to watch.
            loop: Event loop for async callbacks.
            event_bus: Bus receiving normalized events.
            debounce_ms: Debounce window in milliseconds.
            ignore: Predicate for paths that must not produce events.
        """
        self._paths = [Path(p) for p in paths]
        self._bus = event_bus
        self._debounce_ms = debounce_ms
        self._handler = DebouncingHandler(loop, self._publish, debounce_ms, ignore)
        self._observer: Observer | None = None  # pyright: ignore[reportInvalidTypeForm]

    @property
    def paths(self) -> list[str]:
        """Directories being watched."""
        return [str(p) for p in self._paths]

    @property
    def coalesced_events(self) -> int:
        """Number of events coalesced by debouncing."""
        return self._handler.coalesced_events

    async def _publish(self, raw_event: FileSystemEvent) -> None:
        event = normalize_event(raw_event)
        if event is None:
            return
        await self._bus.publish(event)

    def start(self) -> None:
        """Start the filesystem observer.

        Raises:
            ValueError: If a path does not exist or is not a directory.
        """
        for path in self._paths:
            if not path.exists():
                raise ValueError(f"Watch path does not exist: {path}")
            if not path.is_dir():
                raise ValueError(f"Watch path is not a directory: {path}")

        observer = Observer()
        for path in self._paths:
            observer.schedule(self._handler, str(path), recursive=True)
            logger.info("watcher_scheduled", path=str(path))

        observer.start()
        self._observer = observer
        logger.info("watcher_started", paths=self.paths)

    def stop(self) -> None:
        """Stop the filesystem observer."""
        self._handler.cancel_all()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        logger.info("watcher_stopped")
