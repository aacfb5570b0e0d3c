"""Common contract for item sources feeding the aggregated index."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import Any

import structlog

from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.types import SearchItem
from everywhere.events.bus import EventBus
from everywhere.events.subscriber import start_listener, stop_listener
from everywhere.events.types import DomainEvent
from everywhere.host.workspace import Workspace

logger = structlog.get_logger()


class BaseProvider(ABC):
    """A source of search items with its own snapshot and refresh policy.

    ``refresh`` rebuilds the snapshot into a local list and swaps it in
    once complete, so readers never see a half-built snapshot. A refresh
    requested while another is in flight is dropped unless forced.

    Subclasses implement ``collect`` and, when they react to workspace
    changes, set ``topic`` and override ``handle_event``.

    Attributes:
        name: Provider identifier used in logs and index statistics.
        topic: Event bus topic to listen on, or None for no listener.
    """

    name: str = "provider"
    topic: str | None = None

    def __init__(self, workspace: Workspace, exclusions: ExclusionFilter) -> None:
        """Initialize provider.

        Args:
            workspace: Host capability surface.
            exclusions: Filter applied to every enumerated resource.
        """
        self._workspace = workspace
        self._exclusions = exclusions
        self._items: list[SearchItem] = []
        self._refreshing = False
        self._listener: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def refreshing(self) -> bool:
        """Whether a refresh is in flight."""
        return self._refreshing

    @property
    def item_count(self) -> int:
        """Size of the current snapshot."""
        return len(self._items)

    @property
    def exclusions(self) -> ExclusionFilter:
        """Filter applied to enumerated resources."""
        return self._exclusions

    @exclusions.setter
    def exclusions(self, exclusions: ExclusionFilter) -> None:
        self._exclusions = exclusions

    async def start(self, event_bus: EventBus) -> None:
        """Begin listening for change notifications, if the provider uses any."""
        if self.topic is None or self._listener is not None:
            return
        self._listener = await start_listener(
            event_bus,
            self.handle_event,
            topic=self.topic,
            name=self.name,
        )

    async def close(self) -> None:
        """Stop listening and cancel background work."""
        await stop_listener(self._listener)
        self._listener = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def get_items(self) -> list[SearchItem]:
        """Current snapshot; refreshes first when empty and idle."""
        if not self._items and not self._refreshing:
            await self.refresh()
        return list(self._items)

    async def refresh(self, force: bool = False) -> None:
        """Re-enumerate the source and replace the snapshot.

        Args:
            force: Run even if another refresh is in flight.
        """
        if self._refreshing and not force:
            logger.debug("provider_refresh_skipped", provider=self.name)
            return

        self._refreshing = True
        started = time.perf_counter()
        try:
            items = await self.collect()
        except Exception:
            logger.exception("provider_refresh_failed", provider=self.name)
            items = []
        finally:
            self._refreshing = False

        self._items = items
        logger.info(
            "provider_refreshed",
            provider=self.name,
            items=len(items),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    @abstractmethod
    async def collect(self) -> list[SearchItem]:
        """Enumerate the source into a fresh list of items."""

    async def handle_event(self, event: DomainEvent) -> None:
        """React to a change notification on the provider's topic."""

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
