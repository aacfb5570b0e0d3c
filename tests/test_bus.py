"""Event bus and listener tests."""

import asyncio

import pytest

from everywhere.events.bus import EventBus
from everywhere.events.subscriber import start_listener, stop_listener
from everywhere.events.types import DomainEvent, EventType


async def test_publish_reaches_topic_and_wildcard() -> None:
    """Events go to their topic's subscribers and to wildcard subscribers."""
    bus = EventBus()
    _, files = await bus.subscribe("files")
    _, everything = await bus.subscribe("*")
    _, documents = await bus.subscribe("documents")

    event = DomainEvent.create(EventType.FILE_CREATED, uri="file:///ws/a.ts")
    delivered = await bus.publish(event)

    assert delivered == 2
    assert (await anext(files)).id == event.id
    assert (await anext(everything)).id == event.id
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(anext(documents), timeout=0.05)


async def test_unknown_topic_falls_back_to_wildcard() -> None:
    """Subscribing to an unknown topic subscribes to everything."""
    bus = EventBus()
    _, events = await bus.subscribe("nonsense")

    await bus.publish(DomainEvent.create(EventType.DOCUMENT_SAVED, uri="file:///ws/a.ts"))
    event = await asyncio.wait_for(anext(events), timeout=1.0)
    assert event.type is EventType.DOCUMENT_SAVED


async def test_overflow_drops_oldest() -> None:
    """A full subscriber queue drops its oldest event."""
    bus = EventBus(queue_size=2)
    _, events = await bus.subscribe("*")

    for name in ("a", "b", "c"):
        await bus.publish(DomainEvent.create(EventType.FILE_CREATED, uri=f"file:///ws/{name}"))

    assert bus.dropped_events == 1
    assert (await anext(events)).uri == "file:///ws/b"
    assert (await anext(events)).uri == "file:///ws/c"


async def test_max_subscribers_enforced() -> None:
    """Subscribing past the limit raises."""
    bus = EventBus(max_subscribers=1)
    await bus.subscribe("*")
    with pytest.raises(ValueError):
        await bus.subscribe("*")


async def test_unsubscribe_removes_subscriber() -> None:
    """Explicit unsubscribe releases the slot."""
    bus = EventBus()
    subscriber_id, _ = await bus.subscribe("files")
    assert bus.subscriber_count == 1
    await bus.unsubscribe("files", subscriber_id)
    assert bus.subscriber_count == 0


async def test_listener_dispatches_and_releases_subscription() -> None:
    """Listeners call their handler per event and unsubscribe when stopped."""
    bus = EventBus()
    received: list[EventType] = []
    got_event = asyncio.Event()

    async def handler(event: DomainEvent) -> None:
        received.append(event.type)
        got_event.set()

    task = await start_listener(bus, handler, topic="documents", name="test")
    assert bus.subscriber_count == 1

    await bus.publish(DomainEvent.create(EventType.DOCUMENT_CLOSED, uri="file:///ws/a.ts"))
    await asyncio.wait_for(got_event.wait(), timeout=1.0)
    assert received == [EventType.DOCUMENT_CLOSED]

    await stop_listener(task)
    assert bus.subscriber_count == 0


async def test_listener_survives_handler_errors() -> None:
    """A raising handler does not end the listener."""
    bus = EventBus()
    seen: list[str | None] = []
    second = asyncio.Event()

    async def handler(event: DomainEvent) -> None:
        seen.append(event.uri)
        if len(seen) == 1:
            raise RuntimeError("first event fails")
        second.set()

    task = await start_listener(bus, handler)
    await bus.publish(DomainEvent.create(EventType.FILE_CREATED, uri="file:///ws/1"))
    await bus.publish(DomainEvent.create(EventType.FILE_CREATED, uri="file:///ws/2"))
    await asyncio.wait_for(second.wait(), timeout=1.0)

    assert seen == ["file:///ws/1", "file:///ws/2"]
    await stop_listener(task)


def test_event_topic_derived_from_type() -> None:
    """Each event type routes to its topic."""
    assert DomainEvent.create(EventType.FILE_RENAMED).topic == "files"
    assert DomainEvent.create(EventType.DOCUMENT_CHANGED, change_size=10).topic == "documents"
    assert DomainEvent.create(EventType.ACTIVE_EDITOR_CHANGED).topic == "documents"
    assert DomainEvent.create(EventType.WORKSPACE_FOLDERS_CHANGED).topic == "workspace"
