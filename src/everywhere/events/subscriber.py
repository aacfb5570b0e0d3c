"""Long-lived bus subscriptions that dispatch events to a handler."""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable

import structlog

from everywhere.events.bus import EventBus
from everywhere.events.types import DomainEvent

logger = structlog.get_logger()

EventHandler = Callable[[DomainEvent], Awaitable[None]]


async def start_listener(
    event_bus: EventBus,
    handler: EventHandler,
    topic: str = "*",
    name: str = "listener",
) -> "asyncio.Task[None]":
    """Subscribe to a topic and dispatch its events in a background task.

    The subscription is registered before this returns, so no event
    published afterwards is missed. Cancelling the returned task releases
    the subscription.

    Args:
        event_bus: Application event bus.
        handler: Coroutine called once per event.
        topic: Topic to subscribe to.
        name: Owner label used in log events.

    Returns:
        The task consuming the subscription.
    """
    subscriber_id, events = await event_bus.subscribe(topic=topic)
    logger.info(
        "listener_started",
        listener=name,
        topic=topic,
        subscriber_id=subscriber_id,
    )
    return asyncio.create_task(
        _dispatch(events, handler, name, subscriber_id),
        name=f"listener:{name}",
    )


async def _dispatch(
    events: AsyncIterator[DomainEvent],
    handler: EventHandler,
    name: str,
    subscriber_id: str,
) -> None:
    try:
        async for event in events:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "listener_handler_error",
                    listener=name,
                    event_type=event.type.value,
                    uri=event.uri,
                )
    except asyncio.CancelledError:
        logger.info("listener_stopped", listener=name, subscriber_id=subscriber_id)
        raise


async def stop_listener(task: "asyncio.Task[None] | None") -> None:
    """Cancel a listener task and wait for it to release its subscription."""
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
