"""Translation of raw watchdog events into change notifications."""

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
)

from everywhere.core.uris import path_to_uri
from everywhere.events.types import DomainEvent, EventType

logger = structlog.get_logger()

_TYPE_MAP: dict[type[FileSystemEvent], EventType] = {
    FileCreatedEvent: EventType.FILE_CREATED,
    FileDeletedEvent: EventType.FILE_DELETED,
    FileMovedEvent: EventType.FILE_RENAMED,
    DirCreatedEvent: EventType.FILE_CREATED,
    DirDeletedEvent: EventType.FILE_DELETED,
    DirMovedEvent: EventType.FILE_RENAMED,
    # A file rewritten on disk is what an editor save looks like from outside
    FileModifiedEvent: EventType.DOCUMENT_SAVED,
}


def decode_path(raw: str | bytes) -> str:
    """Decode a watchdog path, which may be bytes on some platforms."""
    if isinstance(raw, str):
        return raw
    return bytes(raw).decode("utf-8", errors="replace")


def is_tracked(raw_event: FileSystemEvent) -> bool:
    """Whether a raw event maps onto a change notification."""
    return type(raw_event) in _TYPE_MAP


def normalize_event(raw_event: FileSystemEvent) -> DomainEvent | None:
    """Transform raw filesystem event into a typed change notification.

    Args:
        raw_event: Raw watchdog filesystem event.

    Returns:
        Change notification, or None when the event type is not tracked.
    """
    event_type = _TYPE_MAP.get(type(raw_event))
    if event_type is None:
        return None

    src_path = decode_path(raw_event.src_path)

    if event_type is EventType.FILE_RENAMED:
        dest_path = decode_path(raw_event.dest_path)
        return DomainEvent.create(
            event_type,
            uri=path_to_uri(dest_path),
            old_uri=path_to_uri(src_path),
        )

    return DomainEvent.create(event_type, uri=path_to_uri(src_path))
