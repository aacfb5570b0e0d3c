"""Change notification types consumed by the indexing pipeline."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Workspace change notifications."""

    FILE_CREATED = "file.created"
    FILE_DELETED = "file.deleted"
    FILE_RENAMED = "file.renamed"
    DOCUMENT_SAVED = "document.saved"
    DOCUMENT_CLOSED = "document.closed"
    DOCUMENT_CHANGED = "document.changed"
    ACTIVE_EDITOR_CHANGED = "editor.active_changed"
    WORKSPACE_FOLDERS_CHANGED = "workspace.folders_changed"


Topic = Literal["files", "documents", "workspace"]

_EVENT_TOPICS: dict[EventType, Topic] = {
    EventType.FILE_CREATED: "files",
    EventType.FILE_DELETED: "files",
    EventType.FILE_RENAMED: "files",
    EventType.DOCUMENT_SAVED: "documents",
    EventType.DOCUMENT_CLOSED: "documents",
    EventType.DOCUMENT_CHANGED: "documents",
    EventType.ACTIVE_EDITOR_CHANGED: "documents",
    EventType.WORKSPACE_FOLDERS_CHANGED: "workspace",
}


TEMP_FILE_PATTERNS: tuple[str, ...] = (
    ".swp",
    ".swo",
    ".swn",
    ".tmp",
    ".temp",
    "~",
    ".DS_Store",
    ".4913",
)


def topic_for(event_type: EventType) -> Topic:
    """Routing topic of an event type."""
    return _EVENT_TOPICS[event_type]


class DomainEvent(BaseModel):
    """A single workspace change notification.

    Attributes:
        id: Unique event identifier (UUID).
        type: What happened.
        timestamp: Event timestamp in UTC.
        topic: Routing topic derived from the type.
        uri: Affected resource, if any.
        old_uri: Previous identity for renames.
        change_size: Number of changed characters for document edits.
    """

    id: str = Field(description="Unique event identifier (UUID)")
    type: EventType = Field(description="Event type")
    timestamp: datetime = Field(description="Event timestamp (UTC)")
    topic: Topic = Field(description="Event topic for routing")
    uri: str | None = Field(default=None, description="Affected resource URI")
    old_uri: str | None = Field(default=None, description="Previous URI for renames")
    change_size: int = Field(default=0, ge=0, description="Changed characters")

    @classmethod
    def create(
        cls,
        event_type: EventType,
        uri: str | None = None,
        old_uri: str | None = None,
        change_size: int = 0,
    ) -> "DomainEvent":
        """Build an event with a fresh id, current timestamp and derived topic."""
        return cls(
            id=str(uuid.uuid4()),
            type=event_type,
            timestamp=datetime.now(UTC),
            topic=topic_for(event_type),
            uri=uri,
            old_uri=old_uri,
            change_size=change_size,
        )
