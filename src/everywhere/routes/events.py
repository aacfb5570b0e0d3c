"""Endpoint through which an editor host pushes change notifications."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from everywhere.events.types import DomainEvent, EventType

if TYPE_CHECKING:
    from everywhere.events.bus import EventBus

router = APIRouter(prefix="/events", tags=["events"])


class EventRequest(BaseModel):
    """Request body describing one workspace change.

    Attributes:
        type: What happened.
        uri: Affected resource, if any.
        old_uri: Previous identity for renames.
        change_size: Number of changed characters for document edits.
    """

    type: EventType
    uri: str | None = Field(default=None, max_length=4096)
    old_uri: str | None = Field(default=None, max_length=4096)
    change_size: int = Field(default=0, ge=0)


class EventAccepted(BaseModel):
    """Response after publishing an event."""

    id: str
    delivered_to: int


@router.post("", response_model=EventAccepted, status_code=status.HTTP_202_ACCEPTED)
async def publish_event(request: Request, body: EventRequest) -> EventAccepted:
    """Publish a change notification on the event bus.

    Args:
        request: FastAPI request object.
        body: Change description.

    Returns:
        Event id and the number of subscribers it reached.
    """
    event_bus: EventBus = request.app.state.event_bus
    event = DomainEvent.create(
        body.type,
        uri=body.uri,
        old_uri=body.old_uri,
        change_size=body.change_size,
    )
    delivered = await event_bus.publish(event)
    return EventAccepted(id=event.id, delivered_to=delivered)
