"""Change notification subsystem: event bus, listeners and filesystem watcher."""
from everywhere.events.bus import EventBus
from everywhere.events.subscriber import start_listener, stop_listener
from everywhere.events.types import DomainEvent, EventType
from everywhere.events.watcher import FilesystemWatcher

__all__ = [
    "DomainEvent",
    "EventBus",
    "EventType",
    "FilesystemWatcher",
    "start_listener",
    "stop_listener",
]
