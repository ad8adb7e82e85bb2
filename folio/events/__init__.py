"""Event system for store notifications."""

from .base import BaseEvent, EventType
from .bus import EventBus, EventSink
from .events import (
    ChangeType,
    EntryAddedEvent,
    EntryChangedEvent,
    EntryEvent,
    EntryRemovedEvent,
    SectionConfigChangedEvent,
    StoreEvent,
    WatcherErrorEvent,
    WorkspaceChangedEvent,
    entry_event,
)

__all__ = [
    # Base
    "BaseEvent",
    "EventType",
    "EventBus",
    "EventSink",
    # Entries
    "ChangeType",
    "EntryEvent",
    "EntryAddedEvent",
    "EntryChangedEvent",
    "EntryRemovedEvent",
    "entry_event",
    # Namespaces
    "SectionConfigChangedEvent",
    # Watcher
    "WatcherErrorEvent",
    "StoreEvent",
    # Lifecycle
    "WorkspaceChangedEvent",
]
