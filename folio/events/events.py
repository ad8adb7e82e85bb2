"""All event classes consolidated in one module.

Outbound notifications (the only events that cross the transport boundary):

    entry-added / entry-changed / entry-removed   {store, namespace, id, path, timestamp}
    section-config-changed                        {store, namespace, config}
    watcher-error                                 {store, message, timestamp}

Inbound notification:

    WorkspaceChangedEvent(current_path, previous_path); current_path=None
    means the workspace was cleared.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from pydantic import Field

from .base import BaseEvent, EventType

ChangeType = Literal["added", "changed", "removed"]

# ============================================================================
# Entry Events
# ============================================================================


class EntryEvent(BaseEvent):
    """Base for entry change notifications."""

    store: str
    namespace: str
    entry_id: str
    path: Path

    @property
    def change_type(self) -> ChangeType:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return f"entry-{self.change_type}"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "store": self.store,
            "namespace": self.namespace,
            "id": self.entry_id,
            "path": str(self.path),
            "timestamp": self.timestamp_ms,
        }


class EntryAddedEvent(EntryEvent):
    """An entry appeared on disk."""

    event_type: EventType = Field(default=EventType.ENTRY_ADDED, frozen=True)

    @property
    def change_type(self) -> ChangeType:
        return "added"


class EntryChangedEvent(EntryEvent):
    """An entry's metadata or content changed on disk."""

    event_type: EventType = Field(default=EventType.ENTRY_CHANGED, frozen=True)

    @property
    def change_type(self) -> ChangeType:
        return "changed"


class EntryRemovedEvent(EntryEvent):
    """An entry was deleted."""

    event_type: EventType = Field(default=EventType.ENTRY_REMOVED, frozen=True)

    @property
    def change_type(self) -> ChangeType:
        return "removed"


_ENTRY_EVENTS = {
    "added": EntryAddedEvent,
    "changed": EntryChangedEvent,
    "removed": EntryRemovedEvent,
}


def entry_event(change: ChangeType, **fields: Any) -> EntryEvent:
    """Build the entry event class matching a change type."""
    return _ENTRY_EVENTS[change](**fields)


# ============================================================================
# Namespace Events
# ============================================================================


class SectionConfigChangedEvent(BaseEvent):
    """Namespace-level default settings changed (config is None when removed)."""

    event_type: EventType = Field(default=EventType.SECTION_CONFIG_CHANGED, frozen=True)
    store: str
    namespace: str
    config: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> str:
        return "section-config-changed"

    def to_payload(self) -> Dict[str, Any]:
        return {"store": self.store, "namespace": self.namespace, "config": self.config}


# ============================================================================
# Watcher Events
# ============================================================================


class WatcherErrorEvent(BaseEvent):
    """The OS-level watch failed; live updates are off until it restarts."""

    event_type: EventType = Field(default=EventType.WATCHER_ERROR, frozen=True)
    store: str
    message: str

    @property
    def name(self) -> str:
        return "watcher-error"

    def to_payload(self) -> Dict[str, Any]:
        return {"store": self.store, "message": self.message, "timestamp": self.timestamp_ms}


# ============================================================================
# Lifecycle Events
# ============================================================================


class WorkspaceChangedEvent(BaseEvent):
    """The active workspace was switched or cleared."""

    event_type: EventType = Field(default=EventType.WORKSPACE_CHANGED, frozen=True)
    current_path: Optional[Path] = None
    previous_path: Optional[Path] = None

    @property
    def cleared(self) -> bool:
        return self.current_path is None


StoreEvent = Union[EntryAddedEvent, EntryChangedEvent, EntryRemovedEvent, SectionConfigChangedEvent, WatcherErrorEvent]
