"""Base event model and event type enum."""

from datetime import datetime, timezone
from enum import IntEnum

from pydantic import BaseModel, Field


class EventType(IntEnum):
    """Event type enumeration."""

    # Entry events
    ENTRY_ADDED = 1
    ENTRY_CHANGED = 2
    ENTRY_REMOVED = 3

    # Namespace events
    SECTION_CONFIG_CHANGED = 4

    # Watcher health
    WATCHER_ERROR = 5

    # Inbound lifecycle notifications
    WORKSPACE_CHANGED = 10


class BaseEvent(BaseModel):
    """Base class for all store events."""

    model_config = {"frozen": True, "use_enum_values": False}

    event_type: EventType = Field(frozen=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def timestamp_ms(self) -> int:
        """Event time as Unix milliseconds."""
        return int(self.timestamp.timestamp() * 1000)
