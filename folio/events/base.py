"""Base event model and event type enum."""

from datetime import datetime, timezone
from enum import IntEnum

from pydantic import BaseModel, Field


class EventType(IntEnum):
    """Event type enumeration."""

    # Document lifecycle
    DOCUMENT_OPENED = 1
    DOCUMENT_CLOSED = 2
    DOCUMENT_SAVED = 3
    DOCUMENT_RENAMED = 4
    ACTIVE_DOCUMENT_CHANGED = 5

    # Workspace
    ROOT_OPENED = 10
    ROOT_CLOSED = 11
    LISTING_REFRESHED = 12
    SESSION_RESTORED = 13

    # Meta
    NOTIFICATION = 20
    PERMISSION_NEEDED = 21


class BaseEvent(BaseModel):
    """Base class for all workspace events."""

    model_config = {"frozen": True, "use_enum_values": False}

    event_type: EventType = Field(frozen=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
