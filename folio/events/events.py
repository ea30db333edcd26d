"""All event classes consolidated in one module.

Notification levels:
- "info": explicit user actions that completed (save, restore from trash)
- "warning": non-blocking background failures (auto-save, auto-rename)
- "error": failures of explicit user actions (save of a deleted file)
"""

from typing import List, Literal, Optional

from pydantic import Field

from .base import BaseEvent, EventType

# ============================================================================
# Document Events
# ============================================================================


class DocumentOpenedEvent(BaseEvent):
    """Document added to the open set."""

    event_type: EventType = Field(default=EventType.DOCUMENT_OPENED, frozen=True)
    document_id: str
    name: str
    path: Optional[str] = None


class DocumentClosedEvent(BaseEvent):
    event_type: EventType = Field(default=EventType.DOCUMENT_CLOSED, frozen=True)
    document_id: str
    path: Optional[str] = None


class DocumentSavedEvent(BaseEvent):
    """Document content written to storage.

    Args:
        automatic: True when written by the debounced auto-save
    """

    event_type: EventType = Field(default=EventType.DOCUMENT_SAVED, frozen=True)
    document_id: str
    path: Optional[str] = None
    automatic: bool = False


class DocumentRenamedEvent(BaseEvent):
    event_type: EventType = Field(default=EventType.DOCUMENT_RENAMED, frozen=True)
    document_id: str
    old_path: Optional[str] = None
    new_path: Optional[str] = None
    name: str


class ActiveDocumentChangedEvent(BaseEvent):
    event_type: EventType = Field(default=EventType.ACTIVE_DOCUMENT_CHANGED, frozen=True)
    document_id: Optional[str] = None


# ============================================================================
# Workspace Events
# ============================================================================


class RootOpenedEvent(BaseEvent):
    event_type: EventType = Field(default=EventType.ROOT_OPENED, frozen=True)
    name: str


class RootClosedEvent(BaseEvent):
    event_type: EventType = Field(default=EventType.ROOT_CLOSED, frozen=True)
    name: str


class ListingRefreshedEvent(BaseEvent):
    """Shallow listing of the root (or the trash view) after a mutation settled."""

    event_type: EventType = Field(default=EventType.LISTING_REFRESHED, frozen=True)
    entries: List[str] = Field(default_factory=list)
    recycle_bin: bool = False


class SessionRestoredEvent(BaseEvent):
    event_type: EventType = Field(default=EventType.SESSION_RESTORED, frozen=True)
    restored: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    fallback_path: Optional[str] = None


# ============================================================================
# Meta Events
# ============================================================================


class NotificationEvent(BaseEvent):
    """Non-blocking, user-visible message (toast)."""

    event_type: EventType = Field(default=EventType.NOTIFICATION, frozen=True)
    message: str
    level: Literal["info", "warning", "error"] = "info"
    document_id: Optional[str] = None


class PermissionNeededEvent(BaseEvent):
    """A recalled root needs its permission re-granted."""

    event_type: EventType = Field(default=EventType.PERMISSION_NEEDED, frozen=True)
    key: str
