"""Event system between the workspace core and the rendering layer."""

from .base import BaseEvent, EventType
from .bus import EventBus
from .events import (
    ActiveDocumentChangedEvent,
    DocumentClosedEvent,
    DocumentOpenedEvent,
    DocumentRenamedEvent,
    DocumentSavedEvent,
    ListingRefreshedEvent,
    NotificationEvent,
    PermissionNeededEvent,
    RootClosedEvent,
    RootOpenedEvent,
    SessionRestoredEvent,
)

__all__ = [
    # Base
    "BaseEvent",
    "EventType",
    "EventBus",
    # Documents
    "DocumentOpenedEvent",
    "DocumentClosedEvent",
    "DocumentSavedEvent",
    "DocumentRenamedEvent",
    "ActiveDocumentChangedEvent",
    # Workspace
    "RootOpenedEvent",
    "RootClosedEvent",
    "ListingRefreshedEvent",
    "SessionRestoredEvent",
    # Meta
    "NotificationEvent",
    "PermissionNeededEvent",
]
