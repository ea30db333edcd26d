"""Data model for open documents and persisted session records."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .host.base import FileHandle


class CursorPosition(BaseModel):
    """Editor cursor, 1-based like the rendering layer reports it."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    line_number: int = Field(default=1, ge=1, alias="lineNumber")
    column: int = Field(default=1, ge=1)


class DocumentState(str, Enum):
    VIRTUAL = "virtual"
    BOUND = "bound"
    EXTERNAL = "external"


@dataclass
class Document:
    """An open editor entry.

    path is the durable identity; handle is only a cache that may be absent
    (after a reload) or stale (after a concurrent move). A document without a
    path is virtual: it has never touched storage, unless it is external: bound
    by handle to a file outside the root, which has no path to persist.
    """

    name: str
    content: str = ""
    path: Optional[str] = None
    handle: Optional[FileHandle] = None
    dirty: bool = False
    is_binary: bool = False
    external: bool = False
    cursor: Optional[CursorPosition] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    last_modified: float = field(default_factory=time.time)

    @property
    def state(self) -> DocumentState:
        if self.external:
            return DocumentState.EXTERNAL
        return DocumentState.BOUND if self.path is not None else DocumentState.VIRTUAL

    @property
    def is_virtual(self) -> bool:
        return self.path is None and not self.external

    def touch(self) -> None:
        self.last_modified = time.time()


class OpenFileEntry(BaseModel):
    """Path-only projection of one open document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    path: str
    cursor: Optional[CursorPosition] = None


class SavedSession(BaseModel):
    """Per-root session record. Never holds handles or content."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    open_files: List[OpenFileEntry] = Field(default_factory=list, alias="openFiles")
    active_file_path: Optional[str] = Field(default=None, alias="activeFilePath")

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UIPreferences(BaseModel):
    """Global presentation record, independent of the open root."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sidebar_visible: bool = Field(default=True, alias="sidebarVisible")
    view_mode: Literal["editor", "split", "preview", "wysiwyg"] = Field(default="split", alias="viewMode")
    theme: Literal["dark", "light"] = "dark"


class RecentRoot(BaseModel):
    """Previously granted root directory, keyed by root name."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: str
    location: str
    last_accessed: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="lastAccessed")

    @field_validator("last_accessed", mode="before")
    @classmethod
    def parse_datetime(cls, v):
        """Accept ISO strings and epoch milliseconds. Naive values are taken as UTC."""
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
        if isinstance(v, str):
            v = datetime.fromisoformat(v.replace("Z", "+00:00"))
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
