"""Capability store boundary: directory grants and permission checks."""

import asyncio
import os
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Protocol, runtime_checkable

from folio.exceptions import NotFoundError, OperationCancelledError

from .base import DirectoryHandle, FileHandle

if TYPE_CHECKING:
    from .local import LocalAdapter, LocalDirectoryHandle, LocalFileHandle


class PermissionState(str, Enum):
    """Result of a permission query or request."""

    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


@runtime_checkable
class CapabilityStore(Protocol):
    """Yields root directory and single file handles from user gestures."""

    async def request_directory_access(self) -> DirectoryHandle:
        """Ask the user to pick a directory.

        Raises:
            OperationCancelledError: If the user abandoned the picker
        """
        ...

    async def request_file_access(self) -> FileHandle:
        """Ask the user to pick one existing file, anywhere.

        Raises:
            OperationCancelledError: If the user abandoned the picker
        """
        ...

    async def request_save_location(self, suggested_name: str) -> FileHandle:
        """Ask the user where to write a file; the file is created if missing.

        Raises:
            OperationCancelledError: If the user abandoned the picker
        """
        ...

    async def query_permission(self, handle: DirectoryHandle) -> PermissionState: ...

    async def request_permission(self, handle: DirectoryHandle) -> PermissionState: ...

    async def recall(self, location: str) -> DirectoryHandle:
        """Rebuild a handle from a location stored in the recents store.

        Raises:
            NotFoundError: If the location no longer exists
        """
        ...


DirectoryPicker = Callable[[], Optional[str]]
FilePicker = Callable[[], Optional[str]]
SavePicker = Callable[[str], Optional[str]]
PermissionPrompt = Callable[[str], bool]


class LocalCapabilityStore:
    """Capability store for local directories and files.

    Every picker returns a path or None when the user cancels; the save picker
    gets the suggested file name. A store built without a file or save picker
    treats those requests as cancelled. The optional prompt is asked before
    re-granting a recalled directory.
    """

    def __init__(
        self,
        adapter: "LocalAdapter",
        picker: DirectoryPicker,
        prompt: Optional[PermissionPrompt] = None,
        file_picker: Optional[FilePicker] = None,
        save_picker: Optional[SavePicker] = None,
    ):
        self.adapter = adapter
        self.picker = picker
        self.prompt = prompt
        self.file_picker = file_picker
        self.save_picker = save_picker

    async def request_directory_access(self) -> "LocalDirectoryHandle":
        answer = await asyncio.to_thread(self.picker)
        if not answer:
            raise OperationCancelledError()
        return self.adapter.open_directory(Path(answer))

    async def request_file_access(self) -> "LocalFileHandle":
        if self.file_picker is None:
            raise OperationCancelledError("No file picker available")
        answer = await asyncio.to_thread(self.file_picker)
        if not answer:
            raise OperationCancelledError()
        return self.adapter.open_file(Path(answer))

    async def request_save_location(self, suggested_name: str) -> "LocalFileHandle":
        if self.save_picker is None:
            raise OperationCancelledError("No save picker available")
        answer = await asyncio.to_thread(self.save_picker, suggested_name)
        if not answer:
            raise OperationCancelledError()
        target = Path(answer).expanduser()
        if target.is_dir():
            target = target / suggested_name
        directory = self.adapter.open_directory(target.parent)
        return await self.adapter.get_or_create_child_file(directory, target.name, create=True)

    async def query_permission(self, handle: DirectoryHandle) -> PermissionState:
        if os.access(handle.location, os.R_OK | os.W_OK | os.X_OK):
            return PermissionState.GRANTED
        return PermissionState.DENIED

    async def request_permission(self, handle: DirectoryHandle) -> PermissionState:
        if self.prompt is not None:
            allowed = await asyncio.to_thread(self.prompt, handle.name)
            if not allowed:
                return PermissionState.DENIED
        return await self.query_permission(handle)

    async def recall(self, location: str) -> "LocalDirectoryHandle":
        try:
            return self.adapter.open_directory(Path(location))
        except NotFoundError:
            raise NotFoundError(f"Recent folder no longer exists: {location}") from None
