"""Capability handles and the adapter interface over a host storage API."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from folio.exceptions import InvalidPathError, UnreadableFileError


class EntryKind(str, Enum):
    """Kind of storage entry a handle refers to."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class DirEntry:
    """Shallow directory entry returned by enumerate/list_dir."""

    name: str
    kind: EntryKind

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY


class Handle:
    """Opaque capability for one storage entry.

    Handles are never persisted and may go stale at any time: the entry can be
    moved or deleted behind the handle's back. Every adapter operation on a stale
    handle raises NotFoundError.
    """

    kind: EntryKind

    @property
    def name(self) -> str:
        raise NotImplementedError


class FileHandle(Handle):
    kind = EntryKind.FILE


class DirectoryHandle(Handle):
    kind = EntryKind.DIRECTORY


class CapabilityAdapter(ABC):
    """Small async operation set wrapping a host handle API.

    Entry operations are the only callers allowed to use the mutating methods
    (write_*, get_or_create_* with create=True, remove, try_atomic_move).
    """

    @abstractmethod
    async def enumerate(self, directory: DirectoryHandle) -> List[DirEntry]:
        """List direct children of a directory (shallow, unordered).

        Raises:
            NotFoundError: If the directory vanished
        """

    @abstractmethod
    async def read_bytes(self, file: FileHandle) -> bytes:
        """Read a snapshot of file content.

        Raises:
            NotFoundError: If the file vanished since the handle was obtained
        """

    @abstractmethod
    async def write_bytes(self, file: FileHandle, data: bytes) -> None:
        """Replace file content all-or-nothing.

        Raises:
            NotFoundError: If the file vanished since the handle was obtained
        """

    @abstractmethod
    async def get_or_create_child_file(
        self, directory: DirectoryHandle, name: str, create: bool = False
    ) -> FileHandle:
        """Resolve (or create) a child file.

        Raises:
            NotFoundError: If absent and create is False, or the name is a directory
        """

    @abstractmethod
    async def get_or_create_child_dir(
        self, directory: DirectoryHandle, name: str, create: bool = False
    ) -> DirectoryHandle:
        """Resolve (or create) a child directory.

        Raises:
            NotFoundError: If absent and create is False, or the name is a file
        """

    @abstractmethod
    async def remove(self, directory: DirectoryHandle, name: str, recursive: bool = False) -> None:
        """Remove a child entry.

        Raises:
            NotFoundError: If the child does not exist
            NotEmptyError: If the child is a non-empty directory and recursive is False
        """

    @abstractmethod
    async def resolve_to_path(self, root: DirectoryHandle, handle: Handle) -> Optional[List[str]]:
        """Return the segment chain from root to handle, or None if not a descendant."""

    @abstractmethod
    async def try_atomic_move(self, handle: Handle, new_parent: DirectoryHandle, new_name: str) -> bool:
        """Move an entry with a host atomic primitive.

        Returns:
            False if the host has no atomic move; the caller falls back to copy+delete
        """

    @abstractmethod
    def describe(self, directory: DirectoryHandle) -> str:
        """Serializable location of a directory, used by the recents store."""

    async def read_text(self, file: FileHandle) -> str:
        """Read file content as UTF-8 text.

        Raises:
            NotFoundError: If the file vanished
            UnreadableFileError: If the content is not valid UTF-8
        """
        data = await self.read_bytes(file)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnreadableFileError(f"'{file.name}' is not valid UTF-8 text: {e.reason}") from None

    async def write_text(self, file: FileHandle, text: str) -> None:
        await self.write_bytes(file, text.encode("utf-8"))

    async def write(self, file: FileHandle, content: Union[str, bytes]) -> None:
        """Write either text or binary content."""
        if isinstance(content, str):
            await self.write_text(file, content)
        else:
            await self.write_bytes(file, content)


def check_child_name(name: str) -> str:
    """Validate a single path segment used as a child name.

    Raises:
        InvalidPathError: If the name is empty, a dot segment, or contains a separator
    """
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise InvalidPathError(f"Invalid entry name: {name!r}")
    return name
