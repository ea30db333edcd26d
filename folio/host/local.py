"""Capability adapter over the local filesystem.

A local handle is just an absolute location. When the entry behind it is moved
or deleted the handle goes stale and every operation raises NotFoundError, which
is exactly the contract callers must already tolerate.
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from folio.exceptions import NotEmptyError, NotFoundError

from .base import CapabilityAdapter, DirectoryHandle, DirEntry, EntryKind, FileHandle, Handle, check_child_name

logger = logging.getLogger(__name__)

TMP_SUFFIX = ".folio-tmp"


@dataclass(frozen=True)
class LocalFileHandle(FileHandle):
    location: Path

    @property
    def name(self) -> str:
        return self.location.name


@dataclass(frozen=True)
class LocalDirectoryHandle(DirectoryHandle):
    location: Path

    @property
    def name(self) -> str:
        return self.location.name


class LocalAdapter(CapabilityAdapter):
    """Adapter backed by pathlib; blocking calls run in worker threads."""

    def __init__(self, atomic_moves: bool = True):
        """Initialize local adapter.

        Args:
            atomic_moves: Whether try_atomic_move uses os.rename. With False the
                adapter behaves like a host without a move primitive.
        """
        self.atomic_moves = atomic_moves

    def open_directory(self, location: Path) -> LocalDirectoryHandle:
        """Mint a root handle for an existing directory.

        Raises:
            NotFoundError: If location is not an existing directory
        """
        location = Path(location).expanduser().resolve()
        if not location.is_dir():
            raise NotFoundError(f"Not a directory: {location}")
        return LocalDirectoryHandle(location)

    def open_file(self, location: Path) -> LocalFileHandle:
        """Mint a handle for an existing file picked outside any root.

        Raises:
            NotFoundError: If location is not an existing file
        """
        location = Path(location).expanduser().resolve()
        if not location.is_file():
            raise NotFoundError(f"Not a file: {location}")
        return LocalFileHandle(location)

    def describe(self, directory: DirectoryHandle) -> str:
        return str(directory.location)

    async def enumerate(self, directory: DirectoryHandle) -> List[DirEntry]:
        return await asyncio.to_thread(self._enumerate, directory.location)

    def _enumerate(self, location: Path) -> List[DirEntry]:
        if not location.is_dir():
            raise NotFoundError(f"Directory not found: {location.name}")
        entries = []
        with os.scandir(location) as it:
            for item in it:
                if item.name.endswith(TMP_SUFFIX):
                    continue
                if item.is_dir():
                    entries.append(DirEntry(item.name, EntryKind.DIRECTORY))
                elif item.is_file():
                    entries.append(DirEntry(item.name, EntryKind.FILE))
        return entries

    async def read_bytes(self, file: FileHandle) -> bytes:
        return await asyncio.to_thread(self._read_bytes, file.location)

    def _read_bytes(self, location: Path) -> bytes:
        if not location.is_file():
            raise NotFoundError(f"File not found: {location.name}")
        try:
            return location.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {location.name}") from None

    async def write_bytes(self, file: FileHandle, data: bytes) -> None:
        await asyncio.to_thread(self._write_bytes, file.location, data)

    def _write_bytes(self, location: Path, data: bytes) -> None:
        if not location.is_file():
            raise NotFoundError(f"File not found: {location.name}")
        tmp = location.with_name(location.name + TMP_SUFFIX)
        try:
            with open(tmp, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, location)
        except FileNotFoundError:
            tmp.unlink(missing_ok=True)
            raise NotFoundError(f"File not found: {location.name}") from None
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    async def get_or_create_child_file(
        self, directory: DirectoryHandle, name: str, create: bool = False
    ) -> LocalFileHandle:
        check_child_name(name)
        child = await asyncio.to_thread(self._child, directory.location, name, EntryKind.FILE, create)
        return LocalFileHandle(child)

    async def get_or_create_child_dir(
        self, directory: DirectoryHandle, name: str, create: bool = False
    ) -> LocalDirectoryHandle:
        check_child_name(name)
        child = await asyncio.to_thread(self._child, directory.location, name, EntryKind.DIRECTORY, create)
        return LocalDirectoryHandle(child)

    def _child(self, parent: Path, name: str, kind: EntryKind, create: bool) -> Path:
        if not parent.is_dir():
            raise NotFoundError(f"Directory not found: {parent.name}")
        child = parent / name
        if kind == EntryKind.FILE:
            if child.is_file():
                return child
            if child.exists():
                raise NotFoundError(f"Not a file: {name}")
            if not create:
                raise NotFoundError(f"File not found: {name}")
            child.touch()
        else:
            if child.is_dir():
                return child
            if child.exists():
                raise NotFoundError(f"Not a directory: {name}")
            if not create:
                raise NotFoundError(f"Directory not found: {name}")
            child.mkdir()
        return child

    async def remove(self, directory: DirectoryHandle, name: str, recursive: bool = False) -> None:
        check_child_name(name)
        await asyncio.to_thread(self._remove, directory.location / name, recursive)

    def _remove(self, target: Path, recursive: bool) -> None:
        if not target.exists():
            raise NotFoundError(f"Not found: {target.name}")
        if target.is_dir():
            if recursive:
                shutil.rmtree(target)
                return
            if any(target.iterdir()):
                raise NotEmptyError(f"Directory not empty: {target.name}")
            target.rmdir()
        else:
            target.unlink()

    async def resolve_to_path(self, root: DirectoryHandle, handle: Handle) -> Optional[List[str]]:
        try:
            rel = handle.location.relative_to(root.location)
        except ValueError:
            return None
        return list(rel.parts)

    async def try_atomic_move(self, handle: Handle, new_parent: DirectoryHandle, new_name: str) -> bool:
        if not self.atomic_moves:
            return False
        check_child_name(new_name)
        await asyncio.to_thread(self._move, handle.location, new_parent.location / new_name)
        return True

    def _move(self, source: Path, target: Path) -> None:
        if not source.exists():
            raise NotFoundError(f"Not found: {source.name}")
        if not target.parent.is_dir():
            raise NotFoundError(f"Directory not found: {target.parent.name}")
        logger.debug("Renaming %s -> %s", source, target)
        os.rename(source, target)
