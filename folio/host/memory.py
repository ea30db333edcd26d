"""In-memory capability adapter.

Handles point at tree nodes, so unlike local handles they survive an atomic move
(like browser handles do) and only go stale when their node is removed. Every
operation yields to the event loop once to model a suspending host call.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from folio.exceptions import NotEmptyError, NotFoundError, OperationCancelledError

from .base import CapabilityAdapter, DirectoryHandle, DirEntry, EntryKind, FileHandle, Handle, check_child_name
from .capability import PermissionState


@dataclass(eq=False)
class _Node:
    name: str
    kind: EntryKind
    parent: Optional["_Node"] = None
    children: Dict[str, "_Node"] = field(default_factory=dict)
    data: bytes = b""
    detached: bool = False

    def detach(self) -> None:
        self.detached = True
        for child in self.children.values():
            child.detach()


@dataclass(frozen=True)
class MemoryFileHandle(FileHandle):
    node: _Node

    @property
    def name(self) -> str:
        return self.node.name


@dataclass(frozen=True)
class MemoryDirectoryHandle(DirectoryHandle):
    node: _Node

    @property
    def name(self) -> str:
        return self.node.name


def _handle_for(node: _Node) -> Handle:
    if node.kind == EntryKind.FILE:
        return MemoryFileHandle(node)
    return MemoryDirectoryHandle(node)


class MemoryAdapter(CapabilityAdapter):
    """Adapter over an in-process tree of nodes."""

    def __init__(self, atomic_moves: bool = False):
        self.atomic_moves = atomic_moves
        self._roots: Dict[str, _Node] = {}

    def create_root(self, name: str) -> MemoryDirectoryHandle:
        """Create (or return) a named top-level directory."""
        if name not in self._roots:
            self._roots[name] = _Node(name, EntryKind.DIRECTORY)
        return MemoryDirectoryHandle(self._roots[name])

    def describe(self, directory: DirectoryHandle) -> str:
        return directory.node.name

    def root_by_name(self, name: str) -> MemoryDirectoryHandle:
        if name not in self._roots:
            raise NotFoundError(f"Unknown root: {name}")
        return MemoryDirectoryHandle(self._roots[name])

    def _live(self, handle: Handle) -> _Node:
        node = handle.node
        if node.detached:
            raise NotFoundError(f"Entry no longer exists: {node.name}")
        return node

    async def enumerate(self, directory: DirectoryHandle) -> List[DirEntry]:
        await asyncio.sleep(0)
        node = self._live(directory)
        return [DirEntry(child.name, child.kind) for child in node.children.values()]

    async def read_bytes(self, file: FileHandle) -> bytes:
        await asyncio.sleep(0)
        return self._live(file).data

    async def write_bytes(self, file: FileHandle, data: bytes) -> None:
        await asyncio.sleep(0)
        self._live(file).data = bytes(data)

    async def get_or_create_child_file(
        self, directory: DirectoryHandle, name: str, create: bool = False
    ) -> MemoryFileHandle:
        return await self._child(directory, name, EntryKind.FILE, create)

    async def get_or_create_child_dir(
        self, directory: DirectoryHandle, name: str, create: bool = False
    ) -> MemoryDirectoryHandle:
        return await self._child(directory, name, EntryKind.DIRECTORY, create)

    async def _child(self, directory: DirectoryHandle, name: str, kind: EntryKind, create: bool) -> Handle:
        check_child_name(name)
        await asyncio.sleep(0)
        parent = self._live(directory)
        child = parent.children.get(name)
        if child is not None:
            if child.kind != kind:
                raise NotFoundError(f"Not a {kind.value}: {name}")
            return _handle_for(child)
        if not create:
            raise NotFoundError(f"Not found: {name}")
        child = _Node(name, kind, parent=parent)
        parent.children[name] = child
        return _handle_for(child)

    async def remove(self, directory: DirectoryHandle, name: str, recursive: bool = False) -> None:
        check_child_name(name)
        await asyncio.sleep(0)
        parent = self._live(directory)
        child = parent.children.get(name)
        if child is None:
            raise NotFoundError(f"Not found: {name}")
        if child.kind == EntryKind.DIRECTORY and child.children and not recursive:
            raise NotEmptyError(f"Directory not empty: {name}")
        del parent.children[name]
        child.parent = None
        child.detach()

    async def resolve_to_path(self, root: DirectoryHandle, handle: Handle) -> Optional[List[str]]:
        await asyncio.sleep(0)
        node = handle.node
        if node.detached:
            return None
        segments: List[str] = []
        while node is not None and node is not root.node:
            segments.append(node.name)
            node = node.parent
        if node is None:
            return None
        return list(reversed(segments))

    async def try_atomic_move(self, handle: Handle, new_parent: DirectoryHandle, new_name: str) -> bool:
        if not self.atomic_moves:
            return False
        check_child_name(new_name)
        await asyncio.sleep(0)
        node = self._live(handle)
        target_parent = self._live(new_parent)
        if node.parent is not None:
            del node.parent.children[node.name]
        replaced = target_parent.children.get(new_name)
        if replaced is not None:
            replaced.detach()
        node.name = new_name
        node.parent = target_parent
        target_parent.children[new_name] = node
        return True


class MemoryCapabilityStore:
    """Scripted capability store for the in-memory host.

    Picker answers are queued root names; file and save answers are queued
    "root/dir/file.md" locations. None in any queue means the user dismissed
    the picker.
    """

    def __init__(self, adapter: MemoryAdapter):
        self.adapter = adapter
        self.picker_answers: List[Optional[str]] = []
        self.file_answers: List[Optional[str]] = []
        self.save_answers: List[Optional[str]] = []
        self.save_suggestions: List[str] = []
        self.permissions: Dict[str, PermissionState] = {}
        self.grant_on_request = True

    async def request_directory_access(self) -> MemoryDirectoryHandle:
        await asyncio.sleep(0)
        answer = self.picker_answers.pop(0) if self.picker_answers else None
        if answer is None:
            raise OperationCancelledError()
        handle = self.adapter.create_root(answer)
        self.permissions[answer] = PermissionState.GRANTED
        return handle

    async def _locate(self, location: str, create: bool) -> MemoryFileHandle:
        root_name, _, rest = location.partition("/")
        directory = self.adapter.create_root(root_name) if create else self.adapter.root_by_name(root_name)
        *dirs, name = rest.split("/")
        for segment in dirs:
            directory = await self.adapter.get_or_create_child_dir(directory, segment, create=create)
        return await self.adapter.get_or_create_child_file(directory, name, create=create)

    async def request_file_access(self) -> MemoryFileHandle:
        await asyncio.sleep(0)
        answer = self.file_answers.pop(0) if self.file_answers else None
        if answer is None:
            raise OperationCancelledError()
        return await self._locate(answer, create=False)

    async def request_save_location(self, suggested_name: str) -> MemoryFileHandle:
        await asyncio.sleep(0)
        self.save_suggestions.append(suggested_name)
        answer = self.save_answers.pop(0) if self.save_answers else None
        if answer is None:
            raise OperationCancelledError()
        return await self._locate(answer, create=True)

    async def query_permission(self, handle: DirectoryHandle) -> PermissionState:
        return self.permissions.get(handle.name, PermissionState.PROMPT)

    async def request_permission(self, handle: DirectoryHandle) -> PermissionState:
        state = PermissionState.GRANTED if self.grant_on_request else PermissionState.DENIED
        self.permissions[handle.name] = state
        return state

    async def recall(self, location: str) -> MemoryDirectoryHandle:
        return self.adapter.root_by_name(location)
