"""Compound entry operations built from adapter primitives.

Moves copy before they remove: an interrupted move leaves a duplicate at both
locations, never at neither, and re-running the same move converges because the
copy simply overwrites the target with identical bytes.
"""

import logging
from typing import List, Optional, Tuple, Union

from .exceptions import InvalidTargetError, NameCollisionError, NotFoundError
from .host.base import (
    CapabilityAdapter,
    DirectoryHandle,
    DirEntry,
    EntryKind,
    FileHandle,
    Handle,
    check_child_name,
)
from .paths import (
    base_name,
    is_same_or_descendant,
    join_path,
    normalize_path,
    parent_path,
    resolve,
    resolve_dir,
    split_path,
)

logger = logging.getLogger(__name__)

DEFAULT_TRASH_DIR = ".trash"


def sort_entries(entries: List[DirEntry]) -> List[DirEntry]:
    """Directories first, then files; by name ascending within each kind.

    Names compare case-insensitively first and case-sensitively as a tie-break,
    so the order is total and stable across hosts.
    """
    return sorted(entries, key=lambda e: (0 if e.is_dir else 1, e.name.casefold(), e.name))


class EntryOperations:
    """The only code path allowed to mutate storage through the adapter."""

    def __init__(self, adapter: CapabilityAdapter, trash_dir_name: str = DEFAULT_TRASH_DIR):
        self.adapter = adapter
        self.trash_dir_name = check_child_name(trash_dir_name)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_dir(self, directory: DirectoryHandle) -> List[DirEntry]:
        return sort_entries(await self.adapter.enumerate(directory))

    async def list_root(self, root: DirectoryHandle, include_trash: bool = False) -> List[DirEntry]:
        """List the root, hiding the trash container unless asked for."""
        entries = await self.list_dir(root)
        if include_trash:
            return entries
        return [e for e in entries if e.name != self.trash_dir_name]

    async def child_kind(self, directory: DirectoryHandle, name: str) -> Optional[EntryKind]:
        for entry in await self.adapter.enumerate(directory):
            if entry.name == name:
                return entry.kind
        return None

    async def _get_child(self, directory: DirectoryHandle, name: str, kind: EntryKind) -> Handle:
        if kind == EntryKind.FILE:
            return await self.adapter.get_or_create_child_file(directory, name, create=False)
        return await self.adapter.get_or_create_child_dir(directory, name, create=False)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_file(
        self, parent: DirectoryHandle, name: str, content: Union[str, bytes] = ""
    ) -> FileHandle:
        """Create a new file and write its initial content immediately.

        Raises:
            NameCollisionError: If an entry with that name already exists
        """
        check_child_name(name)
        if await self.child_kind(parent, name) is not None:
            raise NameCollisionError(f"An entry named '{name}' already exists", path=name)
        handle = await self.adapter.get_or_create_child_file(parent, name, create=True)
        await self.adapter.write(handle, content)
        logger.info("Created file %s", name)
        return handle

    async def create_dir(self, parent: DirectoryHandle, name: str) -> DirectoryHandle:
        """Create a new directory.

        Raises:
            NameCollisionError: If an entry with that name already exists
        """
        check_child_name(name)
        if await self.child_kind(parent, name) is not None:
            raise NameCollisionError(f"An entry named '{name}' already exists", path=name)
        handle = await self.adapter.get_or_create_child_dir(parent, name, create=True)
        logger.info("Created directory %s", name)
        return handle

    # ------------------------------------------------------------------
    # Move / rename / copy
    # ------------------------------------------------------------------

    async def move(
        self,
        src_dir: DirectoryHandle,
        name: str,
        dst_dir: DirectoryHandle,
        kind: EntryKind,
        new_name: Optional[str] = None,
    ) -> Handle:
        """Move an entry by copy-then-remove.

        An existing target is overwritten so that a retry after an interrupted
        move converges on the same end state.

        Returns:
            Handle to the entry at its new location

        Raises:
            NotFoundError: If the source (or a destination directory) vanished
            InvalidTargetError: If a directory would move into its own subtree
        """
        target_name = check_child_name(new_name or name)

        if target_name == name and await self.adapter.resolve_to_path(src_dir, dst_dir) == []:
            return await self._get_child(src_dir, name, kind)

        if kind == EntryKind.FILE:
            source = await self.adapter.get_or_create_child_file(src_dir, name, create=False)
            data = await self.adapter.read_bytes(source)
            target = await self.adapter.get_or_create_child_file(dst_dir, target_name, create=True)
            await self.adapter.write_bytes(target, data)
            await self.adapter.remove(src_dir, name)
        else:
            source = await self.adapter.get_or_create_child_dir(src_dir, name, create=False)
            if await self.adapter.resolve_to_path(source, dst_dir) is not None:
                raise InvalidTargetError(f"Cannot move '{name}' into itself", path=name)
            target = await self.adapter.get_or_create_child_dir(dst_dir, target_name, create=True)
            await self._copy_tree(source, target)
            await self.adapter.remove(src_dir, name, recursive=True)

        logger.info("Moved %s %s -> %s/%s", kind.value, name, dst_dir.name, target_name)
        return target

    async def rename(self, parent: DirectoryHandle, old_name: str, new_name: str, kind: EntryKind) -> Handle:
        """Rename an entry within its directory.

        Uses the host's atomic move when there is one, otherwise falls back to
        move(). Either way exactly one entry named new_name remains.

        Returns:
            Fresh handle to the renamed entry

        Raises:
            NameCollisionError: If new_name is already taken
            NotFoundError: If old_name vanished
        """
        check_child_name(new_name)
        if new_name == old_name:
            return await self._get_child(parent, old_name, kind)

        source = await self._get_child(parent, old_name, kind)
        existing = await self.child_kind(parent, new_name)
        if existing is not None:
            if existing == kind and await self._same_content(source, await self._get_child(parent, new_name, kind)):
                # Copy of an interrupted fallback rename: finish removing the source
                logger.info("Completing interrupted rename %s -> %s", old_name, new_name)
                return await self.move(parent, old_name, parent, kind, new_name=new_name)
            raise NameCollisionError(f"An entry named '{new_name}' already exists", path=new_name)

        if await self.adapter.try_atomic_move(source, parent, new_name):
            logger.info("Renamed %s -> %s (atomic)", old_name, new_name)
            return await self._get_child(parent, new_name, kind)

        logger.debug("Host has no atomic move, renaming %s by copy", old_name)
        return await self.move(parent, old_name, parent, kind, new_name=new_name)

    async def copy_dir(self, source: DirectoryHandle, target: DirectoryHandle) -> None:
        """Recursively copy every descendant of source into target.

        Raises:
            InvalidTargetError: If target is source or lies inside it
        """
        if await self.adapter.resolve_to_path(source, target) is not None:
            raise InvalidTargetError(f"Cannot copy '{source.name}' into itself", path=source.name)
        await self._copy_tree(source, target)

    async def _same_content(self, first: Handle, second: Handle) -> bool:
        """True if two files hold the same bytes, or two directories the same tree."""
        if isinstance(first, FileHandle):
            return await self.adapter.read_bytes(first) == await self.adapter.read_bytes(second)

        first_entries = sort_entries(await self.adapter.enumerate(first))
        if first_entries != sort_entries(await self.adapter.enumerate(second)):
            return False
        for entry in first_entries:
            if not await self._same_content(
                await self._get_child(first, entry.name, entry.kind),
                await self._get_child(second, entry.name, entry.kind),
            ):
                return False
        return True

    async def _copy_tree(self, source: DirectoryHandle, target: DirectoryHandle) -> None:
        for entry in await self.adapter.enumerate(source):
            if entry.kind == EntryKind.FILE:
                src_file = await self.adapter.get_or_create_child_file(source, entry.name, create=False)
                data = await self.adapter.read_bytes(src_file)
                dst_file = await self.adapter.get_or_create_child_file(target, entry.name, create=True)
                await self.adapter.write_bytes(dst_file, data)
            else:
                sub_source = await self.adapter.get_or_create_child_dir(source, entry.name, create=False)
                sub_target = await self.adapter.get_or_create_child_dir(target, entry.name, create=True)
                await self._copy_tree(sub_source, sub_target)

    # ------------------------------------------------------------------
    # Path-level helpers
    # ------------------------------------------------------------------

    async def kind_of(self, root: DirectoryHandle, path: str) -> EntryKind:
        """Infer the kind of an existing entry: file first, then directory."""
        try:
            await resolve(self.adapter, root, path, EntryKind.FILE)
            return EntryKind.FILE
        except NotFoundError:
            await resolve(self.adapter, root, path, EntryKind.DIRECTORY)
            return EntryKind.DIRECTORY

    async def create_file_at(
        self, root: DirectoryHandle, dir_path: str, name: str, content: Union[str, bytes] = ""
    ) -> Tuple[str, FileHandle]:
        parent = await resolve_dir(self.adapter, root, dir_path)
        handle = await self.create_file(parent, name, content)
        return join_path(dir_path, name), handle

    async def create_dir_at(self, root: DirectoryHandle, dir_path: str, name: str) -> str:
        parent = await resolve_dir(self.adapter, root, dir_path)
        await self.create_dir(parent, name)
        return join_path(dir_path, name)

    async def rename_path(self, root: DirectoryHandle, path: str, new_name: str) -> Tuple[str, EntryKind, Handle]:
        """Rename the entry at path; returns (new path, kind, new handle)."""
        if not split_path(path):
            raise InvalidTargetError("Cannot rename the workspace root")
        kind = await self.kind_of(root, path)
        parent = await resolve_dir(self.adapter, root, parent_path(path))
        handle = await self.rename(parent, base_name(path), new_name, kind)
        return join_path(parent_path(path), new_name), kind, handle

    async def move_path(self, root: DirectoryHandle, path: str, dst_dir_path: str) -> Tuple[str, EntryKind]:
        """Move the entry at path into the directory at dst_dir_path.

        Raises:
            NameCollisionError: If the destination already holds that name
            InvalidTargetError: If a directory would move into its own subtree
        """
        if not split_path(path):
            raise InvalidTargetError("Cannot move the workspace root")
        name = base_name(path)
        if parent_path(path) == normalize_path(dst_dir_path):
            return path, await self.kind_of(root, path)

        kind = await self.kind_of(root, path)
        if kind == EntryKind.DIRECTORY and is_same_or_descendant(dst_dir_path, path):
            raise InvalidTargetError(f"Cannot move '{path}' into itself", path=path)

        src_dir = await resolve_dir(self.adapter, root, parent_path(path))
        dst_dir = await resolve_dir(self.adapter, root, dst_dir_path)
        if await self.child_kind(dst_dir, name) is not None:
            raise NameCollisionError(f"'{name}' already exists in destination", path=join_path(dst_dir_path, name))
        await self.move(src_dir, name, dst_dir, kind)
        return join_path(dst_dir_path, name), kind

    # ------------------------------------------------------------------
    # Delete / trash
    # ------------------------------------------------------------------

    def in_trash(self, path: str) -> bool:
        segments = split_path(path)
        return bool(segments) and segments[0] == self.trash_dir_name

    async def hard_delete(self, root: DirectoryHandle, path: str) -> None:
        """Remove an entry and everything beneath it. Irreversible."""
        if not split_path(path):
            raise InvalidTargetError("Cannot delete the workspace root")
        parent = await resolve_dir(self.adapter, root, parent_path(path))
        await self.adapter.remove(parent, base_name(path), recursive=True)
        logger.info("Deleted %s permanently", path)

    async def soft_delete(self, root: DirectoryHandle, path: str) -> Optional[str]:
        """Move an entry into the trash container at the root.

        Entries already inside the trash are deleted permanently.

        Returns:
            Path of the entry inside the trash, or None if it was hard deleted
        """
        if not split_path(path):
            raise InvalidTargetError("Cannot delete the workspace root")
        if self.in_trash(path):
            await self.hard_delete(root, path)
            return None

        name = base_name(path)
        kind = await self.kind_of(root, path)
        parent = await resolve_dir(self.adapter, root, parent_path(path))
        trash = await self.adapter.get_or_create_child_dir(root, self.trash_dir_name, create=True)
        if await self.child_kind(trash, name) is not None:
            logger.info("Replacing older trashed entry %s", name)
            await self.adapter.remove(trash, name, recursive=True)
        await self.move(parent, name, trash, kind)
        logger.info("Moved %s to trash", path)
        return join_path(self.trash_dir_name, name)

    async def restore(self, root: DirectoryHandle, name: str) -> Tuple[str, EntryKind]:
        """Move a trashed entry back to the root.

        Raises:
            NotFoundError: If the trash or the entry does not exist
            NameCollisionError: If the root already holds an entry with that name
        """
        check_child_name(name)
        trash = await self.adapter.get_or_create_child_dir(root, self.trash_dir_name, create=False)
        try:
            await self.adapter.get_or_create_child_file(trash, name, create=False)
            kind = EntryKind.FILE
        except NotFoundError:
            await self.adapter.get_or_create_child_dir(trash, name, create=False)
            kind = EntryKind.DIRECTORY

        if await self.child_kind(root, name) is not None:
            raise NameCollisionError(f"'{name}' already exists in the workspace root", path=name)
        await self.move(trash, name, root, kind)
        logger.info("Restored %s from trash", name)
        return name, kind

    async def list_trash(self, root: DirectoryHandle) -> List[DirEntry]:
        try:
            trash = await self.adapter.get_or_create_child_dir(root, self.trash_dir_name, create=False)
        except NotFoundError:
            return []
        return await self.list_dir(trash)

    async def empty_trash(self, root: DirectoryHandle) -> int:
        """Permanently delete everything in the trash; returns the entry count."""
        entries = await self.list_trash(root)
        if not entries:
            return 0
        await self.adapter.remove(root, self.trash_dir_name, recursive=True)
        logger.info("Emptied trash (%d entries)", len(entries))
        return len(entries)
