"""Workspace-relative paths and their resolution into live handles.

A path is the only durable identity of an entry. Resolution never caches
intermediate directory handles: every call walks from the root again, since a
directory on the way may have been renamed since the last walk.
"""

from typing import List, Optional, Union

from .exceptions import InvalidPathError, NotFoundError
from .host.base import CapabilityAdapter, DirectoryHandle, EntryKind, FileHandle, Handle


def split_path(path: str) -> List[str]:
    """Split a path into normalized segments.

    Rules:
    - backslashes are treated as separators
    - empty and '.' segments are dropped
    - '..' segments and absolute paths are rejected

    Raises:
        InvalidPathError
    """
    if path is None:
        raise InvalidPathError("Path is required")

    path = str(path).replace("\\", "/")
    if path.startswith("/"):
        raise InvalidPathError(f"Absolute paths are not allowed: {path!r}")

    segments = [s for s in path.split("/") if s and s != "."]
    if any(s == ".." for s in segments):
        raise InvalidPathError(f"Parent path segments ('..') are not allowed: {path!r}")
    return segments


def normalize_path(path: str) -> str:
    """Return the canonical string form of a path ('' is the root itself)."""
    return "/".join(split_path(path))


def join_path(*parts: str) -> str:
    return normalize_path("/".join(p for p in parts if p))


def parent_path(path: str) -> str:
    return "/".join(split_path(path)[:-1])


def base_name(path: str) -> str:
    segments = split_path(path)
    return segments[-1] if segments else ""


def is_same_or_descendant(path: str, ancestor: str) -> bool:
    """True if path equals ancestor or lies beneath it."""
    path_segments = split_path(path)
    ancestor_segments = split_path(ancestor)
    return path_segments[: len(ancestor_segments)] == ancestor_segments


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace old_prefix at the start of path with new_prefix."""
    tail = split_path(path)[len(split_path(old_prefix)) :]
    return join_path(new_prefix, *tail)


async def resolve_dir(adapter: CapabilityAdapter, root: DirectoryHandle, path: str) -> DirectoryHandle:
    """Walk every segment of path as a directory.

    Raises:
        NotFoundError: At the first missing segment
    """
    current = root
    walked: List[str] = []
    for segment in split_path(path):
        walked.append(segment)
        try:
            current = await adapter.get_or_create_child_dir(current, segment, create=False)
        except NotFoundError:
            raise NotFoundError(f"Not found: {'/'.join(walked)}", path="/".join(walked)) from None
    return current


async def resolve(
    adapter: CapabilityAdapter,
    root: DirectoryHandle,
    path: str,
    kind: EntryKind = EntryKind.FILE,
) -> Union[FileHandle, DirectoryHandle]:
    """Resolve a path into a fresh handle of the requested kind.

    Raises:
        NotFoundError: At the first missing segment
        InvalidPathError: If path is malformed, or empty when a file is requested
    """
    segments = split_path(path)
    if not segments:
        if kind == EntryKind.DIRECTORY:
            return root
        raise InvalidPathError("Empty path cannot name a file")

    parent = await resolve_dir(adapter, root, "/".join(segments[:-1]))
    normalized = "/".join(segments)
    try:
        if kind == EntryKind.FILE:
            return await adapter.get_or_create_child_file(parent, segments[-1], create=False)
        return await adapter.get_or_create_child_dir(parent, segments[-1], create=False)
    except NotFoundError:
        raise NotFoundError(f"Not found: {normalized}", path=normalized) from None


async def resolve_any(adapter: CapabilityAdapter, root: DirectoryHandle, path: str) -> Handle:
    """Resolve a path as a file, falling back to a directory."""
    try:
        return await resolve(adapter, root, path, EntryKind.FILE)
    except NotFoundError:
        return await resolve(adapter, root, path, EntryKind.DIRECTORY)


async def path_of(adapter: CapabilityAdapter, root: DirectoryHandle, handle: Handle) -> Optional[str]:
    """Convert a handle back into a path relative to root, or None if outside it."""
    segments = await adapter.resolve_to_path(root, handle)
    if segments is None:
        return None
    return "/".join(segments)
