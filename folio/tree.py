"""Lazily expanded, path-keyed directory tree.

Only directories the user expanded are ever enumerated. Nodes are keyed by
their workspace-relative path, never by handle, so a refresh after a rename or
move simply drops expansion state for paths that no longer exist.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .entries import EntryOperations
from .exceptions import NotFoundError
from .host.base import DirectoryHandle, EntryKind
from .paths import is_same_or_descendant, join_path, normalize_path, resolve_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeRow:
    """One visible row: an entry at a given depth (root children are depth 0)."""

    path: str
    name: str
    kind: EntryKind
    depth: int
    expanded: bool = False

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY


class WorkspaceTree:
    """Expansion state plus a per-directory cache of sorted listings."""

    def __init__(self, entries: EntryOperations, root: DirectoryHandle):
        self.entries = entries
        self.root = root
        self.expanded: Set[str] = set()
        self._children: Dict[str, List[TreeRow]] = {}

    async def _load(self, dir_path: str, depth: int) -> List[TreeRow]:
        if dir_path:
            directory = await resolve_dir(self.entries.adapter, self.root, dir_path)
            listing = await self.entries.list_dir(directory)
        else:
            listing = await self.entries.list_root(self.root)
        rows = [TreeRow(join_path(dir_path, e.name), e.name, e.kind, depth) for e in listing]
        self._children[dir_path] = rows
        return rows

    async def load_root(self) -> List[TreeRow]:
        self.expanded.clear()
        self._children.clear()
        await self._load("", 0)
        return self.visible_rows()

    async def expand(self, path: str) -> List[TreeRow]:
        """Enumerate the directory at path and mark it expanded.

        Raises:
            NotFoundError: If the directory no longer exists
        """
        path = normalize_path(path)
        rows = await self._load(path, len(path.split("/")))
        self.expanded.add(path)
        return rows

    def collapse(self, path: str) -> None:
        path = normalize_path(path)
        for expanded in [p for p in self.expanded if is_same_or_descendant(p, path)]:
            self.expanded.discard(expanded)
            self._children.pop(expanded, None)

    async def toggle(self, path: str) -> None:
        if normalize_path(path) in self.expanded:
            self.collapse(path)
        else:
            await self.expand(path)

    async def refresh(self) -> List[TreeRow]:
        """Re-read the root and every still-existing expanded directory."""
        previously = sorted(self.expanded, key=lambda p: p.count("/"))
        self.expanded.clear()
        self._children.clear()
        await self._load("", 0)
        for path in previously:
            try:
                await self.expand(path)
            except NotFoundError:
                logger.debug("Expanded directory %s is gone, dropping it", path)
        return self.visible_rows()

    def visible_rows(self) -> List[TreeRow]:
        rows: List[TreeRow] = []

        def walk(dir_path: str) -> None:
            for row in self._children.get(dir_path, []):
                is_open = row.is_dir and row.path in self.expanded
                rows.append(TreeRow(row.path, row.name, row.kind, row.depth, is_open))
                if is_open:
                    walk(row.path)

        walk("")
        return rows

    def find(self, path: str) -> Optional[TreeRow]:
        path = normalize_path(path)
        for row in self.visible_rows():
            if row.path == path:
                return row
        return None
