"""Persisted session state: per-root sessions, UI preferences and recents.

Nothing here ever stores a handle or document content. Sessions are the
path/cursor projection of the open documents, taken synchronously from memory.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

import portalocker
from pydantic import ValidationError

from .models import OpenFileEntry, RecentRoot, SavedSession, UIPreferences
from .xdg import get_xdg_data_path

if TYPE_CHECKING:
    from .workspace import Workspace

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "folio-session-"

_UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9._-]")


def session_key(root_name: str) -> str:
    """Workspace-scoped session key; the root's name is its identity."""
    return f"{SESSION_KEY_PREFIX}{root_name}"


def _file_name(key: str) -> str:
    return _UNSAFE_KEY_RE.sub("_", key) + ".json"


def snapshot(workspace: "Workspace") -> SavedSession:
    """Project the open documents into a SavedSession.

    Only bound documents are included. Never touches storage, so it cannot
    block behind a pending write.
    """
    open_files = [
        OpenFileEntry(name=doc.name, path=doc.path, cursor=doc.cursor)
        for doc in workspace.documents
        if doc.path is not None
    ]
    active = workspace.active_document
    active_path = active.path if active is not None else None
    return SavedSession(open_files=open_files, active_file_path=active_path)


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            portalocker.lock(f, portalocker.LOCK_SH)
            try:
                return json.load(f)
            finally:
                portalocker.unlock(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Failed to read %s: %s", path, e)
        return None


def _write_json(path: Path, data) -> None:
    """Write JSON atomically under an exclusive lock on a sibling lock file.

    Raises:
        RuntimeError: If the lock cannot be taken or the write fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_suffix(path.suffix + ".lock")
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(lock_path, "a", encoding="utf-8") as lock_file:
            portalocker.lock(lock_file, portalocker.LOCK_EX)
            try:
                tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
                os.replace(str(tmp), str(path))
            finally:
                portalocker.unlock(lock_file)
    except portalocker.exceptions.LockException:
        raise RuntimeError(f"Failed to acquire lock on {path}")
    except OSError as e:
        raise RuntimeError(f"Failed to save {path}: {e}")


class SessionStore:
    """One JSON file per workspace root under the data directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else get_xdg_data_path("sessions")

    def _path(self, key: str) -> Path:
        return self.directory / _file_name(key)

    def load(self, key: str) -> Optional[SavedSession]:
        data = _read_json(self._path(key))
        if data is None:
            return None
        try:
            return SavedSession.model_validate(data)
        except ValidationError as e:
            logger.error("Ignoring corrupt session %s: %s", key, e)
            return None

    def save(self, key: str, session: SavedSession) -> None:
        _write_json(self._path(key), session.to_json_dict())
        logger.debug("Saved session %s (%d open files)", key, len(session.open_files))

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True


class PreferencesStore:
    """Global UI preferences record, independent of any root."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else get_xdg_data_path() / "preferences.json"

    def load(self) -> UIPreferences:
        data = _read_json(self.path)
        if data is None:
            return UIPreferences()
        try:
            return UIPreferences.model_validate(data)
        except ValidationError as e:
            logger.error("Ignoring corrupt preferences: %s", e)
            return UIPreferences()

    def save(self, preferences: UIPreferences) -> None:
        _write_json(self.path, preferences.model_dump(mode="json", by_alias=True))


class RecentsStore:
    """Previously opened roots keyed by root name, last write wins."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else get_xdg_data_path() / "recents.json"
        self._entries: Dict[str, RecentRoot] = {}
        self._load()

    def _load(self) -> None:
        data = _read_json(self.path)
        if data is None:
            return
        for raw in data.get("recents", []):
            try:
                entry = RecentRoot.model_validate(raw)
            except ValidationError as e:
                logger.error("Skipping corrupt recents entry in %s: %s", self.path, e)
                continue
            self._entries[entry.key] = entry

    def _save(self) -> None:
        entries = [e.model_dump(mode="json", by_alias=True) for e in self._entries.values()]
        _write_json(self.path, {"recents": entries})

    def put(self, entry: RecentRoot) -> None:
        self._entries[entry.key] = entry
        self._save()
        logger.info("Recorded recent root '%s'", entry.key)

    def get(self, key: str) -> Optional[RecentRoot]:
        return self._entries.get(key)

    def get_all(self) -> List[RecentRoot]:
        return sorted(self._entries.values(), key=lambda e: e.last_accessed, reverse=True)

    def remove(self, key: str) -> bool:
        if key not in self._entries:
            return False
        del self._entries[key]
        self._save()
        logger.info("Removed recent root '%s'", key)
        return True
