"""Top-level session controller: folder lifecycle, recents and snapshots."""

import asyncio
import logging
from typing import Any, Optional

from .config import Config
from .events import EventBus, PermissionNeededEvent
from .exceptions import NotFoundError, OperationCancelledError
from .host.base import CapabilityAdapter, DirectoryHandle
from .host.capability import CapabilityStore, PermissionState
from .models import Document, RecentRoot, UIPreferences
from .restore import RestoreResult, restore_session
from .session import PreferencesStore, RecentsStore, SessionStore, session_key, snapshot
from .workspace import Workspace

logger = logging.getLogger(__name__)


class SessionController:
    """Owns one Workspace and everything persisted around it."""

    def __init__(
        self,
        adapter: CapabilityAdapter,
        capabilities: CapabilityStore,
        config: Optional[Config] = None,
        sessions: Optional[SessionStore] = None,
        recents: Optional[RecentsStore] = None,
        preferences: Optional[PreferencesStore] = None,
        bus: Optional[EventBus] = None,
    ):
        self.config = config or Config()
        data_dir = self.config.resolved_data_dir()
        self.adapter = adapter
        self.capabilities = capabilities
        self.bus = bus or EventBus()
        self.sessions = sessions or SessionStore(data_dir / "sessions")
        self.recents = recents or RecentsStore(data_dir / "recents.json")
        self.preferences_store = preferences or PreferencesStore(data_dir / "preferences.json")
        self.preferences = self.preferences_store.load()
        self.workspace = Workspace(adapter, config=self.config, bus=self.bus)
        self.permission_needed: Optional[str] = None

        self._running = False
        self._wakeup = asyncio.Event()
        self._snapshot_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Folder lifecycle
    # ------------------------------------------------------------------

    async def open_folder(self) -> Optional[RestoreResult]:
        """Ask the user for a directory and open it.

        Returns:
            RestoreResult, or None if the user cancelled the picker
        """
        try:
            handle = await self.capabilities.request_directory_access()
        except OperationCancelledError:
            logger.debug("Folder picker cancelled")
            return None
        return await self._activate(handle)

    async def open_recent(self, key: str) -> Optional[RestoreResult]:
        """Re-open a recent root after re-checking its permission.

        Returns:
            RestoreResult, or None when permission was not granted (see
            permission_needed)

        Raises:
            NotFoundError: If the key is unknown or the location vanished
        """
        entry = self.recents.get(key)
        if entry is None:
            raise NotFoundError(f"No recent folder named '{key}'")

        handle = await self.capabilities.recall(entry.location)
        state = await self.capabilities.query_permission(handle)
        if state != PermissionState.GRANTED:
            state = await self.capabilities.request_permission(handle)
        if state != PermissionState.GRANTED:
            logger.info("Permission for recent folder '%s' is %s", key, state.value)
            self.permission_needed = key
            self.bus.emit(PermissionNeededEvent(key=key))
            return None

        self.permission_needed = None
        return await self._activate(handle)

    async def _activate(self, handle: DirectoryHandle) -> RestoreResult:
        if self.workspace.root is not None:
            await self.close_folder()

        await self.workspace.open_root(handle)
        saved = self.sessions.load(session_key(handle.name))
        result = await restore_session(self.workspace, saved)

        try:
            self.recents.put(RecentRoot(key=handle.name, location=self.adapter.describe(handle)))
        except RuntimeError as e:
            logger.warning("Failed to record recent folder %s: %s", handle.name, e)
        return result

    async def close_folder(self) -> None:
        """Let pending edits settle, snapshot the session, then clear the workspace."""
        if self.workspace.root is None:
            return
        await self.workspace.flush()
        try:
            self.snapshot_now()
        except RuntimeError as e:
            logger.error("Session snapshot for %s failed: %s", self.workspace.root_name, e)
        await self.workspace.close_root()

    # ------------------------------------------------------------------
    # Single files
    # ------------------------------------------------------------------

    async def open_file(self) -> Optional[Document]:
        """Ask the user for one file and open it, with or without a root.

        Returns:
            The opened document, or None if the user cancelled the picker
        """
        try:
            handle = await self.capabilities.request_file_access()
        except OperationCancelledError:
            logger.debug("File picker cancelled")
            return None
        return await self.workspace.open_external_file(handle)

    async def export_document(self, document_id: Optional[str] = None) -> Optional[Document]:
        """Ask where to save a document (the active one by default) and write it there.

        Returns:
            The rebound document, or None when there is nothing to export or
            the user cancelled the picker
        """
        doc = self.workspace.active_document if document_id is None else self.workspace.get_document(document_id)
        if doc is None:
            return None
        try:
            target = await self.capabilities.request_save_location(doc.name)
        except OperationCancelledError:
            logger.debug("Export of %s cancelled", doc.name)
            return None
        try:
            await self.workspace.export_document(doc.id, target)
        except Exception as e:
            self.workspace.notify(f"Export failed for {doc.name}: {e}", level="error", document_id=doc.id)
            raise
        self.workspace.notify(f"Exported {doc.name}")
        return doc

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot_now(self) -> bool:
        """Persist the current path/cursor projection. Never waits on storage.

        Returns:
            True if a snapshot was written
        """
        root_name = self.workspace.root_name
        if root_name is None:
            return False
        self.sessions.save(session_key(root_name), snapshot(self.workspace))
        return True

    async def start(self) -> None:
        """Start the periodic snapshot task."""
        if self._running:
            return
        self._running = True
        self._snapshot_task = asyncio.create_task(self._snapshot_loop(), name="folio-session-snapshots")

    async def _snapshot_loop(self) -> None:
        interval = self.config.session_snapshot_interval_s
        while self._running:
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            if not self._running:
                break
            try:
                self.snapshot_now()
            except RuntimeError as e:
                logger.error("Periodic session snapshot failed: %s", e)

    async def shutdown(self) -> None:
        """Stop the snapshot task, take a final snapshot and close everything."""
        self._running = False
        self._wakeup.set()
        if self._snapshot_task is not None:
            await self._snapshot_task
            self._snapshot_task = None
        await self.workspace.flush()
        try:
            self.snapshot_now()
        except RuntimeError as e:
            logger.error("Final session snapshot failed: %s", e)
        await self.workspace.aclose()
        logger.info("Session controller stopped")

    # ------------------------------------------------------------------
    # UI preferences
    # ------------------------------------------------------------------

    def _set_preference(self, field: str, value: Any) -> UIPreferences:
        data = self.preferences.model_dump()
        data[field] = value
        self.preferences = UIPreferences.model_validate(data)
        self.preferences_store.save(self.preferences)
        return self.preferences

    def set_sidebar_visible(self, visible: bool) -> UIPreferences:
        return self._set_preference("sidebar_visible", visible)

    def set_view_mode(self, mode: str) -> UIPreferences:
        return self._set_preference("view_mode", mode)

    def set_theme(self, theme: str) -> UIPreferences:
        return self._set_preference("theme", theme)

    def forget_recent(self, key: str) -> bool:
        return self.recents.remove(key)
