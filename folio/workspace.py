"""Workspace state: the open root, open documents, and their reconciliation.

The workspace is the single writer of document state. Every storage mutation
goes through EntryOperations and is followed, in the same operation, by the
matching update of document paths and handles, so the two never diverge for
longer than one operation.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .config import Config
from .entries import EntryOperations
from .events import (
    ActiveDocumentChangedEvent,
    BaseEvent,
    DocumentClosedEvent,
    DocumentOpenedEvent,
    DocumentRenamedEvent,
    DocumentSavedEvent,
    EventBus,
    ListingRefreshedEvent,
    NotificationEvent,
    RootClosedEvent,
    RootOpenedEvent,
)
from .exceptions import FolioError, NameCollisionError, NoRootError, NotFoundError, StaleReferenceError
from .host.base import CapabilityAdapter, DirectoryHandle, DirEntry, EntryKind, FileHandle
from .models import CursorPosition, Document
from .naming import (
    filename_from_content,
    is_image_file,
    link_candidates,
    pasted_image_name,
    split_link_target,
    untitled_name,
)
from .paths import (
    base_name,
    is_same_or_descendant,
    normalize_path,
    parent_path,
    path_of,
    rebase_path,
    resolve,
    resolve_dir,
)
from .queue import DocumentQueue, Intent, IntentKind

logger = logging.getLogger(__name__)

CloseConfirm = Callable[[Document], Union[bool, Awaitable[bool]]]


class Workspace:
    """In-memory model of one open root and its open documents."""

    def __init__(
        self,
        adapter: CapabilityAdapter,
        config: Optional[Config] = None,
        entries: Optional[EntryOperations] = None,
        bus: Optional[EventBus] = None,
    ):
        self.adapter = adapter
        self.config = config or Config()
        self.entries = entries or EntryOperations(adapter, self.config.trash_dir_name)
        self.bus = bus or EventBus()

        self.root: Optional[DirectoryHandle] = None
        self.documents: List[Document] = []
        self.active_document_id: Optional[str] = None
        self.recycle_bin_active = False
        self.listing: List[DirEntry] = []
        self.pending_anchor: Optional[str] = None

        self._queues: Dict[str, DocumentQueue] = {}
        self._mutation_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def root_name(self) -> Optional[str]:
        return self.root.name if self.root is not None else None

    @property
    def active_document(self) -> Optional[Document]:
        if self.active_document_id is None:
            return None
        return self.find_document(self.active_document_id)

    def find_document(self, document_id: str) -> Optional[Document]:
        for doc in self.documents:
            if doc.id == document_id:
                return doc
        return None

    def get_document(self, document_id: str) -> Document:
        doc = self.find_document(document_id)
        if doc is None:
            raise KeyError(f"Unknown document: {document_id}")
        return doc

    def find_by_path(self, path: str) -> Optional[Document]:
        path = normalize_path(path)
        for doc in self.documents:
            if doc.path == path:
                return doc
        return None

    def _require_root(self) -> DirectoryHandle:
        if self.root is None:
            raise NoRootError()
        return self.root

    def _emit(self, event: BaseEvent) -> None:
        self.bus.emit(event)

    def notify(self, message: str, level: str = "info", document_id: Optional[str] = None) -> None:
        self._emit(NotificationEvent(message=message, level=level, document_id=document_id))

    # ------------------------------------------------------------------
    # Root
    # ------------------------------------------------------------------

    async def open_root(self, root: DirectoryHandle) -> None:
        """Make root the workspace root; any previous root is closed first.

        Clean virtual documents are dropped; dirty ones stay open so they can be
        saved into the new root.
        """
        if self.root is not None:
            await self.close_root()

        for doc in [d for d in self.documents if d.is_virtual and not d.dirty]:
            await self._discard_document(doc)

        self.root = root
        self.recycle_bin_active = False
        logger.info("Opened workspace root %s", root.name)
        self._emit(RootOpenedEvent(name=root.name))
        await self.refresh_listing()

    async def close_root(self) -> None:
        """Flush pending document work, then clear documents and the active id."""
        if self.root is None:
            return
        name = self.root.name
        await self.flush()
        for queue in self._queues.values():
            queue.cancel()
        self._queues.clear()
        self.documents.clear()
        self.active_document_id = None
        self.listing = []
        self.recycle_bin_active = False
        self.root = None
        logger.info("Closed workspace root %s", name)
        self._emit(RootClosedEvent(name=name))

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def refresh_listing(self) -> List[DirEntry]:
        """Re-read the root (or trash) listing. Only called after mutations settle."""
        if self.root is None:
            self.listing = []
        elif self.recycle_bin_active:
            self.listing = await self.entries.list_trash(self.root)
        else:
            self.listing = await self.entries.list_root(self.root)
        self._emit(
            ListingRefreshedEvent(entries=[e.name for e in self.listing], recycle_bin=self.recycle_bin_active)
        )
        return self.listing

    async def show_recycle_bin(self, active: bool) -> List[DirEntry]:
        self.recycle_bin_active = active
        return await self.refresh_listing()

    async def list_directory(self, path: str = "") -> List[DirEntry]:
        """Sorted children of the directory at path (root listing hides the trash)."""
        root = self._require_root()
        if not normalize_path(path):
            return await self.entries.list_root(root)
        directory = await resolve_dir(self.adapter, root, path)
        return await self.entries.list_dir(directory)

    # ------------------------------------------------------------------
    # Opening and closing documents
    # ------------------------------------------------------------------

    def add_document(self, doc: Document, activate: bool = True) -> Document:
        self.documents.append(doc)
        self._emit(DocumentOpenedEvent(document_id=doc.id, name=doc.name, path=doc.path))
        if activate:
            self.set_active(doc.id)
        return doc

    def set_active(self, document_id: Optional[str]) -> None:
        if document_id is not None:
            self.get_document(document_id)
        if document_id != self.active_document_id:
            self.active_document_id = document_id
            self._emit(ActiveDocumentChangedEvent(document_id=document_id))

    async def open_from_tree(self, path: str, activate: bool = True) -> Document:
        """Open the file at path, or focus it if it is already open.

        Raises:
            NotFoundError: If the file does not exist
        """
        root = self._require_root()
        path = normalize_path(path)
        existing = self.find_by_path(path)
        if existing is not None:
            if activate:
                self.set_active(existing.id)
            return existing

        handle = await resolve(self.adapter, root, path, EntryKind.FILE)
        name = base_name(path)
        if is_image_file(name):
            doc = Document(name=name, path=path, handle=handle, is_binary=True)
        else:
            content = await self.adapter.read_text(handle)
            doc = Document(name=name, path=path, handle=handle, content=content)
        return self.add_document(doc, activate=activate)

    def _next_untitled_name(self) -> str:
        taken = {d.name for d in self.documents} | {e.name for e in self.listing}
        index = len(self.documents) + 1
        while untitled_name(index) in taken:
            index += 1
        return untitled_name(index)

    async def new_document(self, name: Optional[str] = None, content: str = "", dir_path: str = "") -> Document:
        """Create a new document.

        With a root open the file is created in storage immediately and the
        document is bound; without one it is a dirty virtual document.

        Raises:
            NameCollisionError: If the name is taken in the target directory
        """
        if name is None:
            name = self._next_untitled_name()

        if self.root is None:
            return self.new_virtual_document(name, content)

        async with self._mutation_lock:
            path, handle = await self.entries.create_file_at(self.root, dir_path, name, content)
        await self.refresh_listing()
        return self.add_document(Document(name=name, path=path, handle=handle, content=content))

    def new_virtual_document(self, name: str, content: str = "") -> Document:
        return self.add_document(Document(name=name, content=content, dirty=True))

    async def close_document(self, document_id: str, confirm: Optional[CloseConfirm] = None) -> bool:
        """Close a document.

        For a bound document with unsaved edits the confirm hook decides: True
        discards the edits and closes, False keeps the document open. Virtual
        documents are discarded without asking since no storage ever existed.

        Returns:
            True if the document was closed
        """
        doc = self.get_document(document_id)
        if doc.dirty and not doc.is_virtual and confirm is not None:
            decision = confirm(doc)
            if asyncio.iscoroutine(decision):
                decision = await decision
            if not decision:
                return False
        await self._discard_document(doc)
        return True

    async def _discard_document(self, doc: Document) -> None:
        queue = self._queues.pop(doc.id, None)
        if queue is not None:
            queue.cancel(StaleReferenceError(f"'{doc.name}' was closed before its pending work ran", path=doc.path))
        index = self.documents.index(doc)
        self.documents.remove(doc)
        self._emit(DocumentClosedEvent(document_id=doc.id, path=doc.path))
        if self.active_document_id == doc.id:
            if self.documents:
                self.set_active(self.documents[min(index, len(self.documents) - 1)].id)
            else:
                self.set_active(None)

    # ------------------------------------------------------------------
    # Edit events from the rendering layer
    # ------------------------------------------------------------------

    def update_content(self, document_id: str, text: str) -> None:
        """Record an edit and schedule debounced auto-save and auto-rename."""
        doc = self.get_document(document_id)
        if doc.is_binary:
            return
        doc.content = text
        doc.dirty = True
        doc.touch()

        if doc.is_virtual:
            return

        queue = self._queue_for(doc)
        queue.request_save()
        if self.config.auto_rename_enabled and not doc.external:
            new_name = filename_from_content(text)
            if new_name and new_name != doc.name:
                queue.request_rename(new_name)

    def update_cursor(self, document_id: str, position: CursorPosition) -> None:
        self.get_document(document_id).cursor = position

    # ------------------------------------------------------------------
    # Per-document serial execution
    # ------------------------------------------------------------------

    def _queue_for(self, doc: Document) -> DocumentQueue:
        queue = self._queues.get(doc.id)
        if queue is None:
            queue = DocumentQueue(
                doc.id,
                runner=lambda intent, doc_id=doc.id: self._run_intent(doc_id, intent),
                on_error=lambda intent, error, doc_id=doc.id: self._on_background_error(doc_id, intent, error),
                save_delay=self.config.auto_save_delay,
                rename_delay=self.config.auto_rename_delay,
            )
            self._queues[doc.id] = queue
        return queue

    async def _run_intent(self, document_id: str, intent: Intent) -> None:
        doc = self.find_document(document_id)
        if doc is None:
            return
        async with self._mutation_lock:
            if intent.kind == IntentKind.SAVE:
                await self._save_now(doc, automatic=intent.automatic)
            else:
                await self._rename_now(doc, intent.new_name)

    def _on_background_error(self, document_id: str, intent: Intent, error: Exception) -> None:
        doc = self.find_document(document_id)
        name = doc.name if doc is not None else document_id
        logger.warning("Auto-%s failed for %s: %s", intent.kind.value, name, error)
        self.notify(f"Auto-{intent.kind.value} failed for {name}: {error}", level="warning", document_id=document_id)

    async def flush(self) -> None:
        """Run every debounced intent now and wait for all queues to drain."""
        for queue in list(self._queues.values()):
            await queue.flush()

    async def aclose(self) -> None:
        await self.flush()
        for queue in self._queues.values():
            await queue.close(flush=False)
        self._queues.clear()

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self, document_id: str) -> Document:
        """Explicitly save a document, serialized with its pending auto work.

        Raises:
            NoRootError: If a virtual document is saved with no root open
            StaleReferenceError: If the file was deleted behind the document's back
            NameCollisionError: If a virtual document's name is already taken
        """
        doc = self.get_document(document_id)
        try:
            if doc.is_virtual:
                async with self._mutation_lock:
                    await self._save_now(doc, automatic=False)
            else:
                await self._queue_for(doc).submit_now(Intent(IntentKind.SAVE, automatic=False))
        except Exception as e:
            self.notify(f"Save failed for {doc.name}: {e}", level="error", document_id=doc.id)
            raise
        return doc

    async def _save_now(self, doc: Document, automatic: bool) -> None:
        if doc.is_binary:
            return
        content = doc.content

        if doc.is_virtual:
            if automatic:
                return
            root = self._require_root()
            path, handle = await self.entries.create_file_at(root, "", doc.name, content)
            doc.path, doc.handle = path, handle
            logger.info("Saved virtual document as %s", path)
            await self.refresh_listing()
        elif doc.external:
            await self._write_external(doc, content)
        else:
            await self._write_bound(doc, content)

        if doc.content == content:
            doc.dirty = False
        self._emit(DocumentSavedEvent(document_id=doc.id, path=doc.path, automatic=automatic))

    async def fresh_handle(self, doc: Document) -> FileHandle:
        """Return a live handle for a bound document, re-resolving from its path.

        Raises:
            StaleReferenceError: If the path no longer resolves
        """
        root = self._require_root()
        if doc.handle is not None and await path_of(self.adapter, root, doc.handle) == doc.path:
            return doc.handle
        try:
            doc.handle = await resolve(self.adapter, root, doc.path, EntryKind.FILE)
        except NotFoundError:
            doc.handle = None
            raise StaleReferenceError(f"'{doc.path}' no longer exists", path=doc.path) from None
        return doc.handle

    async def _write_bound(self, doc: Document, content: str) -> None:
        handle = await self.fresh_handle(doc)
        try:
            await self.adapter.write_text(handle, content)
            return
        except NotFoundError:
            logger.debug("Handle for %s went stale, re-resolving", doc.path)
            doc.handle = None
        handle = await self.fresh_handle(doc)
        await self.adapter.write_text(handle, content)

    async def _write_external(self, doc: Document, content: str) -> None:
        try:
            await self.adapter.write_text(doc.handle, content)
        except NotFoundError:
            raise StaleReferenceError(f"'{doc.name}' no longer exists") from None

    # ------------------------------------------------------------------
    # Files outside the root
    # ------------------------------------------------------------------

    async def open_external_file(self, handle: FileHandle, activate: bool = True) -> Document:
        """Open a single file picked outside the workspace tree.

        A file that lies inside the open root is opened by its path instead, so
        it is never shown twice. External documents save in place, but they are
        never auto-renamed and never restored with the session.
        """
        if self.root is not None:
            path = await path_of(self.adapter, self.root, handle)
            if path is not None:
                return await self.open_from_tree(path, activate=activate)

        for doc in self.documents:
            if doc.external and doc.handle == handle:
                if activate:
                    self.set_active(doc.id)
                return doc

        name = handle.name
        if is_image_file(name):
            doc = Document(name=name, handle=handle, is_binary=True, external=True)
        else:
            content = await self.adapter.read_text(handle)
            doc = Document(name=name, handle=handle, content=content, external=True)
        logger.info("Opened external file %s", name)
        return self.add_document(doc, activate=activate)

    async def export_document(self, document_id: str, target: FileHandle) -> Document:
        """Write a document to a file the user picked and rebind it there.

        The document takes the target's name and is clean afterwards. A target
        inside the open root binds it to that path; anywhere else it becomes
        external. Debounced work queued against the old binding runs first.

        Raises:
            NameCollisionError: If another open document already shows the target
        """
        doc = self.get_document(document_id)
        queue = self._queues.get(doc.id)
        if queue is not None:
            await queue.flush()

        async with self._mutation_lock:
            path = await path_of(self.adapter, self.root, target) if self.root is not None else None
            if path is not None:
                other = self.find_by_path(path)
                if other is not None and other is not doc:
                    raise NameCollisionError(f"'{path}' is already open", path=path)

            content = doc.content
            if doc.is_binary:
                source = doc.handle if doc.external else await self.fresh_handle(doc)
                await self.adapter.write_bytes(target, await self.adapter.read_bytes(source))
            else:
                await self.adapter.write_text(target, content)

            old_path, old_name = doc.path, doc.name
            doc.path, doc.handle, doc.name = path, target, target.name
            doc.external = path is None
            if doc.content == content:
                doc.dirty = False
            logger.info("Exported %s to %s", old_path or old_name, path or target.name)
            self._emit(DocumentRenamedEvent(document_id=doc.id, old_path=old_path, new_path=path, name=doc.name))
            self._emit(DocumentSavedEvent(document_id=doc.id, path=path, automatic=False))

        if self.root is not None:
            await self.refresh_listing()
        return doc

    # ------------------------------------------------------------------
    # Rename / move / delete
    # ------------------------------------------------------------------

    async def rename_document(self, document_id: str, new_name: str) -> Document:
        """Rename the document's file, serialized with its pending saves.

        Raises:
            NameCollisionError: If new_name is taken; the document keeps its identity
            FolioError: If the document is external
        """
        doc = self.get_document(document_id)
        if doc.is_virtual:
            doc.name = new_name
            self._emit(DocumentRenamedEvent(document_id=doc.id, name=new_name))
            return doc
        if doc.external:
            raise FolioError(f"'{doc.name}' is outside the workspace and cannot be renamed")
        await self._queue_for(doc).submit_now(Intent(IntentKind.RENAME, new_name=new_name, automatic=False))
        return doc

    async def _rename_now(self, doc: Document, new_name: Optional[str]) -> None:
        if not new_name or new_name == doc.name or doc.path is None:
            return
        root = self._require_root()
        old_path = doc.path
        new_path, _, handle = await self.entries.rename_path(root, old_path, new_name)
        self._rebind(old_path, new_path, handle)
        await self.refresh_listing()

    async def rename_entry(self, path: str, new_name: str) -> str:
        """Rename any entry; documents at or under it follow the rename.

        Returns:
            New path of the entry
        """
        path = normalize_path(path)
        doc = self.find_by_path(path)
        if doc is not None:
            await self.rename_document(doc.id, new_name)
            return doc.path

        root = self._require_root()
        async with self._mutation_lock:
            new_path, _, handle = await self.entries.rename_path(root, path, new_name)
            self._rebind(path, new_path, handle)
        await self.refresh_listing()
        return new_path

    async def move_entry(self, path: str, dst_dir_path: str) -> str:
        """Move an entry into another directory; open documents follow it.

        Returns:
            New path of the entry
        """
        root = self._require_root()
        path = normalize_path(path)
        async with self._mutation_lock:
            new_path, _ = await self.entries.move_path(root, path, dst_dir_path)
            if new_path != path:
                self._rebind(path, new_path)
        await self.refresh_listing()
        return new_path

    def _rebind(self, old_path: str, new_path: str, handle=None) -> None:
        for doc in self.documents:
            if doc.path is None or not is_same_or_descendant(doc.path, old_path):
                continue
            previous = doc.path
            doc.path = rebase_path(doc.path, old_path, new_path)
            doc.name = base_name(doc.path)
            doc.handle = handle if doc.path == new_path and isinstance(handle, FileHandle) else None
            logger.debug("Rebound %s -> %s", previous, doc.path)
            self._emit(DocumentRenamedEvent(document_id=doc.id, old_path=previous, new_path=doc.path, name=doc.name))

    async def create_directory(self, name: str, dir_path: str = "") -> str:
        root = self._require_root()
        async with self._mutation_lock:
            path = await self.entries.create_dir_at(root, dir_path, name)
        await self.refresh_listing()
        return path

    async def delete_entry(self, path: str, permanent: bool = False) -> Optional[str]:
        """Soft-delete (or permanently delete) an entry.

        Documents at or under the deleted path are closed, since their path of
        record is no longer valid.

        Returns:
            Path inside the trash, or None for a permanent delete
        """
        root = self._require_root()
        path = normalize_path(path)
        async with self._mutation_lock:
            if permanent:
                await self.entries.hard_delete(root, path)
                trashed = None
            else:
                trashed = await self.entries.soft_delete(root, path)
        for doc in [d for d in self.documents if d.path and is_same_or_descendant(d.path, path)]:
            await self._discard_document(doc)
        await self.refresh_listing()
        return trashed

    async def restore_entry(self, name: str) -> str:
        root = self._require_root()
        async with self._mutation_lock:
            path, _ = await self.entries.restore(root, name)
        await self.refresh_listing()
        self.notify(f"Restored {name}")
        return path

    async def empty_trash(self) -> int:
        root = self._require_root()
        async with self._mutation_lock:
            count = await self.entries.empty_trash(root)
        await self.refresh_listing()
        return count

    # ------------------------------------------------------------------
    # Links and pasted media
    # ------------------------------------------------------------------

    async def follow_link(self, target: str) -> Document:
        """Open the document a wiki link points at.

        Looks at the active document, then open documents, then the root
        listing; an unknown target becomes a new virtual document titled after
        the link. The '#anchor' part is kept in pending_anchor for the renderer.
        """
        name, anchor = split_link_target(target)
        self.pending_anchor = anchor
        candidates = link_candidates(name)

        active = self.active_document
        if active is not None and active.name in candidates:
            return active

        for candidate in candidates:
            for doc in self.documents:
                if doc.name == candidate:
                    self.set_active(doc.id)
                    return doc

        if self.root is not None:
            listing = await self.entries.list_root(self.root)
            for candidate in candidates:
                for entry in listing:
                    if entry.name == candidate and not entry.is_dir:
                        return await self.open_from_tree(candidate)

        return self.new_virtual_document(candidates[-1], content=f"# {name}\n\n")

    async def save_pasted_image(self, data: bytes, dir_path: str = "") -> str:
        """Store pasted image bytes next to the documents; returns the file path.

        Raises:
            NoRootError: If no root is open
        """
        root = self._require_root()
        async with self._mutation_lock:
            path, _ = await self.entries.create_file_at(root, dir_path, pasted_image_name(), data)
        if not parent_path(path):
            await self.refresh_listing()
        return path
