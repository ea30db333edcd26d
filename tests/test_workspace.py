"""Tests for workspace state and open-document reconciliation."""

import asyncio

import pytest
import pytest_asyncio

from folio.config import Config
from folio.entries import EntryOperations
from folio.events import (
    DocumentClosedEvent,
    DocumentRenamedEvent,
    DocumentSavedEvent,
    ListingRefreshedEvent,
    NotificationEvent,
    RootOpenedEvent,
)
from folio.exceptions import (
    NameCollisionError,
    NoRootError,
    NotFoundError,
    StaleReferenceError,
    UnreadableFileError,
)
from folio.host import LocalAdapter, MemoryAdapter
from folio.models import CursorPosition
from folio.paths import resolve
from folio.workspace import Workspace


async def read(adapter, root, path):
    return await adapter.read_text(await resolve(adapter, root, path))


class GatedAdapter(MemoryAdapter):
    """Memory adapter whose removals wait until the gate is opened."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def remove(self, directory, name, recursive=False):
        await self.gate.wait()
        await super().remove(directory, name, recursive)


@pytest_asyncio.fixture
async def root(memory_adapter, populate):
    handle = memory_adapter.create_root("notes")
    await populate(
        memory_adapter,
        handle,
        {
            "a.md": "# A\n",
            "b.md": "bee",
            "Other.md": "# Other\n",
            "logo.png": b"\x89PNG",
            "docs": {"guide.md": "guide", "deep": {"x.md": "ex"}},
        },
    )
    return handle


@pytest_asyncio.fixture
async def ws(memory_workspace, root):
    await memory_workspace.open_root(root)
    return memory_workspace


class TestRoot:
    @pytest.mark.asyncio
    async def test_open_root_refreshes_listing(self, memory_workspace, root, events):
        await memory_workspace.open_root(root)
        assert memory_workspace.root_name == "notes"
        assert [e.name for e in memory_workspace.listing] == ["docs", "a.md", "b.md", "logo.png", "Other.md"]
        assert events.of(RootOpenedEvent)[0].name == "notes"
        assert events.of(ListingRefreshedEvent)[-1].entries[0] == "docs"

    @pytest.mark.asyncio
    async def test_close_root_clears_documents(self, ws):
        await ws.open_from_tree("a.md")
        await ws.close_root()
        assert ws.root is None
        assert ws.documents == []
        assert ws.active_document_id is None

    @pytest.mark.asyncio
    async def test_close_root_flushes_pending_edits(self, ws, memory_adapter, root):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "changed")
        await ws.close_root()
        assert await read(memory_adapter, root, "b.md") == "changed"

    @pytest.mark.asyncio
    async def test_open_root_keeps_dirty_virtual_documents(self, memory_workspace, root):
        draft = await memory_workspace.new_document("Draft.md", content="draft")
        clean = memory_workspace.new_virtual_document("Clean.md")
        clean.dirty = False
        await memory_workspace.open_root(root)
        assert memory_workspace.documents == [draft]

    @pytest.mark.asyncio
    async def test_operations_require_root(self, memory_workspace):
        with pytest.raises(NoRootError):
            await memory_workspace.open_from_tree("a.md")
        with pytest.raises(NoRootError):
            await memory_workspace.delete_entry("a.md")


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_reads_content(self, ws):
        doc = await ws.open_from_tree("docs/guide.md")
        assert (doc.name, doc.path, doc.content, doc.dirty) == ("guide.md", "docs/guide.md", "guide", False)
        assert ws.active_document_id == doc.id

    @pytest.mark.asyncio
    async def test_open_dedupes_by_path(self, ws):
        first = await ws.open_from_tree("a.md")
        await ws.open_from_tree("b.md")
        again = await ws.open_from_tree("./a.md")
        assert again is first
        assert len(ws.documents) == 2
        assert ws.active_document_id == first.id

    @pytest.mark.asyncio
    async def test_images_open_as_binary(self, ws):
        doc = await ws.open_from_tree("logo.png")
        assert doc.is_binary
        assert doc.content == ""
        ws.update_content(doc.id, "text")
        assert not doc.dirty

    @pytest.mark.asyncio
    async def test_open_missing(self, ws):
        with pytest.raises(NotFoundError):
            await ws.open_from_tree("nope.md")

    @pytest.mark.asyncio
    async def test_open_undecodable_text(self, ws, memory_adapter, root):
        handle = await resolve(memory_adapter, root, "b.md")
        await memory_adapter.write_bytes(handle, b"\xff\xfe")
        with pytest.raises(UnreadableFileError):
            await ws.open_from_tree("b.md")
        assert ws.documents == []


class TestNewDocument:
    @pytest.mark.asyncio
    async def test_new_document_in_root_is_bound(self, ws, memory_adapter, root):
        doc = await ws.new_document(content="hello")
        assert doc.name == "Untitled-1.md"
        assert doc.path == "Untitled-1.md"
        assert not doc.dirty
        assert await read(memory_adapter, root, "Untitled-1.md") == "hello"
        assert "Untitled-1.md" in [e.name for e in ws.listing]

        second = await ws.new_document()
        assert second.name == "Untitled-2.md"

    @pytest.mark.asyncio
    async def test_new_document_in_directory(self, ws):
        doc = await ws.new_document("n.md", dir_path="docs")
        assert doc.path == "docs/n.md"

    @pytest.mark.asyncio
    async def test_new_document_collision(self, ws):
        with pytest.raises(NameCollisionError):
            await ws.new_document("a.md")

    @pytest.mark.asyncio
    async def test_new_document_without_root_is_virtual(self, memory_workspace):
        doc = await memory_workspace.new_document()
        assert doc.is_virtual
        assert doc.dirty
        assert doc.name == "Untitled-1.md"


class TestSave:
    @pytest.mark.asyncio
    async def test_auto_save_after_edits(self, ws, memory_adapter, root, events):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "one")
        ws.update_content(doc.id, "two")
        assert doc.dirty
        await ws.flush()
        assert await read(memory_adapter, root, "b.md") == "two"
        assert not doc.dirty
        saved = events.of(DocumentSavedEvent)
        assert len(saved) == 1
        assert saved[0].automatic

    @pytest.mark.asyncio
    async def test_explicit_save(self, ws, memory_adapter, root, events):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "now")
        await ws.save(doc.id)
        assert await read(memory_adapter, root, "b.md") == "now"
        assert not doc.dirty
        assert events.of(DocumentSavedEvent)[-1].automatic is False

    @pytest.mark.asyncio
    async def test_save_virtual_creates_file(self, ws, memory_adapter, root):
        doc = ws.new_virtual_document("Draft.md", "draft")
        await ws.save(doc.id)
        assert doc.path == "Draft.md"
        assert doc.handle is not None
        assert not doc.dirty
        assert await read(memory_adapter, root, "Draft.md") == "draft"

    @pytest.mark.asyncio
    async def test_save_virtual_without_root(self, memory_workspace, events):
        doc = memory_workspace.new_virtual_document("Draft.md", "draft")
        with pytest.raises(NoRootError):
            await memory_workspace.save(doc.id)
        assert doc.dirty
        assert events.of(NotificationEvent)[-1].level == "error"

    @pytest.mark.asyncio
    async def test_stale_handle_is_re_resolved(self, ws, memory_adapter, root):
        doc = await ws.open_from_tree("b.md")
        original = doc.handle
        ops = EntryOperations(memory_adapter)
        await ops.rename_path(root, "b.md", "tmp.md")
        await ops.rename_path(root, "tmp.md", "b.md")

        ws.update_content(doc.id, "after")
        await ws.save(doc.id)
        assert await read(memory_adapter, root, "b.md") == "after"
        assert doc.handle != original

    @pytest.mark.asyncio
    async def test_deleted_file_is_not_recreated(self, ws, memory_adapter, root, events):
        doc = await ws.open_from_tree("b.md")
        await memory_adapter.remove(root, "b.md")
        ws.update_content(doc.id, "lost?")
        with pytest.raises(StaleReferenceError):
            await ws.save(doc.id)
        assert doc.dirty
        assert doc.handle is None
        with pytest.raises(NotFoundError):
            await resolve(memory_adapter, root, "b.md")
        assert events.of(NotificationEvent)[-1].level == "error"

    @pytest.mark.asyncio
    async def test_auto_save_failure_is_a_warning(self, ws, memory_adapter, root, events):
        doc = await ws.open_from_tree("b.md")
        await memory_adapter.remove(root, "b.md")
        ws.update_content(doc.id, "lost?")
        await ws.flush()
        assert doc.dirty
        warnings = [e for e in events.of(NotificationEvent) if e.level == "warning"]
        assert warnings and warnings[0].document_id == doc.id

    @pytest.mark.asyncio
    async def test_local_deleted_file_is_stale(self, disk_root, fast_config):
        (disk_root / "a.md").write_text("x")
        adapter = LocalAdapter()
        workspace = Workspace(adapter, config=fast_config)
        await workspace.open_root(adapter.open_directory(disk_root))
        doc = await workspace.open_from_tree("a.md")
        (disk_root / "a.md").unlink()
        workspace.update_content(doc.id, "y")
        with pytest.raises(StaleReferenceError):
            await workspace.save(doc.id)
        assert not (disk_root / "a.md").exists()
        await workspace.aclose()


class TestAutoRename:
    @pytest.mark.asyncio
    async def test_heading_renames_file_after_save(self, ws, memory_adapter, root):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "# Meeting notes\n\nbody")
        await ws.flush()
        assert doc.name == "Meeting notes.md"
        assert doc.path == "Meeting notes.md"
        assert not doc.dirty
        assert await read(memory_adapter, root, "Meeting notes.md") == "# Meeting notes\n\nbody"
        with pytest.raises(NotFoundError):
            await resolve(memory_adapter, root, "b.md")
        assert "Meeting notes.md" in [e.name for e in ws.listing]

    @pytest.mark.asyncio
    async def test_save_after_rename_targets_new_path(self, ws, memory_adapter, root):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "# Title\n")
        await ws.flush()
        ws.update_content(doc.id, "# Title\n\nmore")
        await ws.flush()
        assert await read(memory_adapter, root, "Title.md") == "# Title\n\nmore"
        assert [e.name for e in ws.listing].count("Title.md") == 1

    @pytest.mark.asyncio
    async def test_rename_collision_keeps_identity(self, ws, memory_adapter, root, events):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "# Other\n")
        await ws.flush()
        assert doc.path == "b.md"
        assert await read(memory_adapter, root, "b.md") == "# Other\n"
        assert await read(memory_adapter, root, "Other.md") == "# Other\n"
        assert any(e.level == "warning" for e in events.of(NotificationEvent))

    @pytest.mark.asyncio
    async def test_auto_rename_can_be_disabled(self, memory_adapter, root):
        workspace = Workspace(memory_adapter, config=Config(auto_rename_enabled=False, auto_save_delay_ms=10))
        await workspace.open_root(root)
        doc = await workspace.open_from_tree("b.md")
        workspace.update_content(doc.id, "# Whatever\n")
        await workspace.flush()
        assert doc.path == "b.md"
        await workspace.aclose()


class TestRenameAndMove:
    @pytest.mark.asyncio
    async def test_rename_document(self, ws, memory_adapter, root, events):
        doc = await ws.open_from_tree("b.md")
        await ws.rename_document(doc.id, "c.md")
        assert (doc.name, doc.path) == ("c.md", "c.md")
        assert await read(memory_adapter, root, "c.md") == "bee"
        assert events.of(DocumentRenamedEvent)[-1].old_path == "b.md"

    @pytest.mark.asyncio
    async def test_rename_collision(self, ws, memory_adapter, root):
        doc = await ws.open_from_tree("b.md")
        with pytest.raises(NameCollisionError):
            await ws.rename_document(doc.id, "a.md")
        assert doc.path == "b.md"
        assert await read(memory_adapter, root, "a.md") == "# A\n"

    @pytest.mark.asyncio
    async def test_rename_directory_rebinds_documents(self, ws, memory_adapter, root):
        guide = await ws.open_from_tree("docs/guide.md")
        deep = await ws.open_from_tree("docs/deep/x.md")
        new_path = await ws.rename_entry("docs", "manual")
        assert new_path == "manual"
        assert guide.path == "manual/guide.md"
        assert deep.path == "manual/deep/x.md"
        assert guide.handle is None

        ws.update_content(guide.id, "updated")
        await ws.save(guide.id)
        assert await read(memory_adapter, root, "manual/guide.md") == "updated"

    @pytest.mark.asyncio
    async def test_rename_entry_of_open_file(self, ws):
        doc = await ws.open_from_tree("b.md")
        assert await ws.rename_entry("b.md", "z.md") == "z.md"
        assert doc.path == "z.md"

    @pytest.mark.asyncio
    async def test_move_rebinds_documents(self, ws, memory_adapter, root):
        doc = await ws.open_from_tree("b.md")
        assert await ws.move_entry("b.md", "docs") == "docs/b.md"
        assert doc.path == "docs/b.md"
        assert "b.md" not in [e.name for e in ws.listing]
        ws.update_content(doc.id, "moved")
        await ws.save(doc.id)
        assert await read(memory_adapter, root, "docs/b.md") == "moved"

    @pytest.mark.asyncio
    async def test_rename_virtual_document(self, memory_workspace):
        doc = memory_workspace.new_virtual_document("a.md")
        await memory_workspace.rename_document(doc.id, "b.md")
        assert doc.name == "b.md"
        assert doc.is_virtual


class TestDeleteAndRestore:
    @pytest.mark.asyncio
    async def test_delete_closes_documents_under_path(self, ws, events):
        guide = await ws.open_from_tree("docs/guide.md")
        other = await ws.open_from_tree("b.md")
        trashed = await ws.delete_entry("docs")
        assert trashed == ".trash/docs"
        assert ws.documents == [other]
        assert guide.id in [e.document_id for e in events.of(DocumentClosedEvent)]
        assert "docs" not in [e.name for e in ws.listing]

    @pytest.mark.asyncio
    async def test_delete_fails_queued_explicit_save(self, populate, fast_config):
        adapter = GatedAdapter()
        root = adapter.create_root("notes")
        await populate(adapter, root, {"b.md": "bee"})
        workspace = Workspace(adapter, config=fast_config)
        await workspace.open_root(root)
        doc = await workspace.open_from_tree("b.md")

        delete_task = asyncio.create_task(workspace.delete_entry("b.md"))
        await asyncio.sleep(0.01)
        save_task = asyncio.create_task(workspace.save(doc.id))
        await asyncio.sleep(0.01)
        assert not save_task.done()

        adapter.gate.set()
        await delete_task
        with pytest.raises(StaleReferenceError):
            await save_task
        assert workspace.documents == []
        await workspace.aclose()

    @pytest.mark.asyncio
    async def test_closing_document_fails_queued_explicit_save(self, ws):
        doc = await ws.open_from_tree("b.md")
        async with ws._mutation_lock:
            save_task = asyncio.create_task(ws.save(doc.id))
            await asyncio.sleep(0.01)
            await ws.close_document(doc.id)
        with pytest.raises(StaleReferenceError):
            await save_task

    @pytest.mark.asyncio
    async def test_restore(self, ws):
        await ws.delete_entry("b.md")
        assert await ws.restore_entry("b.md") == "b.md"
        assert "b.md" in [e.name for e in ws.listing]
        doc = await ws.open_from_tree("b.md")
        assert doc.content == "bee"

    @pytest.mark.asyncio
    async def test_recycle_bin_view(self, ws):
        await ws.delete_entry("b.md")
        listing = await ws.show_recycle_bin(True)
        assert [e.name for e in listing] == ["b.md"]
        assert await ws.empty_trash() == 1
        assert ws.listing == []
        await ws.show_recycle_bin(False)
        assert "docs" in [e.name for e in ws.listing]

    @pytest.mark.asyncio
    async def test_permanent_delete(self, ws, memory_adapter, root):
        assert await ws.delete_entry("b.md", permanent=True) is None
        assert await ws.entries.list_trash(root) == []

    @pytest.mark.asyncio
    async def test_create_directory(self, ws):
        assert await ws.create_directory("new", "docs") == "docs/new"
        assert [e.name for e in await ws.list_directory("docs")][:2] == ["deep", "new"]


class TestCloseDocument:
    @pytest.mark.asyncio
    async def test_confirm_can_veto(self, ws):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "unsaved")
        assert await ws.close_document(doc.id, confirm=lambda d: False) is False
        assert doc in ws.documents

    @pytest.mark.asyncio
    async def test_async_confirm(self, ws):
        doc = await ws.open_from_tree("b.md")
        ws.update_content(doc.id, "unsaved")

        async def confirm(d):
            return True

        assert await ws.close_document(doc.id, confirm=confirm) is True
        assert ws.documents == []
        assert ws.active_document_id is None

    @pytest.mark.asyncio
    async def test_virtual_closes_without_asking(self, ws):
        doc = ws.new_virtual_document("Draft.md", "text")

        def confirm(d):
            raise AssertionError("should not be asked")

        assert await ws.close_document(doc.id, confirm=confirm)

    @pytest.mark.asyncio
    async def test_closing_active_selects_neighbour(self, ws):
        a = await ws.open_from_tree("a.md")
        b = await ws.open_from_tree("b.md")
        await ws.close_document(b.id)
        assert ws.active_document_id == a.id

    @pytest.mark.asyncio
    async def test_cursor_update(self, ws):
        doc = await ws.open_from_tree("a.md")
        ws.update_cursor(doc.id, CursorPosition(line_number=3, column=2))
        assert doc.cursor.line_number == 3


class TestLinksAndImages:
    @pytest.mark.asyncio
    async def test_follow_link_opens_listed_file(self, ws):
        doc = await ws.follow_link("Other#Section")
        assert doc.path == "Other.md"
        assert ws.pending_anchor == "Section"
        assert ws.active_document_id == doc.id

    @pytest.mark.asyncio
    async def test_follow_link_focuses_open_document(self, ws):
        other = await ws.open_from_tree("Other.md")
        await ws.open_from_tree("a.md")
        assert await ws.follow_link("Other.md") is other
        assert ws.active_document_id == other.id

    @pytest.mark.asyncio
    async def test_follow_link_unknown_creates_virtual(self, ws):
        doc = await ws.follow_link("Ideas")
        assert doc.is_virtual
        assert doc.name == "Ideas.md"
        assert doc.content.startswith("# Ideas")
        assert ws.pending_anchor is None

    @pytest.mark.asyncio
    async def test_save_pasted_image(self, ws, memory_adapter, root):
        path = await ws.save_pasted_image(b"\x89PNGdata")
        assert path.startswith("image-") and path.endswith(".png")
        handle = await resolve(memory_adapter, root, path)
        assert await memory_adapter.read_bytes(handle) == b"\x89PNGdata"

    @pytest.mark.asyncio
    async def test_save_pasted_image_requires_root(self, memory_workspace):
        with pytest.raises(NoRootError):
            await memory_workspace.save_pasted_image(b"x")
