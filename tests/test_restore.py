"""Tests for replaying saved sessions."""

import pytest
import pytest_asyncio

from folio.events import SessionRestoredEvent
from folio.models import CursorPosition, OpenFileEntry, SavedSession
from folio.paths import resolve
from folio.restore import restore_session


def saved(*paths, active=None, cursor=None):
    return SavedSession(
        open_files=[OpenFileEntry(name=p.rsplit("/", 1)[-1], path=p, cursor=cursor) for p in paths],
        active_file_path=active,
    )


@pytest_asyncio.fixture
async def ws(memory_workspace, memory_adapter, populate):
    root = memory_adapter.create_root("notes")
    await populate(
        memory_adapter,
        root,
        {"a.md": "a", "docs": {"b.md": "b"}, "zeta.md": "z", "notes.txt": "t", "readme.MD": "# Readme"},
    )
    await memory_workspace.open_root(root)
    return memory_workspace


class TestRestoreSession:
    @pytest.mark.asyncio
    async def test_restores_documents_and_cursor(self, ws):
        result = await restore_session(
            ws, saved("a.md", "docs/b.md", active="docs/b.md", cursor=CursorPosition(line_number=7, column=3))
        )
        assert [d.path for d in result.restored] == ["a.md", "docs/b.md"]
        assert all(not d.dirty and d.handle is not None for d in ws.documents)
        assert ws.documents[0].cursor.line_number == 7
        assert ws.active_document.path == "docs/b.md"
        assert result.fallback_path is None

    @pytest.mark.asyncio
    async def test_missing_entries_are_skipped(self, ws, events):
        result = await restore_session(ws, saved("gone.md", "a.md", "docs/gone/x.md", active="gone.md"))
        assert [d.path for d in result.restored] == ["a.md"]
        assert result.skipped == ["gone.md", "docs/gone/x.md"]
        assert ws.active_document.path == "a.md"
        event = events.of(SessionRestoredEvent)[-1]
        assert (event.restored, event.skipped) == (1, 2)

    @pytest.mark.asyncio
    async def test_malformed_saved_path_is_skipped(self, ws):
        result = await restore_session(ws, saved("../escape.md", "a.md"))
        assert result.skipped == ["../escape.md"]

    @pytest.mark.asyncio
    async def test_fallback_to_readme_any_case(self, ws):
        result = await restore_session(ws, saved("gone.md"))
        assert result.fallback_path == "readme.MD"
        assert [d.path for d in ws.documents] == ["readme.MD"]
        assert not ws.documents[0].dirty
        assert ws.active_document.path == "readme.MD"

    @pytest.mark.asyncio
    async def test_unreadable_readme_falls_back_to_next_markdown(self, ws, memory_adapter):
        readme = await resolve(memory_adapter, ws.root, "readme.MD")
        await memory_adapter.write_bytes(readme, b"\xff\xfe latin-1 caf\xe9")

        result = await restore_session(ws, None)

        assert result.fallback_path == "a.md"
        assert [d.path for d in ws.documents] == ["a.md"]
        assert ws.active_document.path == "a.md"

    @pytest.mark.asyncio
    async def test_fallback_first_markdown_by_listing_order(self, ws):
        await ws.delete_entry("readme.MD", permanent=True)
        result = await restore_session(ws, None)
        assert result.fallback_path == "a.md"

    @pytest.mark.asyncio
    async def test_empty_root(self, memory_workspace, memory_adapter):
        await memory_workspace.open_root(memory_adapter.create_root("empty"))
        result = await restore_session(memory_workspace, None)
        assert result.empty
        assert memory_workspace.documents == []
