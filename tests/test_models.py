"""Tests for models module."""

from datetime import timezone

import pytest
from pydantic import ValidationError

from folio.models import (
    CursorPosition,
    Document,
    DocumentState,
    OpenFileEntry,
    RecentRoot,
    SavedSession,
    UIPreferences,
)


def test_cursor_position_aliases():
    """Test that cursors accept both camelCase and field names."""
    assert CursorPosition(lineNumber=3, column=2).line_number == 3
    assert CursorPosition(line_number=3).column == 1
    assert CursorPosition(line_number=3).model_dump(by_alias=True) == {"lineNumber": 3, "column": 1}


def test_cursor_position_is_one_based():
    with pytest.raises(ValidationError):
        CursorPosition(line_number=0)


def test_document_state():
    """Test virtual, bound and external documents."""
    draft = Document(name="Untitled-1.md")
    assert draft.state == DocumentState.VIRTUAL
    assert draft.is_virtual

    bound = Document(name="a.md", path="docs/a.md")
    assert bound.state == DocumentState.BOUND
    assert not bound.is_virtual
    assert bound.id != draft.id

    outside = Document(name="x.md", external=True)
    assert outside.state == DocumentState.EXTERNAL
    assert not outside.is_virtual


def test_document_touch():
    doc = Document(name="a.md")
    doc.last_modified = 0
    doc.touch()
    assert doc.last_modified > 0


def test_saved_session_parses_camel_case():
    session = SavedSession.model_validate(
        {
            "openFiles": [{"name": "a.md", "path": "a.md", "cursor": {"lineNumber": 5, "column": 1}}],
            "activeFilePath": "a.md",
            "somethingElse": True,
        }
    )
    assert session.open_files == [OpenFileEntry(name="a.md", path="a.md", cursor=CursorPosition(line_number=5))]
    assert session.active_file_path == "a.md"
    assert "somethingElse" not in session.to_json_dict()


def test_ui_preferences_validation():
    assert UIPreferences.model_validate({"viewMode": "preview"}).view_mode == "preview"
    with pytest.raises(ValidationError):
        UIPreferences(theme="sepia")


class TestRecentRoot:
    def test_iso_timestamp(self):
        entry = RecentRoot.model_validate({"key": "notes", "location": "/n", "lastAccessed": "2024-01-02T03:04:05Z"})
        assert entry.last_accessed.tzinfo == timezone.utc
        assert entry.last_accessed.day == 2

    def test_epoch_milliseconds(self):
        entry = RecentRoot(key="notes", location="/n", last_accessed=0)
        assert entry.last_accessed.year == 1970

    def test_default_timestamp_is_now(self):
        assert RecentRoot(key="notes", location="/n").last_accessed.tzinfo is not None

    def test_naive_timestamp_is_utc(self):
        entry = RecentRoot.model_validate({"key": "notes", "location": "/n", "lastAccessed": "2024-01-02T03:04:05"})
        assert entry.last_accessed.tzinfo == timezone.utc
        assert entry.last_accessed.hour == 3
