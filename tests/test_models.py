"""Tests for core data models and the error taxonomy."""

from __future__ import annotations

from datetime import datetime

import pytest

from sectionstore.errors import (
    AddressingError,
    ArchiveIOError,
    ConflictError,
    DocumentNotFoundError,
    SectionNotFoundError,
    TaskStateError,
    wrap_error,
)
from sectionstore.models import Address, ArchiveRecord, FileVersion, TaskRecord, TaskStatus


class TestAddress:
    """Test Address dataclass."""

    def test_full_path_with_section(self) -> None:
        address = Address(document_path="/project.md", section_slug="tasks/a")
        assert address.full_path == "/project.md#tasks/a"

    def test_full_path_document_only(self) -> None:
        assert Address(document_path="/project.md").full_path == "/project.md"

    def test_is_frozen(self) -> None:
        address = Address(document_path="/project.md")
        with pytest.raises(AttributeError):
            address.document_path = "/other.md"  # type: ignore[misc]


class TestFileVersion:
    """Test FileVersion equality."""

    def test_both_parts_compared(self) -> None:
        assert FileVersion(1, "abc") == FileVersion(1, "abc")
        assert FileVersion(1, "abc") != FileVersion(1, "def")
        assert FileVersion(1, "abc") != FileVersion(2, "abc")


class TestTaskRecord:
    """Test TaskRecord serialization."""

    def test_to_dict_minimal(self) -> None:
        record = TaskRecord(slug="a", title="A")
        assert record.to_dict() == {"slug": "a", "title": "A", "status": "pending"}

    def test_to_dict_completed(self) -> None:
        record = TaskRecord(
            slug="a", title="A", status=TaskStatus.COMPLETED, note="done", completed_date="2026-10-15"
        )
        payload = record.to_dict()
        assert payload["status"] == "completed"
        assert payload["note"] == "done"
        assert payload["completed_date"] == "2026-10-15"

    def test_actionable_statuses(self) -> None:
        assert TaskStatus.PENDING.actionable
        assert TaskStatus.IN_PROGRESS.actionable
        assert not TaskStatus.COMPLETED.actionable


class TestArchiveRecord:
    """Test ArchiveRecord serialization."""

    def test_to_dict(self) -> None:
        record = ArchiveRecord(
            original_path="/projects",
            archive_path="/archived/docs/projects-2026-10-15T14-30-05",
            archived_at=datetime(2026, 10, 15, 14, 30, 5),
            was_folder=True,
        )
        payload = record.to_dict()
        assert payload["type"] == "folder"
        assert payload["archived_at"] == "2026-10-15T14:30:05"
        assert "audit_path" not in payload


class TestErrors:
    """Test the error taxonomy."""

    def test_default_codes(self) -> None:
        assert AddressingError("bad").code == "INVALID_PATH"
        assert ConflictError("stale").code == "CONFLICT"
        assert TaskStateError("none").code == "TASK_NOT_FOUND"
        assert ArchiveIOError("disk").code == "ARCHIVE_IO_ERROR"
        assert DocumentNotFoundError("/x.md").code == "DOCUMENT_NOT_FOUND"

    def test_to_dict_drops_empty_context(self) -> None:
        error = AddressingError("Bad slug", "INVALID_SLUG", slug="a//b", detail=None)
        assert error.to_dict() == {"code": "INVALID_SLUG", "message": "Bad slug", "context": {"slug": "a//b"}}

    def test_section_not_found_is_addressing_error(self) -> None:
        error = SectionNotFoundError("missing", "/project.md")
        assert isinstance(error, AddressingError)
        assert error.code == "NOT_FOUND"
        assert error.context == {"slug": "missing", "document": "/project.md"}

    def test_str_includes_code(self) -> None:
        assert str(ConflictError("stale")) == "[CONFLICT] stale"

    def test_wrap_error_keeps_taxonomy(self) -> None:
        original = ConflictError("stale")
        assert wrap_error(original, ArchiveIOError, "Archive failed") is original

    def test_wrap_error_wraps_foreign(self) -> None:
        wrapped = wrap_error(OSError("disk full"), ArchiveIOError, "Archive failed", path="/a.md")
        assert isinstance(wrapped, ArchiveIOError)
        assert wrapped.message == "Archive failed: disk full"
        assert wrapped.context == {"detail": "disk full", "path": "/a.md"}
