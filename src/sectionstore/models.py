"""Core section store data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Address:
    """Canonical document path plus an optional section slug."""

    document_path: str
    section_slug: Optional[str] = None
    namespace: str = "docs"

    @property
    def full_path(self) -> str:
        if self.section_slug:
            return f"{self.document_path}#{self.section_slug}"
        return self.document_path


@dataclass(frozen=True, slots=True)
class Heading:
    """A heading and the line range of the section it owns.

    ``start_line`` is the heading line itself, ``body_start`` the first line after
    the heading marker and ``end_line`` is exclusive: the next heading of equal or
    shallower depth, or the end of the document.
    """

    index: int
    slug: str
    title: str
    depth: int
    path: str
    start_line: int
    body_start: int
    end_line: int
    parent_index: Optional[int] = None


@dataclass(slots=True)
class TocNode:
    title: str
    slug: str
    depth: int
    children: list["TocNode"] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FileVersion:
    """Last-modified token of a file; both parts must match for a write."""

    mtime_ns: int
    sha256: str


@dataclass(frozen=True, slots=True)
class FileSnapshot:
    path: str
    content: str
    version: FileVersion


@dataclass(frozen=True, slots=True)
class DocumentRecord:
    """Parsed view of a document owned by the document cache."""

    path: str
    title: str
    headings: Tuple[Heading, ...]
    loaded_mtime: int
    content: str
    namespace: str = "docs"

    def slugs(self) -> list[str]:
        return [heading.slug for heading in self.headings]


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def actionable(self) -> bool:
        return self is not TaskStatus.COMPLETED


@dataclass(slots=True)
class TaskRecord:
    slug: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    note: Optional[str] = None
    completed_date: Optional[str] = None
    depth: int = 3
    fields: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        payload = {"slug": self.slug, "title": self.title, "status": self.status.value}
        if self.note is not None:
            payload["note"] = self.note
        if self.completed_date is not None:
            payload["completed_date"] = self.completed_date
        return payload


@dataclass(frozen=True, slots=True)
class ArchiveRecord:
    original_path: str
    archive_path: str
    archived_at: datetime
    was_folder: bool = False
    audit_path: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {
            "original_path": self.original_path,
            "archive_path": self.archive_path,
            "archived_at": self.archived_at.isoformat(),
            "type": "folder" if self.was_folder else "file",
        }
        if self.audit_path is not None:
            payload["audit_path"] = self.audit_path
        return payload
