"""Task state machine layered over document sections.

A task is a heading directly under a ``Tasks`` section; its status lives in a
``- Status:`` marker line of the task's own body (before any sub-heading).
Transitions run ``pending -> in_progress -> completed``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sectionstore.addressing.resolver import normalize_slug
from sectionstore.errors import AddressingError, TaskStateError
from sectionstore.models import DocumentRecord, Heading, TaskRecord, TaskStatus
from sectionstore.sections.edit import EditOperation, insert_section
from sectionstore.sections.tree import find_heading, join_lines, own_body_end, parse_headings, split_lines
from sectionstore.store.manager import DocumentManager
from sectionstore.tasks.markers import completion_lines, parse_fields, parse_status, set_status, status_line
from sectionstore.utils.text import strip_blank_edges

LOGGER = logging.getLogger(__name__)

TASKS_TITLE = "Tasks"
TASKS_SLUG = "tasks"


@dataclass(slots=True)
class TaskListing:
    document: str
    tasks: List[TaskRecord]
    next_task: Optional[TaskRecord] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "document": self.document,
            "tasks": [task.to_dict() for task in self.tasks],
            "next_task": self.next_task.to_dict() if self.next_task else None,
            "summary": self.summary,
        }


def tasks_heading(headings: Sequence[Heading]) -> Optional[Heading]:
    for heading in headings:
        if heading.slug == TASKS_SLUG or heading.title.strip().lower() == TASKS_SLUG:
            return heading
    return None


def task_headings(headings: Sequence[Heading]) -> List[Heading]:
    container = tasks_heading(headings)
    if container is None:
        return []
    return [heading for heading in headings if heading.parent_index == container.index]


def _own_body(lines: Sequence[str], headings: Sequence[Heading], heading: Heading) -> List[str]:
    return strip_blank_edges(list(lines[heading.body_start:own_body_end(headings, heading)]))


def parse_tasks(text: str, headings: Optional[Sequence[Heading]] = None) -> List[TaskRecord]:
    """Read every task of a document in document order."""
    if headings is None:
        headings = parse_headings(text)
    lines = split_lines(text)
    records: List[TaskRecord] = []
    for heading in task_headings(headings):
        fields = parse_fields(_own_body(lines, headings, heading))
        records.append(
            TaskRecord(
                slug=heading.slug,
                title=heading.title,
                status=parse_status(fields.get("status")),
                note=fields.get("note"),
                completed_date=fields.get("completed"),
                depth=heading.depth,
                fields=fields,
            )
        )
    return records


def summarize(tasks: Sequence[TaskRecord]) -> Dict[str, Any]:
    """Status counts overall and grouped by the ``phase`` and ``category`` fields."""
    summary: Dict[str, Any] = {"total": len(tasks)}
    summary.update({status.value: 0 for status in TaskStatus})
    summary.update(Counter(task.status.value for task in tasks))
    for group, key in (("by_phase", "phase"), ("by_category", "category")):
        grouped: Dict[str, Dict[str, int]] = {}
        for task in tasks:
            label = task.fields.get(key)
            if not label:
                continue
            counts = grouped.setdefault(label, {"total": 0, **{status.value: 0 for status in TaskStatus}})
            counts["total"] += 1
            counts[task.status.value] += 1
        summary[group] = grouped
    return summary


def _next_available(tasks: Sequence[TaskRecord], after_slug: Optional[str]) -> Optional[TaskRecord]:
    start = 0
    if after_slug:
        for position, task in enumerate(tasks):
            if task.slug == after_slug:
                start = position + 1
                break
    for task in tasks[start:]:
        if task.status.actionable:
            return task
    return None


def _locate_task(text: str, document: str, slug: str) -> Tuple[List[str], Tuple[Heading, ...], Heading]:
    headings = parse_headings(text)
    heading = find_heading(headings, slug)
    if heading is None or heading not in task_headings(headings):
        raise TaskStateError(f"Task not found: {slug} in {document}", document=document, task=slug)
    return split_lines(text), headings, heading


class TaskEngine:
    def __init__(self, documents: DocumentManager, today: Callable[[], date] = date.today) -> None:
        self.documents = documents
        self.today = today

    async def _record(self, document: str) -> DocumentRecord:
        return await self.documents.require_document(document)

    async def tasks(self, document: str) -> List[TaskRecord]:
        record = await self._record(document)
        return parse_tasks(record.content, record.headings)

    async def list_tasks(self, document: str, status: Optional[TaskStatus | str] = None) -> TaskListing:
        wanted: Optional[TaskStatus] = None
        if status is not None:
            try:
                wanted = TaskStatus(status)
            except ValueError as exc:
                raise AddressingError(
                    f"Unknown task status: {status}",
                    "INVALID_PARAMETER",
                    parameter="status",
                    allowed=[item.value for item in TaskStatus],
                ) from exc
        record = await self._record(document)
        tasks = parse_tasks(record.content, record.headings)
        visible = tasks if wanted is None else [task for task in tasks if task.status is wanted]
        return TaskListing(
            document=record.path,
            tasks=visible,
            next_task=_next_available(tasks, None),
            summary=summarize(tasks),
        )

    async def find_next_available_task(self, document: str, after_slug: Optional[str] = None) -> Optional[TaskRecord]:
        """First pending or in-progress task in document order, optionally after ``after_slug``."""
        tasks = await self.tasks(document)
        return _next_available(tasks, normalize_slug(after_slug) if after_slug else None)

    async def all_tasks_complete(self, document: str) -> bool:
        return all(task.status is TaskStatus.COMPLETED for task in await self.tasks(document))

    async def _transition(
        self,
        document: str,
        slug: str,
        status: TaskStatus,
        extra_lines: Sequence[str] = (),
    ) -> TaskRecord:
        path = self.documents.resolver.resolve_document(document).document_path
        slug = normalize_slug(slug)

        def transform(text: str) -> Tuple[str, TaskRecord]:
            lines, headings, heading = _locate_task(text, path, slug)
            stop = own_body_end(headings, heading)
            body = strip_blank_edges(lines[heading.body_start:stop])
            if not strip_blank_edges(lines[heading.body_start:heading.end_line]):
                raise TaskStateError(
                    f"Task has no content: {slug} in {path}", "TASK_NOT_FOUND", document=path, task=slug
                )
            current = parse_status(parse_fields(body).get("status"))
            if current is TaskStatus.COMPLETED:
                raise TaskStateError(
                    f"Task {slug} is already completed",
                    "INVALID_TRANSITION",
                    document=path,
                    task=slug,
                    status=current.value,
                    target=status.value,
                )
            body = set_status(body, status) + list(extra_lines)
            lines[heading.body_start:stop] = [""] + body + [""]
            new_text = join_lines(lines)
            updated = parse_tasks(new_text)
            return new_text, next(task for task in updated if task.slug == heading.slug)

        return await self.documents.mutate(path, transform)

    async def complete_task(self, document: str, slug: str, note: str) -> TaskRecord:
        """Mark a task completed and stamp the completion date and note."""
        if not note or not note.strip():
            raise AddressingError("A completion note is required", "MISSING_PARAMETER", parameter="note")
        record = await self._transition(
            document, slug, TaskStatus.COMPLETED, completion_lines(self.today(), note)
        )
        LOGGER.info("Completed task %s in %s", record.slug, document)
        return record

    async def start_task(self, document: str, slug: Optional[str] = None) -> TaskRecord:
        """Move a task to in_progress; without ``slug`` the next available task is started."""
        if slug is None:
            upcoming = await self.find_next_available_task(document)
            if upcoming is None:
                raise TaskStateError(
                    f"No available tasks in {document}", "NO_AVAILABLE_TASKS", document=document
                )
            if upcoming.status is TaskStatus.IN_PROGRESS:
                return upcoming
            slug = upcoming.slug
        record = await self._transition(document, slug, TaskStatus.IN_PROGRESS)
        LOGGER.info("Started task %s in %s", record.slug, document)
        return record

    async def create_task(
        self,
        document: str,
        title: str,
        content: str = "",
        after: Optional[str] = None,
    ) -> TaskRecord:
        """Add a pending task, creating the ``Tasks`` section under the title heading if needed."""
        path = self.documents.resolver.resolve_document(document).document_path
        after_slug = normalize_slug(after) if after else None
        body = "\n".join([status_line(TaskStatus.PENDING)] + ([""] + [content.strip()] if content.strip() else []))

        def transform(text: str) -> Tuple[str, TaskRecord]:
            text = ensure_tasks_section(text, path)
            container = tasks_heading(parse_headings(text))
            if after_slug is not None:
                _locate_task(text, path, after_slug)
                result = insert_section(text, after_slug, EditOperation.INSERT_AFTER, title, body, document=path)
            else:
                result = insert_section(
                    text, container.slug, EditOperation.APPEND_CHILD, title, body, document=path
                )
            created = next(task for task in parse_tasks(result.text) if task.slug == result.slug)
            return result.text, created

        record = await self.documents.mutate(path, transform)
        LOGGER.info("Created task %s in %s", record.slug, path)
        return record


def ensure_tasks_section(text: str, document: str) -> str:
    """Return ``text`` with a ``## Tasks`` section, appended under the first H1 if absent."""
    headings = parse_headings(text)
    if tasks_heading(headings) is not None:
        return text
    title = next((heading for heading in headings if heading.depth == 1), None)
    if title is None:
        raise TaskStateError(
            f"Cannot create a Tasks section without a title heading in {document}",
            "NO_TITLE_HEADING",
            document=document,
        )
    return insert_section(text, title.slug, EditOperation.APPEND_CHILD, TASKS_TITLE, document=document).text
