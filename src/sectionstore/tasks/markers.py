"""Line-level task field markers such as ``- Status: pending``.

The text representation stays as it is in the documents; everything past this
module works with :class:`~sectionstore.models.TaskStatus` values.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Dict, List, Optional, Sequence

from sectionstore.models import TaskStatus
from sectionstore.utils.text import unescape_markdown

STATUS_FIELD = "status"

# "- Key: value", "* Key: value", "**Key:** value", "**Key**: value", "Key: value"
_FIELD_LINE = re.compile(
    r"^(?P<prefix>\s*(?:[-*+]\s+)?(?:\*\*)?(?P<key>[A-Za-z][\w \-]{0,40}?)(?::\*\*|\*\*:|:)\s*)"
    r"(?P<value>\S.*?)\s*$"
)

_STATUS_ALIASES = {
    "pending": TaskStatus.PENDING,
    "todo": TaskStatus.PENDING,
    "in_progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "started": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "complete": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
}


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace(" ", "_").replace("-", "_")


def parse_fields(lines: Sequence[str]) -> Dict[str, str]:
    """Collect ``key: value`` marker lines; the first occurrence of a key wins."""
    fields: Dict[str, str] = {}
    for line in lines:
        match = _FIELD_LINE.match(line)
        if not match:
            continue
        key = _normalize_key(match.group("key"))
        fields.setdefault(key, unescape_markdown(match.group("value")).strip("*").strip())
    return fields


def extract_field(lines: Sequence[str], key: str) -> Optional[str]:
    return parse_fields(lines).get(_normalize_key(key))


def parse_status(value: Optional[str]) -> TaskStatus:
    """Map a raw status value to the enum. Missing or unknown values are pending."""
    if not value:
        return TaskStatus.PENDING
    cleaned = unescape_markdown(value).strip().strip("*`").lower()
    cleaned = re.sub(r"[\s\-]+", "_", cleaned)
    return _STATUS_ALIASES.get(cleaned, TaskStatus.PENDING)


def find_field_line(lines: Sequence[str], key: str) -> Optional[int]:
    wanted = _normalize_key(key)
    for index, line in enumerate(lines):
        match = _FIELD_LINE.match(line)
        if match and _normalize_key(match.group("key")) == wanted:
            return index
    return None


def set_status(lines: Sequence[str], status: TaskStatus) -> List[str]:
    """Return ``lines`` with the status marker set, keeping its existing format."""
    updated = list(lines)
    for index, line in enumerate(updated):
        match = _FIELD_LINE.match(line)
        if match and _normalize_key(match.group("key")) == STATUS_FIELD:
            updated[index] = f"{match.group('prefix')}{status.value}"
            return updated
    updated.insert(0, status_line(status))
    return updated


def status_line(status: TaskStatus) -> str:
    return f"- Status: {status.value}"


def completion_lines(completed_on: date, note: str) -> List[str]:
    return [f"- Completed: {completed_on.isoformat()}", f"- Note: {note.strip()}"]
