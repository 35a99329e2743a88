"""Structural section edits that rewrite whole-document text.

Every edit works on source lines: lines outside the touched span keep their
text, so unrelated regions never get re-rendered. The rewritten document is
normalized to LF line endings and ends in exactly one newline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from sectionstore.errors import AddressingError
from sectionstore.models import Heading
from sectionstore.sections.tree import (
    clamp_depth,
    join_lines,
    own_body_end,
    parse_headings,
    require_heading,
    split_lines,
)
from sectionstore.utils.text import strip_blank_edges, title_to_slug

_HEADING_LINE = re.compile(r"^ {0,3}#{1,6}(?:[ \t]|$)")
_ATX_PARTS = re.compile(r"^(?P<marker> {0,3}#{1,6})(?:[ \t]+(?P<title>.*?))?(?P<closing>[ \t]+#+[ \t]*)?$")


class EditOperation(str, Enum):
    REPLACE = "replace"
    INSERT_BEFORE = "insert_before"
    INSERT_AFTER = "insert_after"
    APPEND_CHILD = "append_child"
    APPEND = "append"
    PREPEND = "prepend"
    REMOVE = "remove"

    @property
    def creates_section(self) -> bool:
        return self in (EditOperation.INSERT_BEFORE, EditOperation.INSERT_AFTER, EditOperation.APPEND_CHILD)


@dataclass(frozen=True, slots=True)
class EditResult:
    text: str
    slug: str
    depth: int
    removed: Optional[str] = None


def _content_lines(content: str) -> List[str]:
    return strip_blank_edges(split_lines(content or ""))


def _starts_with_heading(lines: Sequence[str]) -> bool:
    return bool(lines) and bool(_HEADING_LINE.match(lines[0]))


def _heading_block(depth: int, title: str, body: str) -> List[str]:
    block = [f"{'#' * depth} {title.strip()}", ""]
    body_lines = _content_lines(body)
    if body_lines:
        block.extend(body_lines)
        block.append("")
    return block


def _splice(lines: List[str], index: int, block: List[str]) -> int:
    """Insert ``block`` at ``index`` keeping a blank line before it; return the heading line."""
    if index > 0 and lines[index - 1].strip():
        block = [""] + block
        heading_line = index + 1
    else:
        heading_line = index
    lines[index:index] = block
    return heading_line


def _ensure_unique_sibling(text: str, heading_line: int, title: str) -> None:
    headings = parse_headings(text)
    inserted = next((item for item in headings if item.start_line == heading_line), None)
    if inserted is None:
        return
    target = title_to_slug(title)
    for heading in headings:
        if heading is inserted:
            continue
        if heading.parent_index == inserted.parent_index and heading.depth == inserted.depth:
            if title_to_slug(heading.title) == target:
                raise AddressingError(
                    f'Duplicate heading at depth {inserted.depth}: "{title}" (slug: {target})',
                    "DUPLICATE_HEADING",
                    title=title,
                    slug=target,
                    depth=inserted.depth,
                )


def _slug_at(text: str, heading_line: int, fallback: str) -> str:
    for heading in parse_headings(text):
        if heading.start_line == heading_line:
            return heading.slug
    return fallback


def replace_section(text: str, reference: str, content: str, document: str = "") -> EditResult:
    """Substitute a section's whole span.

    When ``content`` opens with its own heading line it replaces heading, body
    and descendants; otherwise the existing heading line is kept and only what
    follows it is replaced.
    """
    headings = parse_headings(text)
    target = require_heading(headings, reference, document)
    lines = split_lines(text)
    new_lines = _content_lines(content)
    tail = [""] if target.end_line < len(lines) else []

    if _starts_with_heading(new_lines):
        lines[target.start_line:target.end_line] = new_lines + tail
    else:
        body = [""] + new_lines + [""] if new_lines else [""]
        lines[target.body_start:target.end_line] = body
    updated = join_lines(lines)
    return EditResult(text=updated, slug=_slug_at(updated, target.start_line, target.slug), depth=target.depth)


def insert_section(
    text: str,
    reference: str,
    operation: EditOperation,
    title: str,
    body: str = "",
    depth: Optional[int] = None,
    document: str = "",
) -> EditResult:
    """Splice a new heading and body relative to ``reference``."""
    if not operation.creates_section:
        raise AddressingError(f"Not an insert operation: {operation.value}", "INVALID_PARAMETER")
    if not title or not title.strip():
        raise AddressingError("Title is required for insert operations", "MISSING_PARAMETER", parameter="title")

    headings = parse_headings(text)
    target = require_heading(headings, reference, document)
    lines = split_lines(text)

    if operation is EditOperation.APPEND_CHILD:
        final_depth = clamp_depth(depth if depth is not None else target.depth + 1)
        index = target.end_line
    else:
        final_depth = clamp_depth(depth if depth is not None else target.depth)
        index = target.start_line if operation is EditOperation.INSERT_BEFORE else target.end_line

    heading_line = _splice(lines, index, _heading_block(final_depth, title, body))
    updated = join_lines(lines)
    _ensure_unique_sibling(updated, heading_line, title)
    return EditResult(text=updated, slug=_slug_at(updated, heading_line, title_to_slug(title)), depth=final_depth)


def rename_section(text: str, reference: str, new_title: str, document: str = "") -> EditResult:
    """Rewrite only the title text of a heading line.

    Slugs derived from the old title stop resolving; callers re-read the tree.
    """
    if not new_title or not new_title.strip():
        raise AddressingError("New title is required", "MISSING_PARAMETER", parameter="title")
    headings = parse_headings(text)
    target = require_heading(headings, reference, document)
    lines = split_lines(text)

    line = lines[target.start_line]
    match = _ATX_PARTS.match(line)
    if match:
        lines[target.start_line] = f"{match.group('marker')} {new_title.strip()}"
    else:
        # setext heading: title is the first line, underline stays
        indent = len(line) - len(line.lstrip())
        lines[target.start_line] = f"{' ' * indent}{new_title.strip()}"
        if target.body_start - target.start_line > 2:
            del lines[target.start_line + 1:target.body_start - 1]

    updated = join_lines(lines)
    _ensure_unique_sibling(updated, target.start_line, new_title)
    return EditResult(text=updated, slug=_slug_at(updated, target.start_line, title_to_slug(new_title)), depth=target.depth)


def remove_section(text: str, reference: str, document: str = "") -> EditResult:
    headings = parse_headings(text)
    target = require_heading(headings, reference, document)
    lines = split_lines(text)
    removed = "\n".join(strip_blank_edges(lines[target.start_line:target.end_line]))
    del lines[target.start_line:target.end_line]
    return EditResult(text=join_lines(lines), slug=target.slug, depth=target.depth, removed=removed)


def _extend_own_body(text: str, target: Heading, headings: Sequence[Heading], content: str, at_end: bool) -> str:
    lines = split_lines(text)
    stop = own_body_end(headings, target)
    existing = strip_blank_edges(lines[target.body_start:stop])
    addition = _content_lines(content)
    if at_end:
        merged = existing + ([""] if existing and addition else []) + addition
    else:
        merged = addition + ([""] if existing and addition else []) + existing
    lines[target.body_start:stop] = [""] + merged + [""] if merged else [""]
    return join_lines(lines)


def append_to_section(text: str, reference: str, content: str, document: str = "") -> EditResult:
    headings = parse_headings(text)
    target = require_heading(headings, reference, document)
    return EditResult(text=_extend_own_body(text, target, headings, content, True), slug=target.slug, depth=target.depth)


def prepend_to_section(text: str, reference: str, content: str, document: str = "") -> EditResult:
    headings = parse_headings(text)
    target = require_heading(headings, reference, document)
    return EditResult(text=_extend_own_body(text, target, headings, content, False), slug=target.slug, depth=target.depth)


def apply_edit(
    text: str,
    operation: EditOperation | str,
    reference: str,
    content: str = "",
    title: Optional[str] = None,
    depth: Optional[int] = None,
    document: str = "",
) -> EditResult:
    """Dispatch one edit operation and return the rewritten document."""
    try:
        operation = EditOperation(operation)
    except ValueError as exc:
        raise AddressingError(
            f"Unknown section operation: {operation}",
            "INVALID_PARAMETER",
            operation=str(operation),
            allowed=[item.value for item in EditOperation],
        ) from exc

    if operation is EditOperation.REPLACE:
        return replace_section(text, reference, content, document)
    if operation.creates_section:
        return insert_section(text, reference, operation, title or "", content, depth, document)
    if operation is EditOperation.APPEND:
        return append_to_section(text, reference, content, document)
    if operation is EditOperation.PREPEND:
        return prepend_to_section(text, reference, content, document)
    return remove_section(text, reference, document)
