"""Heading tree extraction and section lookup.

Headings come from markdown-it tokens so that fenced code, indented code and
HTML blocks never produce false headings; the token line map gives the exact
source lines each heading occupies. Only top-level headings (not those nested
inside lists or block quotes) delimit sections.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence, Tuple

from markdown_it import MarkdownIt
from markdown_it.token import Token

from sectionstore.errors import AddressingError, SectionNotFoundError
from sectionstore.models import Heading, TocNode
from sectionstore.utils.text import strip_blank_edges, title_to_slug, unique_slugs

LOGGER = logging.getLogger(__name__)

MAX_DEPTH = 6
MAX_HEADINGS_PER_DOCUMENT = 1000

_PARSER = MarkdownIt("commonmark")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_lines(text: str) -> List[str]:
    """Split normalized text into lines, ignoring the final newline."""
    text = normalize_newlines(text)
    if text.endswith("\n"):
        text = text[:-1]
    return text.split("\n") if text else []


def join_lines(lines: Sequence[str]) -> str:
    """Join lines back into document text ending in exactly one newline."""
    trimmed = list(lines)
    while trimmed and not trimmed[-1].strip():
        trimmed.pop()
    return "\n".join(trimmed) + "\n" if trimmed else ""


def clamp_depth(depth: int) -> int:
    return max(1, min(MAX_DEPTH, int(depth)))


def _inline_text(token: Token) -> str:
    parts: List[str] = []
    for child in token.children or []:
        if child.type in ("text", "code_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append(" ")
        elif child.type == "image":
            parts.append(child.content)
    return "".join(parts).strip()


def _raw_headings(text: str) -> Iterable[Tuple[int, str, int, int]]:
    tokens = _PARSER.parse(normalize_newlines(text))
    for position, token in enumerate(tokens):
        if token.type != "heading_open" or token.level != 0 or not token.map:
            continue
        inline = tokens[position + 1] if position + 1 < len(tokens) else None
        title = _inline_text(inline) if inline is not None and inline.type == "inline" else ""
        if not title:
            LOGGER.debug("Skipping empty heading at line %s", token.map[0])
            continue
        yield clamp_depth(int(token.tag[1:])), title, token.map[0], token.map[1]


def parse_headings(text: str) -> Tuple[Heading, ...]:
    """Parse document text into an ordered tuple of :class:`Heading`.

    Slugs are unique within the document: repeats get ``-1``, ``-2`` suffixes in
    document order. ``path`` chains the slugs of every ancestor heading.
    """
    raw = list(_raw_headings(text))
    if len(raw) > MAX_HEADINGS_PER_DOCUMENT:
        raise AddressingError(
            f"Too many headings in document (max: {MAX_HEADINGS_PER_DOCUMENT})",
            "INVALID_PARAMETER",
            count=len(raw),
            limit=MAX_HEADINGS_PER_DOCUMENT,
        )

    total_lines = len(split_lines(text))
    slugs = list(unique_slugs(title_to_slug(title) or "section" for _, title, _, _ in raw))

    parents: List[Optional[int]] = []
    for index, (depth, _, _, _) in enumerate(raw):
        parent = None
        for candidate in range(index - 1, -1, -1):
            if raw[candidate][0] < depth:
                parent = candidate
                break
        parents.append(parent)

    headings: List[Heading] = []
    for index, (depth, title, start, body_start) in enumerate(raw):
        end = total_lines
        for following in raw[index + 1:]:
            if following[0] <= depth:
                end = following[2]
                break
        chain = [slugs[index]]
        parent = parents[index]
        while parent is not None:
            chain.append(slugs[parent])
            parent = parents[parent]
        headings.append(
            Heading(
                index=index,
                slug=slugs[index],
                title=title,
                depth=depth,
                path="/".join(reversed(chain)),
                start_line=start,
                body_start=body_start,
                end_line=end,
                parent_index=parents[index],
            )
        )
    return tuple(headings)


def document_title(headings: Sequence[Heading], path: str) -> str:
    for heading in headings:
        if heading.depth == 1:
            return heading.title
    if headings:
        return headings[0].title
    return PurePosixPath(path).stem


def build_toc(headings: Sequence[Heading]) -> List[TocNode]:
    """Nest headings into a table-of-contents tree."""
    roots: List[TocNode] = []
    nodes: dict[int, TocNode] = {}
    for heading in headings:
        node = TocNode(title=heading.title, slug=heading.slug, depth=heading.depth)
        nodes[heading.index] = node
        if heading.parent_index is None:
            roots.append(node)
        else:
            nodes[heading.parent_index].children.append(node)
    return roots


def find_heading(headings: Sequence[Heading], reference: str) -> Optional[Heading]:
    """Look a heading up by flat slug, full hierarchical path or trailing path suffix.

    A path may name repeated titles without their ``-N`` suffix: ``backend/setup``
    finds the ``setup-1`` heading that sits under ``backend``.
    """
    ref = reference.strip().lstrip("#").lower()
    if not ref:
        return None
    for heading in headings:
        if heading.slug == ref:
            return heading
    for heading in headings:
        if heading.path == ref:
            return heading
    if "/" in ref:
        for heading in headings:
            if heading.path.endswith(f"/{ref}"):
                return heading
        return _find_disambiguated(headings, ref.split("/"))
    return None


def _segment_matches(actual: str, wanted: str) -> bool:
    return actual == wanted or re.fullmatch(rf"{re.escape(wanted)}-\d+", actual) is not None


def _find_disambiguated(headings: Sequence[Heading], parts: List[str]) -> Optional[Heading]:
    """Match a slug path whose segments omit the ``-N`` suffixes of repeated titles."""
    for heading in headings:
        if not _segment_matches(heading.slug, parts[-1]):
            continue
        actual = heading.path.split("/")
        if len(actual) < len(parts):
            continue
        tail = actual[len(actual) - len(parts):]
        if all(_segment_matches(have, want) for have, want in zip(tail, parts)):
            return heading
    return None


def require_heading(headings: Sequence[Heading], reference: str, document: str = "") -> Heading:
    heading = find_heading(headings, reference)
    if heading is None:
        raise SectionNotFoundError(reference, document)
    return heading


def own_body_end(headings: Sequence[Heading], heading: Heading) -> int:
    """Line where the heading's own body stops: its first child, or the span end."""
    if heading.index + 1 < len(headings):
        following = headings[heading.index + 1]
        if following.start_line < heading.end_line:
            return following.start_line
    return heading.end_line


def descendants(headings: Sequence[Heading], heading: Heading) -> List[Heading]:
    return [
        candidate
        for candidate in headings[heading.index + 1:]
        if candidate.start_line < heading.end_line
    ]


def section_text(text: str, heading: Heading) -> str:
    """The full span of a heading: heading line, body and all descendants."""
    lines = split_lines(text)
    return "\n".join(strip_blank_edges(lines[heading.start_line:heading.end_line]))


def section_body(text: str, heading: Heading) -> str:
    """The span without the heading line itself, trimmed of blank edges."""
    lines = split_lines(text)
    return "\n".join(strip_blank_edges(lines[heading.body_start:heading.end_line]))


def read_section(text: str, reference: str) -> Optional[str]:
    heading = find_heading(parse_headings(text), reference)
    if heading is None:
        return None
    return section_text(text, heading)
