"""Text helpers: heading slugs and markdown field cleanup."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Iterator

_KEPT_CATEGORIES = ("L", "M", "N")
_MARKDOWN_ESCAPE = re.compile(r"\\([_*\[\](){}#+\-.!`])")


def _keep_char(char: str) -> bool:
    if char in " -":
        return True
    category = unicodedata.category(char)
    return category.startswith(_KEPT_CATEGORIES) or category == "Pc"


def title_to_slug(title: str) -> str:
    """Convert a heading title into a GitHub-style anchor slug.

    Letters, marks, digits, connector punctuation, spaces and hyphens survive;
    every space becomes a hyphen. The transform is static so identical input
    always yields the identical slug.
    """
    if not isinstance(title, str):
        raise TypeError(f"Title must be a string, got {type(title).__name__}")
    trimmed = title.strip()
    if not trimmed:
        raise ValueError("Title cannot be empty")
    kept = "".join(char for char in trimmed.lower() if _keep_char(char))
    return kept.replace(" ", "-")


def unique_slugs(slugs: Iterable[str]) -> Iterator[str]:
    """Disambiguate repeated slugs with ``-1``, ``-2`` suffixes in input order."""
    seen: dict[str, int] = {}
    taken: set[str] = set()
    for slug in slugs:
        candidate = slug
        if candidate in taken:
            counter = seen.get(slug, 0)
            while candidate in taken:
                counter += 1
                candidate = f"{slug}-{counter}"
            seen[slug] = counter
        taken.add(candidate)
        yield candidate


def unescape_markdown(text: str) -> str:
    """Drop markdown backslash escapes, e.g. ``in\\_progress`` -> ``in_progress``."""
    return _MARKDOWN_ESCAPE.sub(r"\1", text)


def strip_blank_edges(lines: list[str]) -> list[str]:
    """Trim leading and trailing blank lines from a list of lines."""
    start = 0
    end = len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]
