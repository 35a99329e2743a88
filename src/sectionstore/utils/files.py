"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator

DOCUMENT_SUFFIX = ".md"


def iter_markdown_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield markdown paths from input paths, descending into directories.

    Directories whose name starts with a dot are skipped.
    """
    for item in inputs:
        if item.is_dir():
            if item.name.startswith("."):
                continue
            yield from iter_markdown_paths(sorted(item.iterdir()))
        elif item.is_file() and item.suffix.lower() == DOCUMENT_SUFFIX:
            yield item


def compute_sha256(path: Path) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            sha.update(chunk)
    return sha.hexdigest()


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def archive_timestamp(moment: datetime) -> str:
    """ISO-8601 timestamp truncated to seconds with ``:`` and ``.`` made file-safe."""
    return moment.isoformat().replace(":", "-").replace(".", "-")[:19]
