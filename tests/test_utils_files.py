"""Tests for file utility functions."""

from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path

from sectionstore.utils.files import archive_timestamp, compute_sha256, iter_markdown_paths, sha256_bytes


class TestIterMarkdownPaths:
    """Test iter_markdown_paths function."""

    def test_single_file(self, tmp_path: Path) -> None:
        """Should yield a single markdown file."""
        doc = tmp_path / "notes.md"
        doc.write_text("# Notes\n")

        assert list(iter_markdown_paths([doc])) == [doc]

    def test_directory_recursion(self, tmp_path: Path) -> None:
        """Should find markdown files in nested directories, sorted."""
        (tmp_path / "b.md").write_text("# B\n")
        (tmp_path / "a.md").write_text("# A\n")
        (tmp_path / "skip.txt").write_text("text")
        nested = tmp_path / "nested"
        nested.mkdir()
        (nested / "c.MD").write_text("# C\n")

        paths = list(iter_markdown_paths([tmp_path]))

        assert paths == [tmp_path / "a.md", tmp_path / "b.md", nested / "c.MD"]

    def test_skips_hidden_directories(self, tmp_path: Path) -> None:
        hidden = tmp_path / ".git"
        hidden.mkdir()
        (hidden / "x.md").write_text("# X\n")

        assert list(iter_markdown_paths([tmp_path])) == []

    def test_missing_path(self, tmp_path: Path) -> None:
        assert list(iter_markdown_paths([tmp_path / "missing.md"])) == []


class TestHashing:
    """Test sha256 helpers."""

    def test_compute_sha256_matches_bytes(self, tmp_path: Path) -> None:
        target = tmp_path / "doc.md"
        target.write_bytes(b"# Title\n")

        assert compute_sha256(target) == sha256_bytes(b"# Title\n")
        assert sha256_bytes(b"# Title\n") == hashlib.sha256(b"# Title\n").hexdigest()


class TestArchiveTimestamp:
    """Test archive_timestamp function."""

    def test_second_precision_and_safe_characters(self) -> None:
        moment = datetime(2026, 10, 15, 9, 5, 7, 123456)

        assert archive_timestamp(moment) == "2026-10-15T09-05-07"

    def test_whole_seconds(self) -> None:
        assert archive_timestamp(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03-04-05"
