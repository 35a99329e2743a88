"""Tests for the optimistic concurrency guard."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from sectionstore.errors import AddressingError, ConflictError, DocumentExistsError, DocumentNotFoundError
from sectionstore.store.guard import ConcurrencyGuard


def _write(root: Path, name: str, content: str) -> Path:
    target = root / name
    target.write_text(content, encoding="utf-8")
    return target


class TestSnapshot:
    """Tests for snapshot reads."""

    def test_snapshot_content_and_version(self, tmp_path: Path) -> None:
        _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)

        snapshot = asyncio.run(guard.snapshot("/doc.md"))

        assert snapshot.content == "# Doc\n"
        assert snapshot.path == "/doc.md"
        assert snapshot.version == guard.current_version("/doc.md")

    def test_missing_document(self, tmp_path: Path) -> None:
        guard = ConcurrencyGuard(tmp_path)
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(guard.snapshot("/missing.md"))

    def test_directory_is_not_a_document(self, tmp_path: Path) -> None:
        (tmp_path / "folder.md").mkdir()
        guard = ConcurrencyGuard(tmp_path)
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(guard.snapshot("/folder.md"))

    def test_path_cannot_escape_root(self, tmp_path: Path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        with pytest.raises(AddressingError):
            ConcurrencyGuard(root).absolute_path("/../outside.md")


class TestWriteIfUnchanged:
    """Tests for conditional writes."""

    def test_fresh_version_writes_exact_content(self, tmp_path: Path) -> None:
        target = _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)

        async def scenario() -> None:
            snapshot = await guard.snapshot("/doc.md")
            await guard.write_if_unchanged("/doc.md", snapshot.version, "# Doc\n\nUpdated.\n")

        asyncio.run(scenario())

        assert target.read_text(encoding="utf-8") == "# Doc\n\nUpdated.\n"
        assert not any(item.name.startswith(".doc.md.tmp") for item in tmp_path.iterdir())

    def test_two_writers_one_conflict(self, tmp_path: Path) -> None:
        """Both writers snapshot; the second write with the stale version fails."""
        target = _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)

        async def scenario() -> None:
            first = await guard.snapshot("/doc.md")
            second = await guard.snapshot("/doc.md")
            await guard.write_if_unchanged("/doc.md", first.version, "# Doc\n\nWriter one.\n")
            with pytest.raises(ConflictError) as excinfo:
                await guard.write_if_unchanged("/doc.md", second.version, "# Doc\n\nWriter two.\n")
            assert excinfo.value.code == "CONFLICT"
            assert excinfo.value.context["path"] == "/doc.md"

        asyncio.run(scenario())

        assert target.read_text(encoding="utf-8") == "# Doc\n\nWriter one.\n"

    def test_same_mtime_different_bytes_conflicts(self, tmp_path: Path) -> None:
        """A change within one timestamp tick is still detected through the digest."""
        target = _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)

        async def scenario() -> None:
            snapshot = await guard.snapshot("/doc.md")
            target.write_text("# Edited elsewhere\n", encoding="utf-8")
            os.utime(target, ns=(snapshot.version.mtime_ns, snapshot.version.mtime_ns))
            with pytest.raises(ConflictError):
                await guard.write_if_unchanged("/doc.md", snapshot.version, "# Mine\n")

        asyncio.run(scenario())

        assert target.read_text(encoding="utf-8") == "# Edited elsewhere\n"

    def test_concurrent_writers_single_winner(self, tmp_path: Path) -> None:
        _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)

        async def scenario() -> list:
            snapshot = await guard.snapshot("/doc.md")
            return await asyncio.gather(
                *(guard.write_if_unchanged("/doc.md", snapshot.version, f"# Doc {n}\n") for n in range(5)),
                return_exceptions=True,
            )

        outcomes = asyncio.run(scenario())

        assert sum(1 for item in outcomes if not isinstance(item, Exception)) == 1
        assert sum(1 for item in outcomes if isinstance(item, ConflictError)) == 4


class TestCreateDelete:
    """Tests for create and delete."""

    def test_create_makes_parents(self, tmp_path: Path) -> None:
        guard = ConcurrencyGuard(tmp_path)
        asyncio.run(guard.create("/specs/api.md", "# API\n"))
        assert (tmp_path / "specs" / "api.md").read_text(encoding="utf-8") == "# API\n"

    def test_create_existing(self, tmp_path: Path) -> None:
        _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)
        with pytest.raises(DocumentExistsError):
            asyncio.run(guard.create("/doc.md", "# Other\n"))

    def test_delete(self, tmp_path: Path) -> None:
        target = _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)
        asyncio.run(guard.delete("/doc.md"))
        assert not target.exists()

    def test_delete_with_stale_version(self, tmp_path: Path) -> None:
        target = _write(tmp_path, "doc.md", "# Doc\n")
        guard = ConcurrencyGuard(tmp_path)

        async def scenario() -> None:
            snapshot = await guard.snapshot("/doc.md")
            target.write_text("# Changed\n", encoding="utf-8")
            await guard.delete("/doc.md", snapshot.version)

        with pytest.raises(ConflictError):
            asyncio.run(scenario())
        assert target.exists()

    def test_delete_missing(self, tmp_path: Path) -> None:
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(ConcurrencyGuard(tmp_path).delete("/missing.md"))
