"""Snapshot-read and conditional-write primitives over plain files."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict

from sectionstore.errors import AddressingError, ConflictError, DocumentExistsError, DocumentNotFoundError, wrap_error
from sectionstore.models import FileSnapshot, FileVersion
from sectionstore.utils.files import sha256_bytes

LOGGER = logging.getLogger(__name__)


class ConcurrencyGuard:
    """Optimistic concurrency over files under a single docs root.

    A version is the file's ``mtime_ns`` together with the sha256 of its bytes,
    so a write landing inside one timestamp tick is still detected. The guard
    never retries: a mismatch is reported as :class:`ConflictError` and the
    caller decides whether to snapshot again.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()
        self._write_locks: Dict[str, asyncio.Lock] = {}

    def absolute_path(self, path: str) -> Path:
        candidate = (self.root / path.lstrip("/")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise AddressingError(
                f"Path escapes the docs root: {path}", "INVALID_PATH", path=path
            )
        return candidate

    def _lock(self, path: str) -> asyncio.Lock:
        lock = self._write_locks.get(path)
        if lock is None:
            lock = self._write_locks[path] = asyncio.Lock()
        return lock

    def _read(self, path: str) -> FileSnapshot:
        target = self.absolute_path(path)
        try:
            stat = target.stat()
            data = target.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise DocumentNotFoundError(path) from exc
        except PermissionError as exc:
            raise wrap_error(exc, AddressingError, f"Cannot read {path}", path=path) from exc
        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise wrap_error(exc, AddressingError, f"{path} is not valid UTF-8", path=path) from exc
        version = FileVersion(mtime_ns=stat.st_mtime_ns, sha256=sha256_bytes(data))
        return FileSnapshot(path=path, content=content, version=version)

    def current_version(self, path: str) -> FileVersion:
        return self._read(path).version

    def _replace(self, target: Path, content: str) -> FileVersion:
        data = content.encode("utf-8")
        temp = target.with_name(f".{target.name}.tmp.{os.getpid()}")
        try:
            temp.write_bytes(data)
            os.replace(temp, target)
        except OSError:
            temp.unlink(missing_ok=True)
            raise
        return FileVersion(mtime_ns=target.stat().st_mtime_ns, sha256=sha256_bytes(data))

    def _compare_and_write(self, path: str, expected: FileVersion, content: str) -> FileVersion:
        current = self._read(path).version
        if current != expected:
            LOGGER.warning("Write conflict on %s", path)
            raise ConflictError(
                "File has been modified since it was read",
                path=path,
                expected_mtime_ns=expected.mtime_ns,
                actual_mtime_ns=current.mtime_ns,
            )
        return self._replace(self.absolute_path(path), content)

    def _create(self, path: str, content: str) -> FileVersion:
        target = self.absolute_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with target.open("xb") as handle:
                handle.write(content.encode("utf-8"))
        except FileExistsError as exc:
            raise DocumentExistsError(path) from exc
        return self._read(path).version

    def _delete(self, path: str, expected: FileVersion | None) -> None:
        if expected is not None:
            current = self._read(path).version
            if current != expected:
                raise ConflictError("File has been modified since it was read", path=path)
        try:
            self.absolute_path(path).unlink()
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(path) from exc

    async def snapshot(self, path: str) -> FileSnapshot:
        """Read content and version of ``path``."""
        return await asyncio.to_thread(self._read, path)

    async def write_if_unchanged(self, path: str, expected: FileVersion, content: str) -> FileVersion:
        """Write ``content`` only when the file still has version ``expected``."""
        # compare-and-replace must not interleave with another in-process write
        async with self._lock(path):
            return await asyncio.to_thread(self._compare_and_write, path, expected, content)

    async def create(self, path: str, content: str) -> FileVersion:
        async with self._lock(path):
            return await asyncio.to_thread(self._create, path, content)

    async def delete(self, path: str, expected: FileVersion | None = None) -> None:
        async with self._lock(path):
            await asyncio.to_thread(self._delete, path, expected)
