"""Move finished documents and folders into the ``/archived/`` retention tree."""

from __future__ import annotations

import asyncio
import errno
import json
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, List

from sectionstore.addressing.namespaces import ARCHIVED_PREFIX, policy_for, relative_to_namespace
from sectionstore.addressing.resolver import canonical_location
from sectionstore.errors import AddressingError, ArchiveIOError, DocumentNotFoundError
from sectionstore.models import ArchiveRecord
from sectionstore.store.cache import DocumentCache
from sectionstore.store.guard import ConcurrencyGuard
from sectionstore.utils.files import DOCUMENT_SUFFIX, archive_timestamp, compute_sha256

LOGGER = logging.getLogger(__name__)

PENDING_SUFFIX = ".pending"
AUDIT_SUFFIX = ".audit"


@dataclass(slots=True)
class RecoveryResult:
    marker: str
    original_path: str
    archive_path: str
    action: str

    def to_dict(self) -> dict:
        return {
            "marker": self.marker,
            "original_path": self.original_path,
            "archive_path": self.archive_path,
            "action": self.action,
        }


def _tree_digests(root: Path) -> dict[str, str]:
    if root.is_file():
        return {"": compute_sha256(root)}
    return {
        item.relative_to(root).as_posix(): compute_sha256(item)
        for item in sorted(root.rglob("*"))
        if item.is_file()
    }


class ArchiveManager:
    """Relocates files and folders into a namespace-specific retention directory.

    Same-volume moves are a single rename. Across volumes the source is copied,
    the copy is verified against the source digests and only then is the source
    deleted. A ``.pending`` marker next to the destination records the move
    until it finishes so :meth:`recover` can complete an interrupted one.
    """

    def __init__(
        self,
        guard: ConcurrencyGuard,
        cache: DocumentCache,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.guard = guard
        self.cache = cache
        self.clock = clock

    def destination_for(self, path: str, moment: datetime, is_folder: bool) -> str:
        """Logical archive path for ``path`` at ``moment``, before collision handling."""
        policy = policy_for(path)
        stamp = archive_timestamp(moment)
        if policy.timestamp_only_names and not is_folder:
            return f"{policy.archive_prefix}{stamp}{DOCUMENT_SUFFIX}"
        relative = PurePosixPath(relative_to_namespace(path, policy))
        if is_folder:
            name = f"{relative.name}-{stamp}"
        else:
            name = f"{relative.stem}-{stamp}{relative.suffix}"
        return str(PurePosixPath(policy.archive_prefix) / relative.parent / name)

    def _free_destination(self, logical: str) -> str:
        candidate = logical
        pure = PurePosixPath(logical)
        counter = 0
        while any(
            self.guard.absolute_path(candidate + suffix).exists() for suffix in ("", PENDING_SUFFIX, AUDIT_SUFFIX)
        ):
            counter += 1
            candidate = str(pure.with_name(f"{pure.stem}_{counter}{pure.suffix}"))
        return candidate

    def _move(self, source: Path, target: Path) -> None:
        try:
            os.replace(source, target)
            return
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise
        LOGGER.debug("Cross-device archive of %s, copying", source)
        expected = _tree_digests(source)
        if source.is_dir():
            shutil.copytree(source, target)
        else:
            shutil.copy2(source, target)
        if _tree_digests(target) != expected:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink(missing_ok=True)
            raise ArchiveIOError(
                f"Archive copy of {source.name} does not match the source",
                source=str(source),
                target=str(target),
            )
        if source.is_dir():
            shutil.rmtree(source)
        else:
            source.unlink()

    def _write_audit(self, audit_path: str, payload: dict) -> None:
        self.guard.absolute_path(audit_path).write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _archive(self, raw_path: str, audit: bool) -> ArchiveRecord:
        path = canonical_location(raw_path)
        if path.startswith(ARCHIVED_PREFIX) or path == ARCHIVED_PREFIX.rstrip("/"):
            raise AddressingError(
                f"Path is already archived: {path}", "NAMESPACE_VIOLATION", path=path, namespace="archived"
            )
        source = self.guard.absolute_path(path)
        if source == self.guard.root or not source.exists():
            raise DocumentNotFoundError(path)

        is_folder = source.is_dir()
        moment = self.clock()
        archive_path = self._free_destination(self.destination_for(path, moment, is_folder))
        target = self.guard.absolute_path(archive_path)
        marker = self.guard.absolute_path(archive_path + PENDING_SUFFIX)
        audit_path = archive_path + AUDIT_SUFFIX if audit else None

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            marker.write_text(
                json.dumps({"originalPath": path, "archivePath": archive_path}), encoding="utf-8"
            )
            self._move(source, target)
            if audit_path is not None:
                self._write_audit(
                    audit_path,
                    {
                        "originalPath": path,
                        "archivedAt": moment.isoformat(),
                        "type": "folder" if is_folder else "file",
                    },
                )
            marker.unlink()
        except ArchiveIOError:
            marker.unlink(missing_ok=True)
            raise
        except OSError as exc:
            if source.exists() and not target.exists():
                marker.unlink(missing_ok=True)
            raise ArchiveIOError(
                f"Failed to archive {path}: {exc}", path=path, archive_path=archive_path, detail=str(exc)
            ) from exc

        return ArchiveRecord(
            original_path=path,
            archive_path=archive_path,
            archived_at=moment,
            was_folder=is_folder,
            audit_path=audit_path,
        )

    async def archive(self, path: str, audit: bool = False) -> ArchiveRecord:
        """Move ``path`` (a document or a folder) into its archive location."""
        location = canonical_location(path)
        try:
            record = await asyncio.to_thread(self._archive, location, audit)
        finally:
            # the source may be gone even when a later step failed
            self.cache.invalidate(location)
            self.cache.invalidate_prefix(location.rstrip("/") + "/")
        LOGGER.info("Archived %s to %s", record.original_path, record.archive_path)
        return record

    def _recover(self) -> List[RecoveryResult]:
        archive_root = self.guard.absolute_path(ARCHIVED_PREFIX)
        if not archive_root.is_dir():
            return []
        results: List[RecoveryResult] = []
        for marker in sorted(archive_root.rglob(f"*{PENDING_SUFFIX}")):
            logical_marker = "/" + marker.relative_to(self.guard.root).as_posix()
            try:
                details = json.loads(marker.read_text(encoding="utf-8"))
                original = str(details["originalPath"])
                archive_path = str(details["archivePath"])
            except (OSError, ValueError, KeyError) as exc:
                LOGGER.warning("Unreadable archive marker %s: %s", logical_marker, exc)
                results.append(RecoveryResult(logical_marker, "", "", "unreadable"))
                continue

            source = self.guard.absolute_path(original)
            target = self.guard.absolute_path(archive_path)
            if not target.exists():
                action = "incomplete"
            elif not source.exists():
                marker.unlink()
                action = "finished"
            elif _tree_digests(source) == _tree_digests(target):
                if source.is_dir():
                    shutil.rmtree(source)
                else:
                    source.unlink()
                marker.unlink()
                action = "removed_duplicate"
            else:
                action = "diverged"
            if action in ("incomplete", "diverged"):
                LOGGER.warning("Archive of %s needs attention (%s)", original, action)
            results.append(RecoveryResult(logical_marker, original, archive_path, action))
        return results

    async def recover(self) -> List[RecoveryResult]:
        """Finish or report archive moves interrupted before their marker was removed.

        A source whose content matches its archived copy is deleted; a missing
        copy (``incomplete``) or a modified source (``diverged``) is only reported.
        """
        try:
            results = await asyncio.to_thread(self._recover)
        except OSError as exc:
            raise ArchiveIOError(f"Archive recovery failed: {exc}", detail=str(exc)) from exc
        for result in results:
            if result.action == "removed_duplicate":
                self.cache.invalidate(result.original_path)
                self.cache.invalidate_prefix(result.original_path.rstrip("/") + "/")
        return results
