"""Parsed document cache keyed by canonical path."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sectionstore.addressing.namespaces import policy_for
from sectionstore.errors import DocumentNotFoundError
from sectionstore.models import DocumentRecord
from sectionstore.sections.tree import document_title, parse_headings
from sectionstore.store.guard import ConcurrencyGuard

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    invalidations: int


class DocumentCache:
    """Memoizes ``DocumentRecord`` values until a writer invalidates them.

    There is no TTL and no size bound. Each key has a generation counter bumped
    by :meth:`invalidate`; a load that started before an invalidation finishes
    without storing its (possibly stale) result, so an invalidation can never be
    undone by a slow reader.
    """

    def __init__(self, guard: ConcurrencyGuard) -> None:
        self.guard = guard
        self._records: Dict[str, DocumentRecord] = {}
        self._generations: Dict[str, int] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def _lock(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock

    async def get(self, path: str) -> Optional[DocumentRecord]:
        """Return the cached record for ``path``, loading it on a miss."""
        record = self._records.get(path)
        if record is not None:
            self._hits += 1
            return record

        async with self._lock(path):
            record = self._records.get(path)
            if record is not None:
                self._hits += 1
                return record

            self._misses += 1
            generation = self._generations.get(path, 0)
            try:
                snapshot = await self.guard.snapshot(path)
            except DocumentNotFoundError:
                LOGGER.debug("Cache miss for missing document %s", path)
                return None

            headings = parse_headings(snapshot.content)
            record = DocumentRecord(
                path=path,
                title=document_title(headings, path),
                headings=headings,
                loaded_mtime=snapshot.version.mtime_ns,
                content=snapshot.content,
                namespace=policy_for(path).name,
            )
            if self._generations.get(path, 0) == generation:
                self._records[path] = record
                LOGGER.debug("Loaded %s into cache (%d headings)", path, len(headings))
            else:
                LOGGER.debug("Discarding load of %s invalidated mid-read", path)
            return record

    def peek(self, path: str) -> Optional[DocumentRecord]:
        return self._records.get(path)

    def invalidate(self, path: str) -> bool:
        self._generations[path] = self._generations.get(path, 0) + 1
        self._invalidations += 1
        existed = self._records.pop(path, None) is not None
        if existed:
            LOGGER.debug("Invalidated cached document %s", path)
        return existed

    def invalidate_prefix(self, prefix: str) -> int:
        """Invalidate every cached path under ``prefix``; returns how many were cached."""
        matching = [path for path in self._records if path.startswith(prefix)]
        for path in matching:
            self.invalidate(path)
        return len(matching)

    def cached_paths(self) -> List[str]:
        return list(self._records)

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._records),
            hits=self._hits,
            misses=self._misses,
            invalidations=self._invalidations,
        )

    def clear(self) -> None:
        for path in list(self._records):
            self.invalidate(path)
        LOGGER.info("Document cache cleared")
