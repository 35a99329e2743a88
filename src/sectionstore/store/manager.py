"""Document and section operations over the cache and the concurrency guard."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

from sectionstore.addressing.resolver import AddressResolver, canonical_path
from sectionstore.config import MAX_BATCH_SIZE
from sectionstore.errors import AddressingError, DocumentNotFoundError, SectionStoreError
from sectionstore.models import DocumentRecord
from sectionstore.requests import SectionOperationItem, ensure_batch_size
from sectionstore.sections.edit import EditOperation, EditResult, apply_edit, rename_section
from sectionstore.sections.tree import find_heading, section_text
from sectionstore.store.cache import DocumentCache
from sectionstore.store.guard import ConcurrencyGuard
from sectionstore.utils.files import iter_markdown_paths

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class DocumentSummary:
    path: str
    title: str
    heading_count: int
    namespace: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "title": self.title,
            "heading_count": self.heading_count,
            "namespace": self.namespace,
        }


class DocumentManager:
    """Read path through the cache, write path through the guard.

    Every mutation is one snapshot, one pure transform, one conditional write and
    one cache invalidation. Methods taking ``document``/``section`` strings
    resolve them first; the ``perform_*`` variants take already canonical paths
    and slugs from trusted callers such as the task engine.
    """

    def __init__(
        self,
        root: Path,
        *,
        guard: Optional[ConcurrencyGuard] = None,
        cache: Optional[DocumentCache] = None,
        resolver: Optional[AddressResolver] = None,
        max_batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        self.guard = guard or ConcurrencyGuard(root)
        self.root = self.guard.root
        self.cache = cache or DocumentCache(self.guard)
        self.resolver = resolver or AddressResolver()
        self.max_batch_size = max_batch_size

    async def get_document(self, document: str) -> Optional[DocumentRecord]:
        return await self.cache.get(canonical_path(document))

    async def require_document(self, document: str) -> DocumentRecord:
        path = canonical_path(document)
        record = await self.cache.get(path)
        if record is None:
            raise DocumentNotFoundError(path)
        return record

    async def get_section_content(self, document: str, slug: str) -> Optional[str]:
        """Span text (heading, body and descendants) of a section, or ``None``."""
        record = await self.get_document(document)
        if record is None:
            return None
        heading = find_heading(record.headings, slug)
        if heading is None:
            return None
        return section_text(record.content, heading)

    async def mutate(self, path: str, transform: Callable[[str], Tuple[str, T]]) -> T:
        """Apply ``transform`` to a fresh snapshot of ``path`` and write it back.

        ``transform`` receives the current text and returns ``(new_text, result)``.
        The cache entry is invalidated whether the write succeeded or lost a race.
        """
        snapshot = await self.guard.snapshot(path)
        new_text, result = transform(snapshot.content)
        try:
            await self.guard.write_if_unchanged(path, snapshot.version, new_text)
        finally:
            self.cache.invalidate(path)
        return result

    async def perform_edit(
        self,
        path: str,
        slug: str,
        operation: EditOperation | str,
        content: str = "",
        title: Optional[str] = None,
        depth: Optional[int] = None,
    ) -> EditResult:
        def transform(text: str) -> Tuple[str, EditResult]:
            result = apply_edit(text, operation, slug, content, title=title, depth=depth, document=path)
            return result.text, result

        result = await self.mutate(path, transform)
        LOGGER.info("Edited %s#%s (%s)", path, slug, EditOperation(operation).value)
        return result

    async def edit_section(
        self,
        document: str,
        section: str,
        operation: EditOperation | str = EditOperation.REPLACE,
        content: str = "",
        title: Optional[str] = None,
        depth: Optional[int] = None,
    ) -> EditResult:
        """Resolve ``document``/``section`` and apply one section edit."""
        address = self.resolver.resolve_section(document, section)
        return await self.perform_edit(
            address.document_path, address.section_slug or "", operation, content, title, depth
        )

    async def rename_section(self, document: str, section: str, new_title: str) -> EditResult:
        address = self.resolver.resolve_section(document, section)

        def transform(text: str) -> Tuple[str, EditResult]:
            result = rename_section(text, address.section_slug or "", new_title, document=address.document_path)
            return result.text, result

        result = await self.mutate(address.document_path, transform)
        LOGGER.info("Renamed %s#%s to %r", address.document_path, address.section_slug, new_title)
        return result

    async def apply_batch(self, document: str, operations: Sequence[SectionOperationItem]) -> List[dict[str, Any]]:
        """Run section edits one after another; each gets its own result entry."""
        ensure_batch_size(len(operations), self.max_batch_size)
        results: List[dict[str, Any]] = []
        for position, item in enumerate(operations):
            try:
                edit = await self.edit_section(
                    document, item.section, item.operation, item.content or "", item.title, item.depth
                )
            except SectionStoreError as exc:
                results.append({"index": position, "success": False, "error": exc.to_dict()})
                continue
            entry: dict[str, Any] = {
                "index": position,
                "success": True,
                "operation": item.operation.value,
                "section": edit.slug,
                "depth": edit.depth,
            }
            if edit.removed is not None:
                entry["removed_content"] = edit.removed
            results.append(entry)
        return results

    async def create_document(self, document: str, title: str, body: str = "") -> DocumentRecord:
        address = self.resolver.resolve_document(document)
        if not title or not title.strip():
            raise AddressingError("Title is required", "MISSING_PARAMETER", parameter="title")
        content = f"# {title.strip()}\n\n"
        if body.strip():
            content += f"{body.strip()}\n"
        await self.guard.create(address.document_path, content)
        self.cache.invalidate(address.document_path)
        LOGGER.info("Created document %s", address.document_path)
        return await self.require_document(address.document_path)

    async def delete_document(self, document: str) -> None:
        address = self.resolver.resolve_document(document)
        try:
            await self.guard.delete(address.document_path)
        finally:
            self.cache.invalidate(address.document_path)
        LOGGER.info("Deleted document %s", address.document_path)

    async def list_documents(self, prefix: str = "/") -> List[DocumentSummary]:
        base = self.guard.absolute_path(prefix)
        files = await asyncio.to_thread(lambda: list(iter_markdown_paths([base])) if base.exists() else [])
        summaries: List[DocumentSummary] = []
        for file_path in files:
            logical = "/" + file_path.relative_to(self.root).as_posix()
            try:
                record = await self.cache.get(canonical_path(logical))
            except SectionStoreError as exc:
                LOGGER.warning("Failed to load %s for listing: %s", logical, exc)
                continue
            if record is not None:
                summaries.append(
                    DocumentSummary(
                        path=record.path,
                        title=record.title,
                        heading_count=len(record.headings),
                        namespace=record.namespace,
                    )
                )
        return summaries
