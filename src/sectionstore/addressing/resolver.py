"""Turn user-supplied paths into canonical addresses.

Resolution is a pure string transformation: nothing here touches the filesystem.
Accepted forms are ``/dir/doc.md``, ``dir/doc.md`` and ``/dir/doc.md#parent/child``.
A bare ``#slug`` or ``slug`` is resolved against a context document when one is given.
"""

from __future__ import annotations

import posixpath
import re
import unicodedata
from typing import Optional

from sectionstore.addressing.namespaces import policy_for
from sectionstore.errors import AddressingError
from sectionstore.models import Address
from sectionstore.utils.files import DOCUMENT_SUFFIX

MAX_PATH_LENGTH = 4096
MAX_SLUG_DEPTH = 20
MAX_SLUG_COMPONENT = 200

_DANGEROUS = re.compile(r"[\x00-\x1f\x7f\\%]")


def _normalized_location(raw_path: str) -> str:
    if not isinstance(raw_path, str) or not raw_path.strip():
        raise AddressingError("Document path cannot be empty", "INVALID_PATH", path=raw_path)
    if len(raw_path) > MAX_PATH_LENGTH:
        raise AddressingError(
            f"Path too long: {len(raw_path)} characters", "INVALID_PATH", length=len(raw_path)
        )

    cleaned = unicodedata.normalize("NFC", raw_path.strip()).replace("\\", "/")
    if _DANGEROUS.search(cleaned):
        raise AddressingError("Path contains control or escape characters", "INVALID_PATH", path=raw_path)

    segments = [segment for segment in cleaned.split("/") if segment]
    if any(segment in (".", "..") for segment in segments):
        raise AddressingError("Path traversal is not allowed", "INVALID_PATH", path=raw_path)
    if not segments:
        raise AddressingError("Document path cannot be empty", "INVALID_PATH", path=raw_path)
    return posixpath.normpath("/" + "/".join(segments))


def canonical_path(raw_path: str) -> str:
    """Normalize a document path: leading slash, collapsed separators, no traversal."""
    normalized = _normalized_location(raw_path)
    if not normalized.endswith(DOCUMENT_SUFFIX) or normalized == f"/{DOCUMENT_SUFFIX}":
        raise AddressingError(
            f"Document path must end with {DOCUMENT_SUFFIX}", "INVALID_PATH", path=normalized
        )
    return normalized


def canonical_location(raw_path: str) -> str:
    """Like :func:`canonical_path` but also accepts folder paths (no suffix check)."""
    normalized = _normalized_location(raw_path)
    if normalized.endswith(DOCUMENT_SUFFIX):
        return canonical_path(normalized)
    return normalized


def normalize_slug(raw_slug: str) -> str:
    """Validate a (possibly hierarchical) section slug and strip a leading ``#``."""
    slug = unicodedata.normalize("NFC", raw_slug.strip())
    if slug.startswith("#"):
        slug = slug[1:]
    if not slug:
        raise AddressingError("Section slug cannot be empty", "INVALID_SLUG", slug=raw_slug)
    if _DANGEROUS.search(slug):
        raise AddressingError("Section slug contains dangerous characters", "INVALID_SLUG", slug=raw_slug)

    components = slug.split("/")
    if len(components) > MAX_SLUG_DEPTH:
        raise AddressingError(
            f"Section path too deep (max: {MAX_SLUG_DEPTH} levels)", "INVALID_SLUG", slug=slug
        )
    for component in components:
        if not component:
            raise AddressingError("Section path contains empty components", "INVALID_SLUG", slug=slug)
        if len(component) > MAX_SLUG_COMPONENT:
            raise AddressingError("Section path component too long", "INVALID_SLUG", slug=slug)
        if ".." in component:
            raise AddressingError("Section path contains traversal", "INVALID_SLUG", slug=slug)
    return slug.lower()


class AddressResolver:
    """Resolves raw paths into :class:`Address` values and enforces namespace rules."""

    def resolve(self, raw_path: str, context_document: Optional[str] = None) -> Address:
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise AddressingError("Path cannot be empty", "INVALID_PATH", path=raw_path)

        raw = raw_path.strip()
        if "#" in raw:
            document_part, _, slug_part = raw.partition("#")
            document_part = document_part or (context_document or "")
            if not document_part:
                raise AddressingError(
                    "Section reference requires a context document", "INVALID_PATH", path=raw
                )
            slug: Optional[str] = normalize_slug(slug_part)
        elif context_document and not raw.endswith(DOCUMENT_SUFFIX):
            document_part, slug = context_document, normalize_slug(raw)
        else:
            document_part, slug = raw, None

        document_path = canonical_path(document_part)
        policy = policy_for(document_path)
        if slug is not None and not policy.allow_fragments:
            raise AddressingError(
                f"Namespace '{policy.name}' does not allow section addressing; "
                "tasks are selected sequentially",
                "NAMESPACE_VIOLATION",
                path=raw,
                namespace=policy.name,
            )
        return Address(document_path=document_path, section_slug=slug, namespace=policy.name)

    def resolve_document(self, raw_path: str) -> Address:
        """Resolve a path that must not carry a section fragment."""
        address = self.resolve(raw_path)
        if address.section_slug is not None:
            raise AddressingError(
                "Expected a document path without a section fragment",
                "INVALID_PATH",
                path=raw_path,
            )
        return address

    def resolve_section(self, document: str, section: str) -> Address:
        """Resolve a ``(document, section)`` pair as supplied by callers."""
        if not section or not section.strip():
            raise AddressingError("Section is required", "MISSING_PARAMETER", parameter="section")
        if not document or not document.strip():
            raise AddressingError("Document is required", "MISSING_PARAMETER", parameter="document")
        return self.resolve(section, context_document=document)
