"""Error taxonomy shared by every layer of the section store."""

from __future__ import annotations

from typing import Any, Dict, Type


class SectionStoreError(Exception):
    """Base error carrying a stable reason code and retry context."""

    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context: Dict[str, Any] = {key: value for key, value in context.items() if value is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": dict(self.context)}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class AddressingError(SectionStoreError):
    """Malformed or policy-violating address, or a bad request parameter."""

    default_code = "INVALID_PATH"


class SectionNotFoundError(AddressingError):
    default_code = "NOT_FOUND"

    def __init__(self, slug: str, document: str) -> None:
        super().__init__(f"Section not found: {slug} in {document}", slug=slug, document=document)


class DocumentNotFoundError(SectionStoreError):
    default_code = "DOCUMENT_NOT_FOUND"

    def __init__(self, path: str) -> None:
        super().__init__(f"Document not found: {path}", path=path)


class DocumentExistsError(SectionStoreError):
    default_code = "DOCUMENT_EXISTS"

    def __init__(self, path: str) -> None:
        super().__init__(f"Document already exists: {path}", path=path)


class ConflictError(SectionStoreError):
    """The backing file changed between snapshot and write."""

    default_code = "CONFLICT"


class TaskStateError(SectionStoreError):
    default_code = "TASK_NOT_FOUND"


class ArchiveIOError(SectionStoreError):
    default_code = "ARCHIVE_IO_ERROR"


def wrap_error(
    exc: BaseException,
    fallback: Type[SectionStoreError],
    message: str,
    **context: Any,
) -> SectionStoreError:
    """Return taxonomy errors untouched, wrap anything else into ``fallback``."""
    if isinstance(exc, SectionStoreError):
        return exc
    return fallback(f"{message}: {exc}", detail=str(exc), **context)
