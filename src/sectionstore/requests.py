"""Typed request structures validated once at the boundary."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_core import PydanticCustomError

from sectionstore.config import MAX_BATCH_SIZE
from sectionstore.errors import AddressingError
from sectionstore.sections.edit import EditOperation

ModelT = TypeVar("ModelT", bound=BaseModel)

_MISSING_TYPES = {"missing", "missing_parameter", "string_too_short"}


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class SectionOperationItem(StrictModel):
    section: str = Field(min_length=1)
    operation: EditOperation = EditOperation.REPLACE
    content: Optional[str] = None
    title: Optional[str] = None
    depth: Optional[int] = Field(default=None, ge=1, le=6)

    @model_validator(mode="after")
    def _check_required(self) -> "SectionOperationItem":
        if self.operation is not EditOperation.REMOVE and not self.content:
            raise PydanticCustomError(
                "missing_parameter", "content is required for {operation}", {"operation": self.operation.value}
            )
        if self.operation.creates_section and not self.title:
            raise PydanticCustomError(
                "missing_parameter", "title is required for {operation}", {"operation": self.operation.value}
            )
        return self


class SectionEditRequest(SectionOperationItem):
    document: str = Field(min_length=1)


class BatchSectionRequest(StrictModel):
    document: str = Field(min_length=1)
    operations: List[SectionOperationItem] = Field(min_length=1)


class CreateDocumentRequest(StrictModel):
    path: str = Field(min_length=1)
    title: str = Field(min_length=1)


class CreateTaskRequest(StrictModel):
    document: str = Field(min_length=1)
    title: str = Field(min_length=1)
    content: str = ""
    after: Optional[str] = None


class StartTaskRequest(StrictModel):
    document: str = Field(min_length=1)
    task: Optional[str] = None


class CompleteTaskRequest(StrictModel):
    document: str = Field(min_length=1)
    note: str = Field(min_length=1)
    task: Optional[str] = None
    return_next_task: bool = True


class CoordinatorCompleteRequest(StrictModel):
    note: str = Field(min_length=1)
    return_next_task: bool = False


class ArchiveRequest(StrictModel):
    path: str = Field(min_length=1)
    audit: bool = False


def ensure_batch_size(count: int, limit: int = MAX_BATCH_SIZE) -> None:
    if count > limit:
        raise AddressingError(
            f"Batch of {count} operations exceeds the maximum of {limit}",
            "BATCH_TOO_LARGE",
            count=count,
            limit=limit,
        )


def parse_request(model: Type[ModelT], payload: Mapping[str, Any], *, batch_limit: int = MAX_BATCH_SIZE) -> ModelT:
    """Validate ``payload`` into ``model`` or raise an :class:`AddressingError`.

    Missing or empty required fields map to ``MISSING_PARAMETER``; unknown fields
    and wrong types to ``INVALID_PARAMETER``.
    """
    if not isinstance(payload, Mapping):
        raise AddressingError("Request body must be an object", "INVALID_PARAMETER")
    operations = payload.get("operations")
    if model is BatchSectionRequest and isinstance(operations, list):
        ensure_batch_size(len(operations), batch_limit)

    try:
        return model.model_validate(dict(payload))
    except ValidationError as exc:
        error = exc.errors()[0]
        parameter = ".".join(str(part) for part in error.get("loc", ())) or None
        if error.get("type") in _MISSING_TYPES:
            raise AddressingError(
                f"Missing required parameter: {parameter or error.get('msg')}",
                "MISSING_PARAMETER",
                parameter=parameter,
                detail=error.get("msg"),
            ) from exc
        if error.get("type") == "extra_forbidden":
            message = f"Unknown parameter: {parameter}"
        else:
            message = f"Invalid parameter {parameter}: {error.get('msg')}"
        raise AddressingError(message, "INVALID_PARAMETER", parameter=parameter, detail=error.get("msg")) from exc
