"""FastAPI application exposing the section store over HTTP."""

from __future__ import annotations

import logging
from dataclasses import asdict
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sectionstore.errors import (
    AddressingError,
    ConflictError,
    DocumentExistsError,
    DocumentNotFoundError,
    SectionNotFoundError,
    SectionStoreError,
    TaskStateError,
)
from sectionstore.requests import (
    ArchiveRequest,
    BatchSectionRequest,
    CompleteTaskRequest,
    CoordinatorCompleteRequest,
    CreateDocumentRequest,
    CreateTaskRequest,
    SectionEditRequest,
    StartTaskRequest,
    parse_request,
)
from sectionstore.sections.tree import build_toc, find_heading, section_text
from sectionstore.services import Services, build_services

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="SectionStore", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services()


def status_for(error: SectionStoreError) -> int:
    if isinstance(error, (ConflictError, DocumentExistsError)):
        return 409
    if isinstance(error, (DocumentNotFoundError, SectionNotFoundError)):
        return 404
    if isinstance(error, AddressingError):
        return 400
    if isinstance(error, TaskStateError):
        return 422
    return 500


@app.exception_handler(SectionStoreError)
async def section_store_error_handler(request: Request, exc: SectionStoreError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/documents")
async def list_documents(prefix: str = "/", services: Services = Depends(get_services)) -> dict[str, Any]:
    """List every document under the docs root."""
    documents = await services.documents.list_documents(prefix)
    return {
        "documents": [summary.to_dict() for summary in documents],
        "cache": asdict(services.cache.stats()),
    }


@app.get("/documents/view")
async def view_document(
    path: str,
    section: Optional[str] = None,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    if section:
        address = services.documents.resolver.resolve_section(path, section)
    else:
        address = services.documents.resolver.resolve_document(path)
    record = await services.documents.require_document(address.document_path)
    if address.section_slug is None:
        return {
            "path": record.path,
            "title": record.title,
            "namespace": record.namespace,
            "toc": [asdict(node) for node in build_toc(record.headings)],
            "content": record.content,
        }
    heading = find_heading(record.headings, address.section_slug)
    if heading is None:
        raise SectionNotFoundError(address.section_slug, record.path)
    return {
        "path": record.path,
        "section": heading.slug,
        "title": heading.title,
        "depth": heading.depth,
        "content": section_text(record.content, heading),
    }


@app.post("/documents")
async def create_document(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(CreateDocumentRequest, payload)
    record = await services.documents.create_document(request.path, request.title)
    return {"status": "ok", "path": record.path, "title": record.title}


@app.delete("/documents")
async def delete_document(path: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    await services.documents.delete_document(path)
    return {"status": "ok", "deleted": path}


@app.post("/sections/edit")
async def edit_section(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(SectionEditRequest, payload)
    result = await services.documents.edit_section(
        request.document,
        request.section,
        request.operation,
        request.content or "",
        request.title,
        request.depth,
    )
    response: dict[str, Any] = {
        "status": "ok",
        "operation": request.operation.value,
        "section": result.slug,
        "depth": result.depth,
    }
    if result.removed is not None:
        response["removed_content"] = result.removed
    return response


@app.post("/sections/batch")
async def batch_edit(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(BatchSectionRequest, payload, batch_limit=services.config.max_batch_size)
    results = await services.documents.apply_batch(request.document, request.operations)
    succeeded = sum(1 for item in results if item["success"])
    return {
        "document": request.document,
        "results": results,
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }


@app.get("/tasks")
async def list_tasks(
    document: str,
    status: Optional[str] = None,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    listing = await services.tasks.list_tasks(document, status)
    return listing.to_dict()


@app.post("/tasks")
async def create_task(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(CreateTaskRequest, payload)
    record = await services.tasks.create_task(request.document, request.title, request.content, request.after)
    return {"status": "ok", "task": record.to_dict()}


@app.post("/tasks/start")
async def start_task(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(StartTaskRequest, payload)
    record = await services.tasks.start_task(request.document, request.task)
    return {"status": "ok", "task": record.to_dict()}


@app.post("/tasks/complete")
async def complete_task(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(CompleteTaskRequest, payload)
    return await services.workflow.complete(
        request.document, request.note, task=request.task, return_next_task=request.return_next_task
    )


@app.post("/coordinator/complete")
async def complete_coordinator_task(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(CoordinatorCompleteRequest, payload)
    return await services.workflow.complete_coordinator_task(request.note, request.return_next_task)


@app.post("/archive")
async def archive(
    payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
) -> dict[str, Any]:
    request = parse_request(ArchiveRequest, payload)
    record = await services.archiver.archive(request.path, audit=request.audit or services.config.archive_audit)
    return {"status": "ok", "archive": record.to_dict()}


@app.post("/archive/recover")
async def recover_archives(services: Services = Depends(get_services)) -> dict[str, Any]:
    results = await services.archiver.recover()
    return {"results": [result.to_dict() for result in results]}
