"""Task completion flow with sequential selection and auto-archive."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sectionstore.addressing.namespaces import COORDINATOR_ACTIVE_PATH, policy_for
from sectionstore.archive.manager import ArchiveManager
from sectionstore.errors import AddressingError, TaskStateError
from sectionstore.tasks.engine import TaskEngine

LOGGER = logging.getLogger(__name__)


class TaskWorkflow:
    """Completes tasks and archives a finished list when its namespace asks for it."""

    def __init__(self, engine: TaskEngine, archiver: ArchiveManager, auto_archive: bool = True) -> None:
        self.engine = engine
        self.archiver = archiver
        self.auto_archive = auto_archive

    async def complete(
        self,
        document: str,
        note: str,
        task: Optional[str] = None,
        return_next_task: bool = True,
    ) -> Dict[str, Any]:
        address = self.engine.documents.resolver.resolve_document(document)
        path = address.document_path
        policy = policy_for(path)

        if task is not None and policy.sequential_tasks:
            raise AddressingError(
                f"Namespace '{policy.name}' completes tasks sequentially; a task cannot be named",
                "NAMESPACE_VIOLATION",
                path=path,
                namespace=policy.name,
            )
        if task is None:
            upcoming = await self.engine.find_next_available_task(path)
            if upcoming is None:
                raise TaskStateError(f"No available tasks in {path}", "NO_AVAILABLE_TASKS", document=path)
            task = upcoming.slug

        completed = await self.engine.complete_task(path, task, note)
        result: Dict[str, Any] = {"completed_task": completed.to_dict()}

        if policy.auto_archive and self.auto_archive and await self.engine.all_tasks_complete(path):
            record = await self.archiver.archive(path)
            LOGGER.info("All tasks in %s complete, archived to %s", path, record.archive_path)
            result["archived"] = True
            result["archived_to"] = record.archive_path
            return result

        if return_next_task:
            upcoming = await self.engine.find_next_available_task(path)
            result["next_task"] = upcoming.to_dict() if upcoming else None
        return result

    async def complete_coordinator_task(self, note: str, return_next_task: bool = False) -> Dict[str, Any]:
        """Complete the next task of the active coordinator list."""
        return await self.complete(COORDINATOR_ACTIVE_PATH, note, return_next_task=return_next_task)
