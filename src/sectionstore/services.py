"""Wiring of the store components for one docs root."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Callable

from sectionstore.addressing.resolver import AddressResolver
from sectionstore.archive.manager import ArchiveManager
from sectionstore.config import AppConfig
from sectionstore.store.cache import DocumentCache
from sectionstore.store.guard import ConcurrencyGuard
from sectionstore.store.manager import DocumentManager
from sectionstore.tasks.coordinator import TaskWorkflow
from sectionstore.tasks.engine import TaskEngine

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    config: AppConfig
    root: Path
    guard: ConcurrencyGuard
    cache: DocumentCache
    documents: DocumentManager
    tasks: TaskEngine
    archiver: ArchiveManager
    workflow: TaskWorkflow


def build_services(
    config: AppConfig | None = None,
    base_dir: Path | None = None,
    clock: Callable[[], datetime] = datetime.now,
    today: Callable[[], date] = date.today,
) -> Services:
    """Create one cache, guard and set of managers sharing the same docs root."""
    config = config or AppConfig()
    root = config.resolve_docs_root(base_dir or Path.cwd())
    root.mkdir(parents=True, exist_ok=True)

    guard = ConcurrencyGuard(root)
    cache = DocumentCache(guard)
    documents = DocumentManager(
        root,
        guard=guard,
        cache=cache,
        resolver=AddressResolver(),
        max_batch_size=config.max_batch_size,
    )
    engine = TaskEngine(documents, today=today)
    archiver = ArchiveManager(guard, cache, clock=clock)
    workflow = TaskWorkflow(engine, archiver, auto_archive=config.auto_archive)
    LOGGER.debug("Section store ready at %s", guard.root)
    return Services(
        config=config,
        root=guard.root,
        guard=guard,
        cache=cache,
        documents=documents,
        tasks=engine,
        archiver=archiver,
        workflow=workflow,
    )
