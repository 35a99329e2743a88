"""Shared fixtures for the section store tests."""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from sectionstore.config import AppConfig
from sectionstore.services import Services, build_services

TODAY = date(2026, 10, 15)
NOW = datetime(2026, 10, 15, 14, 30, 5, 250000)


def write_doc(root: Path, logical: str, content: str) -> Path:
    target = root / logical.lstrip("/")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


@pytest.fixture
def docs_root(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    return root


@pytest.fixture
def services(docs_root: Path) -> Services:
    return build_services(AppConfig(docs_root=docs_root), clock=lambda: NOW, today=lambda: TODAY)
