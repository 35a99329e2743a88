"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DOCS_ROOT_ENV = "SECTIONSTORE_DOCS_ROOT"
MAX_BATCH_SIZE = 100


def _get_default_docs_root() -> Path:
    """Get the default docs root based on environment and working directory."""
    from_env = os.environ.get(DOCS_ROOT_ENV)
    if from_env:
        return Path(from_env).expanduser()

    # When running from a checkout, prefer local docs/ if it exists
    local_root = Path("docs")
    if local_root.is_dir():
        return local_root

    return Path.home() / "Documents" / "SectionStore"


@dataclass(slots=True)
class AppConfig:
    docs_root: Path | None = None
    auto_archive: bool = True
    max_batch_size: int = MAX_BATCH_SIZE
    archive_audit: bool = False

    def __post_init__(self) -> None:
        if self.docs_root is None:
            self.docs_root = _get_default_docs_root()

    def resolve_docs_root(self, base_dir: Path | None = None) -> Path:
        if self.docs_root is None:
            self.docs_root = _get_default_docs_root()
        if Path(self.docs_root).is_absolute() or base_dir is None:
            return Path(self.docs_root)
        return base_dir / self.docs_root
