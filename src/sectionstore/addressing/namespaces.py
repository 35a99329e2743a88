"""Namespace policies keyed by logical path prefix."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

DOCS = "docs"
COORDINATOR = "coordinator"
ARCHIVED = "archived"

COORDINATOR_PREFIX = f"/{COORDINATOR}/"
ARCHIVED_PREFIX = f"/{ARCHIVED}/"
COORDINATOR_ACTIVE_PATH = f"{COORDINATOR_PREFIX}active.md"


@dataclass(frozen=True, slots=True)
class NamespacePolicy:
    name: str
    prefix: str
    archive_prefix: str
    allow_fragments: bool = True
    sequential_tasks: bool = False
    auto_archive: bool = False
    timestamp_only_names: bool = False


POLICIES: Tuple[NamespacePolicy, ...] = (
    NamespacePolicy(
        name=COORDINATOR,
        prefix=COORDINATOR_PREFIX,
        archive_prefix=f"{ARCHIVED_PREFIX}{COORDINATOR}/",
        allow_fragments=False,
        sequential_tasks=True,
        auto_archive=True,
        timestamp_only_names=True,
    ),
    NamespacePolicy(
        name=ARCHIVED,
        prefix=ARCHIVED_PREFIX,
        archive_prefix=ARCHIVED_PREFIX,
    ),
)

DEFAULT_POLICY = NamespacePolicy(name=DOCS, prefix="/", archive_prefix=f"{ARCHIVED_PREFIX}{DOCS}/")


def policy_for(path: str) -> NamespacePolicy:
    """Return the policy of the longest matching prefix, falling back to docs."""
    for policy in sorted(POLICIES, key=lambda item: len(item.prefix), reverse=True):
        if path.startswith(policy.prefix):
            return policy
    return DEFAULT_POLICY


def relative_to_namespace(path: str, policy: NamespacePolicy) -> str:
    """Strip the namespace prefix, leaving a path without a leading slash."""
    if path.startswith(policy.prefix):
        return path[len(policy.prefix):]
    return path.lstrip("/")
