"""Tests for path canonicalization, slug validation and namespace policies."""

from __future__ import annotations

import pytest

from sectionstore.addressing.namespaces import (
    COORDINATOR_ACTIVE_PATH,
    DEFAULT_POLICY,
    policy_for,
    relative_to_namespace,
)
from sectionstore.addressing.resolver import (
    AddressResolver,
    canonical_location,
    canonical_path,
    normalize_slug,
)
from sectionstore.errors import AddressingError


class TestCanonicalPath:
    """Test canonical_path function."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("project.md", "/project.md"),
            ("/specs//api.md", "/specs/api.md"),
            ("specs\\api.md", "/specs/api.md"),
            ("  /a/b.md  ", "/a/b.md"),
        ],
    )
    def test_normalizes(self, raw: str, expected: str) -> None:
        assert canonical_path(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "../secret.md", "/a/./b.md", "/notes.txt", "/a%2e%2e.md", "/a\x00.md"])
    def test_rejects(self, raw: str) -> None:
        with pytest.raises(AddressingError) as excinfo:
            canonical_path(raw)
        assert excinfo.value.code == "INVALID_PATH"

    def test_rejects_overlong_paths(self) -> None:
        with pytest.raises(AddressingError):
            canonical_path("/" + "a" * 5000 + ".md")

    def test_location_accepts_folders(self) -> None:
        assert canonical_location("projects/") == "/projects"
        assert canonical_location("/projects/plan.md") == "/projects/plan.md"


class TestNormalizeSlug:
    """Test normalize_slug function."""

    def test_strips_hash_and_lowercases(self) -> None:
        assert normalize_slug("#Tasks/Implement-Caching") == "tasks/implement-caching"

    @pytest.mark.parametrize("raw", ["", "#", "a//b", "a/../b", "a\x01b"])
    def test_rejects(self, raw: str) -> None:
        with pytest.raises(AddressingError) as excinfo:
            normalize_slug(raw)
        assert excinfo.value.code == "INVALID_SLUG"


class TestAddressResolver:
    """Test AddressResolver."""

    def test_document_only(self) -> None:
        address = AddressResolver().resolve("specs/api.md")
        assert address.document_path == "/specs/api.md"
        assert address.section_slug is None
        assert address.namespace == "docs"

    def test_document_with_fragment(self) -> None:
        address = AddressResolver().resolve("/project.md#tasks/implement-caching")
        assert address.document_path == "/project.md"
        assert address.section_slug == "tasks/implement-caching"
        assert address.full_path == "/project.md#tasks/implement-caching"

    def test_fragment_with_context(self) -> None:
        address = AddressResolver().resolve("#overview", context_document="/project.md")
        assert address.full_path == "/project.md#overview"

    def test_bare_slug_with_context(self) -> None:
        address = AddressResolver().resolve("overview", context_document="project.md")
        assert address.full_path == "/project.md#overview"

    def test_fragment_without_context(self) -> None:
        with pytest.raises(AddressingError) as excinfo:
            AddressResolver().resolve("#overview")
        assert excinfo.value.code == "INVALID_PATH"

    def test_coordinator_rejects_fragments(self) -> None:
        with pytest.raises(AddressingError) as excinfo:
            AddressResolver().resolve(f"{COORDINATOR_ACTIVE_PATH}#first-task")
        assert excinfo.value.code == "NAMESPACE_VIOLATION"
        assert excinfo.value.context["namespace"] == "coordinator"

    def test_coordinator_document_allowed(self) -> None:
        address = AddressResolver().resolve(COORDINATOR_ACTIVE_PATH)
        assert address.namespace == "coordinator"

    def test_resolve_document_rejects_fragment(self) -> None:
        with pytest.raises(AddressingError):
            AddressResolver().resolve_document("/project.md#overview")

    def test_resolve_section_requires_both(self) -> None:
        resolver = AddressResolver()
        with pytest.raises(AddressingError) as excinfo:
            resolver.resolve_section("/project.md", "")
        assert excinfo.value.code == "MISSING_PARAMETER"
        with pytest.raises(AddressingError) as excinfo:
            resolver.resolve_section("", "overview")
        assert excinfo.value.context["parameter"] == "document"

    def test_resolve_section(self) -> None:
        address = AddressResolver().resolve_section("/project.md", "Overview")
        assert address.full_path == "/project.md#overview"


class TestNamespaces:
    """Test namespace policy lookup."""

    def test_docs_is_default(self) -> None:
        assert policy_for("/project.md") is DEFAULT_POLICY
        assert DEFAULT_POLICY.archive_prefix == "/archived/docs/"

    def test_coordinator_policy(self) -> None:
        policy = policy_for(COORDINATOR_ACTIVE_PATH)
        assert policy.sequential_tasks
        assert policy.auto_archive
        assert not policy.allow_fragments
        assert policy.archive_prefix == "/archived/coordinator/"

    def test_archived_policy(self) -> None:
        assert policy_for("/archived/docs/a.md").name == "archived"

    def test_relative_to_namespace(self) -> None:
        assert relative_to_namespace("/specs/api.md", DEFAULT_POLICY) == "specs/api.md"
        policy = policy_for(COORDINATOR_ACTIVE_PATH)
        assert relative_to_namespace(COORDINATOR_ACTIVE_PATH, policy) == "active.md"
