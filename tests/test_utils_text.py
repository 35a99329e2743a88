"""Tests for text utility functions."""

from __future__ import annotations

import pytest

from sectionstore.utils.text import strip_blank_edges, title_to_slug, unescape_markdown, unique_slugs


class TestTitleToSlug:
    """Test title_to_slug function."""

    def test_lowercases_and_hyphenates(self) -> None:
        assert title_to_slug("Implement Caching") == "implement-caching"

    def test_drops_punctuation(self) -> None:
        assert title_to_slug("What's new? (v2.0)") == "whats-new-v20"

    def test_keeps_underscores_and_hyphens(self) -> None:
        assert title_to_slug("snake_case and-dash") == "snake_case-and-dash"

    def test_keeps_unicode_letters(self) -> None:
        assert title_to_slug("Café Menü") == "café-menü"

    def test_each_space_becomes_hyphen(self) -> None:
        """Should not collapse runs of spaces, matching GitHub anchors."""
        assert title_to_slug("A  B") == "a--b"

    def test_is_deterministic(self) -> None:
        assert title_to_slug("Same Title") == title_to_slug("Same Title")

    def test_empty_title_rejected(self) -> None:
        with pytest.raises(ValueError):
            title_to_slug("   ")

    def test_non_string_rejected(self) -> None:
        with pytest.raises(TypeError):
            title_to_slug(42)  # type: ignore[arg-type]


class TestUniqueSlugs:
    """Test unique_slugs function."""

    def test_suffixes_repeats_in_order(self) -> None:
        assert list(unique_slugs(["notes", "notes", "notes"])) == ["notes", "notes-1", "notes-2"]

    def test_skips_taken_suffix(self) -> None:
        """Should not hand out a suffix that already exists literally."""
        assert list(unique_slugs(["a-1", "a", "a"])) == ["a-1", "a", "a-2"]


class TestUnescapeMarkdown:
    """Test unescape_markdown function."""

    def test_underscore_escape(self) -> None:
        assert unescape_markdown(r"in\_progress") == "in_progress"

    def test_plain_text_untouched(self) -> None:
        assert unescape_markdown("pending") == "pending"


class TestStripBlankEdges:
    """Test strip_blank_edges function."""

    def test_trims_both_ends(self) -> None:
        assert strip_blank_edges(["", "  ", "a", "", "b", ""]) == ["a", "", "b"]

    def test_all_blank(self) -> None:
        assert strip_blank_edges(["", " "]) == []
