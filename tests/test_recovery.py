"""Tests for recovery suggestions."""

import re

import pytest

from configurator import recovery
from configurator.recovery import (
    GENERIC_SUGGESTION,
    RecoverySuggestion,
    format_recovery_suggestions,
    get_recovery_suggestions,
    register_pattern,
)


class TestGetRecoverySuggestions:
    """Tests for pattern matching."""

    def test_category_not_found(self) -> None:
        """Test that the captured name appears in the fix."""
        (suggestion,) = get_recovery_suggestions('Category "shoes" not found')
        assert "category 'shoes'" in suggestion.fix
        assert suggestion.command == "saleor-configurator diff --include=categories"

    def test_duplicate_identifiers(self) -> None:
        """Test the duplicate identifier hint."""
        suggestions = get_recovery_suggestions(
            "Duplicate entity identifiers found in Product Types: T-Shirt"
        )
        assert suggestions[0].fix == "Remove duplicate product types entries from your config"

    def test_every_match_contributes(self) -> None:
        """Test that several patterns can match one message."""
        suggestions = get_recovery_suggestions("forbidden: slug is required")
        assert len(suggestions) == 2

    @pytest.mark.parametrize("message", [None, "", "something unusual"])
    def test_generic_fallback(self, message: str | None) -> None:
        """Test the generic suggestion."""
        assert get_recovery_suggestions(message) == [GENERIC_SUGGESTION]


class TestFormatRecoverySuggestions:
    """Tests for suggestion rendering."""

    def test_lines(self) -> None:
        """Test optional check and command lines."""
        lines = format_recovery_suggestions(
            [RecoverySuggestion("Do it", "Look", "run me"), RecoverySuggestion("Only fix")]
        )
        assert lines == ["→ Fix: Do it", "→ Check: Look", "→ Run: run me", "→ Fix: Only fix"]


class TestRegisterPattern:
    """Tests for custom pattern registration."""

    def test_register_and_duplicate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that custom patterns match and cannot be registered twice."""
        monkeypatch.setattr(recovery, "_PATTERNS", list(recovery._PATTERNS))
        pattern = re.compile(r"Menu (\w+) is locked")
        register_pattern(pattern, lambda m: RecoverySuggestion(f"Unlock {m[1]}"))

        assert get_recovery_suggestions("Menu navbar is locked")[0].fix == "Unlock navbar"
        with pytest.raises(ValueError, match="already registered"):
            register_pattern(re.compile(r"Menu (\w+) is locked"), lambda m: GENERIC_SUGGESTION)

    def test_registry_limit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the registry size limit."""
        monkeypatch.setattr(recovery, "MAX_PATTERNS", len(recovery._PATTERNS))
        with pytest.raises(ValueError, match="Maximum number of patterns"):
            register_pattern(re.compile("never"), lambda m: GENERIC_SUGGESTION)
