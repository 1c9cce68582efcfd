"""Actionable recovery suggestions for failed operations.

Each known error message pattern maps to a fix, something to check and a
command to run. Patterns are matched in registration order and every
matching pattern contributes a suggestion.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RecoverySuggestion:
    fix: str
    check: str | None = None
    command: str | None = None


SuggestionBuilder = Callable[[re.Match[str]], RecoverySuggestion]

MAX_PATTERNS = 100

GENERIC_SUGGESTION = RecoverySuggestion(
    fix="Review the error message for details",
    check="Check your configuration against the current Saleor state",
    command="saleor-configurator diff --verbose",
)

_NETWORK_SUGGESTION = RecoverySuggestion(
    fix="Check your network connection and Saleor instance URL",
    check="Verify the instance is accessible",
    command="curl -I YOUR_SALEOR_URL/graphql/",
)


def _p(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


_PATTERNS: list[tuple[re.Pattern[str], SuggestionBuilder]] = [
    # Attributes
    (
        _p(r"Entity type is required for reference attribute ['\"]?([^'\"]+)['\"]?"),
        lambda m: RecoverySuggestion(
            fix=f"Add entityType field to the '{m[1]}' reference attribute in your config",
            check="Valid values are: PAGE, PRODUCT, or PRODUCT_VARIANT",
            command="saleor-configurator diff --include=attributes",
        ),
    ),
    (
        _p(r"Attribute ['\"]?([^'\"]+)['\"]? not found"),
        lambda m: RecoverySuggestion(
            fix=f"Create the attribute '{m[1]}' first or reference an existing one",
            check="View available attributes",
            command="saleor-configurator pull --force",
        ),
    ),
    # Missing references
    (
        _p(r"Category ['\"]?(.+?)['\"]? not found"),
        lambda m: RecoverySuggestion(
            fix=f"Ensure category '{m[1]}' exists or will be created earlier in deployment",
            check="View existing categories",
            command="saleor-configurator diff --include=categories",
        ),
    ),
    (
        _p(r"Channel ['\"]?(.+?)['\"]? not found"),
        lambda m: RecoverySuggestion(
            fix=f"Ensure channel '{m[1]}' exists or is defined in your config",
            check="View existing channels",
            command="saleor-configurator diff --include=channels",
        ),
    ),
    (
        _p(r"Product type ['\"]?(.+?)['\"]? not found"),
        lambda m: RecoverySuggestion(
            fix=f"Ensure product type '{m[1]}' exists or is defined before products that use it",
            check="View existing product types",
            command="saleor-configurator diff --include=productTypes",
        ),
    ),
    (
        _p(r"Warehouse ['\"]?([\w-]+)['\"]? not found"),
        lambda m: RecoverySuggestion(
            fix=f"Ensure warehouse '{m[1]}' exists in your warehouses configuration",
            check="Warehouse slugs must match exactly (case-sensitive)",
            command="saleor-configurator diff --include=warehouses",
        ),
    ),
    (
        _p(r"Shipping zone ['\"]?([\w\s-]+)['\"]? not found"),
        lambda m: RecoverySuggestion(
            fix=f"Ensure shipping zone '{m[1]}' exists in your configuration",
            check="Shipping zone names must match exactly",
            command="saleor-configurator diff --include=shippingZones",
        ),
    ),
    (
        _p(r"Tax class ['\"]?([\w\s-]+)['\"]? (?:not found|doesn't exist)"),
        lambda m: RecoverySuggestion(
            fix=f"Ensure tax class '{m[1]}' exists in your configuration",
            check="Tax class names must match exactly",
            command="saleor-configurator diff --include=taxClasses",
        ),
    ),
    # Duplicates and conflicts
    (
        _p(r"Duplicate slug ['\"]?([^'\"]+)['\"]?"),
        lambda m: RecoverySuggestion(
            fix=f"Use a unique slug - '{m[1]}' already exists",
            check="View existing entities to find available slugs",
            command="saleor-configurator diff",
        ),
    ),
    (
        _p(r"already exists with name ['\"]?([^'\"]+)['\"]?"),
        lambda m: RecoverySuggestion(
            fix=(
                f"Entity with name '{m[1]}' already exists - use a different name "
                "or update the existing one"
            ),
            check="View current state",
            command="saleor-configurator diff",
        ),
    ),
    (
        _p(r"Duplicate entity identifiers found in ([\w\s]+):"),
        lambda m: RecoverySuggestion(
            fix=f"Remove duplicate {m[1].strip().lower()} entries from your config",
            check="Each entity must have a unique slug (or name when it has no slug)",
            command="saleor-configurator diff",
        ),
    ),
    (
        _p(r"SKU ['\"]?([\w-]+)['\"]? already exists"),
        lambda m: RecoverySuggestion(
            fix=f"Change SKU '{m[1]}' to a unique value",
            check="Each product variant must have a unique SKU",
            command="saleor-configurator diff --include=products",
        ),
    ),
    # Validation
    (
        _p(r"Invalid currency code ['\"]?([A-Z]+)['\"]?"),
        lambda m: RecoverySuggestion(
            fix=f"Use a valid ISO 4217 currency code instead of '{m[1]}'",
            check="Common codes: USD, EUR, GBP, CAD, AUD, JPY",
        ),
    ),
    (
        _p(r"Invalid country code ['\"]?([A-Z]+)['\"]?"),
        lambda m: RecoverySuggestion(
            fix=f"Use a valid ISO 3166-1 alpha-2 country code instead of '{m[1]}'",
            check="Common codes: US, GB, DE, FR, CA, AU, JP",
        ),
    ),
    (
        _p(r"Tax rate must be between 0 and 100"),
        lambda m: RecoverySuggestion(
            fix="Set tax rate as a percentage between 0 and 100",
            check="Example: rate: 8.5 for 8.5% tax",
        ),
    ),
    (
        _p(r"(\w+) is required"),
        lambda m: RecoverySuggestion(
            fix=f"Add the required field '{m[1]}' to your configuration",
            check="Review the configuration schema",
        ),
    ),
    # Permissions
    (
        _p(r"permission denied|unauthorized|forbidden"),
        lambda m: RecoverySuggestion(
            fix="Check that your API token has the required permissions",
            check="Verify token permissions in Saleor dashboard",
            command="saleor-configurator diff --token YOUR_TOKEN",
        ),
    ),
    # Network
    (_p(r"ECONNREFUSED|ETIMEDOUT|ENOTFOUND|Connection refused"), lambda m: _NETWORK_SUGGESTION),
    (
        _p(r"fetch failed|Max retries exceeded"),
        lambda m: RecoverySuggestion(
            fix="Check your network connection and Saleor instance URL",
            check="Verify the instance is running and accessible",
        ),
    ),
    # GraphQL schema mismatch
    (
        _p(r"Variable.*?(\$\w+).*? of type"),
        lambda m: RecoverySuggestion(
            fix=f"Check the {m[1]} field type matches the GraphQL schema",
            check="This might be a version mismatch between configurator and Saleor",
        ),
    ),
]


def get_recovery_suggestions(message: str | None) -> list[RecoverySuggestion]:
    """Suggestions for an error message; the generic one when nothing matches."""
    if not message:
        return [GENERIC_SUGGESTION]

    suggestions = []
    for pattern, build in _PATTERNS:
        match = pattern.search(message)
        if match:
            suggestions.append(build(match))

    return suggestions or [GENERIC_SUGGESTION]


def format_recovery_suggestions(suggestions: list[RecoverySuggestion]) -> list[str]:
    """Render suggestions as ``→ Fix:`` / ``→ Check:`` / ``→ Run:`` lines."""
    lines: list[str] = []
    for suggestion in suggestions:
        lines.append(f"→ Fix: {suggestion.fix}")
        if suggestion.check:
            lines.append(f"→ Check: {suggestion.check}")
        if suggestion.command:
            lines.append(f"→ Run: {suggestion.command}")
    return lines


def register_pattern(pattern: re.Pattern[str], build: SuggestionBuilder) -> None:
    """Register an additional pattern, matched after the built-in ones.

    Raises:
        ValueError: If the pattern is already registered or the registry is full.
    """
    for existing, _ in _PATTERNS:
        if existing.pattern == pattern.pattern and existing.flags == pattern.flags:
            raise ValueError(f"Pattern already registered: {pattern.pattern}")
    if len(_PATTERNS) >= MAX_PATTERNS:
        raise ValueError(f"Maximum number of patterns ({MAX_PATTERNS}) reached")
    _PATTERNS.append((pattern, build))
