"""Diff result types, diff errors and diff rendering.

A comparison produces one ``DiffResult`` per entity that differs between the
local configuration (desired state) and the remote instance (current state).
Results are collected into a ``DiffSummary`` whose counters always agree with
its result list.

DESIGN:
- ``current`` is what the remote instance has, ``desired`` is what the local
  file declares. CREATE means "only desired", DELETE means "only current".
- Results are immutable values; building them through ``DiffResult`` enforces
  the per-operation shape so malformed results never reach the pipeline.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

# =============================================================================
# Entity Types
# =============================================================================

SHOP_SETTINGS = "Shop Settings"
CHANNELS = "Channels"
WAREHOUSES = "Warehouses"
SHIPPING_ZONES = "Shipping Zones"
TAX_CLASSES = "TaxClasses"
ATTRIBUTES = "Attributes"
PRODUCT_TYPES = "Product Types"
PAGE_TYPES = "Page Types"
MODELS = "Models"
CATEGORIES = "Categories"
PRODUCTS = "Products"
COLLECTIONS = "Collections"
MENUS = "Menus"

# Configuration section (YAML key) -> entity type display name
SECTION_ENTITY_TYPES: dict[str, str] = {
    "shop": SHOP_SETTINGS,
    "channels": CHANNELS,
    "warehouses": WAREHOUSES,
    "shippingZones": SHIPPING_ZONES,
    "taxClasses": TAX_CLASSES,
    "attributes": ATTRIBUTES,
    "productTypes": PRODUCT_TYPES,
    "pageTypes": PAGE_TYPES,
    "models": MODELS,
    "categories": CATEGORIES,
    "products": PRODUCTS,
    "collections": COLLECTIONS,
    "menus": MENUS,
}

ENTITY_TYPES: tuple[str, ...] = tuple(SECTION_ENTITY_TYPES.values())


# =============================================================================
# Errors
# =============================================================================


class DiffError(Exception):
    """Base class for diff engine failures."""

    pass


class ConfigurationLoadError(DiffError):
    """The local configuration could not be loaded."""

    pass


class RemoteConfigurationError(DiffError):
    """The remote configuration could not be retrieved.

    Attributes:
        timed_out: True when retrieval exceeded the configured timeout.
    """

    def __init__(self, message: str, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class DiffComparisonError(DiffError):
    """A comparator failed for one configuration section."""

    def __init__(self, message: str, entity_type: str | None = None) -> None:
        super().__init__(message)
        self.entity_type = entity_type


class EntityValidationError(DiffError):
    """An entity collection is malformed (duplicate or missing identifiers)."""

    def __init__(self, message: str, entity_type: str | None = None) -> None:
        super().__init__(message)
        self.entity_type = entity_type


# =============================================================================
# Result Types
# =============================================================================


class DiffOperation(str, Enum):
    """Operation needed to move the remote instance to the desired state."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class DiffChange:
    """One field-level difference inside an UPDATE (or descriptive CREATE)."""

    field: str
    current_value: Any = None
    desired_value: Any = None
    description: str | None = None

    def render(self) -> str:
        """Human-readable line; the description when set."""
        if self.description:
            return self.description
        return (
            f"{self.field}: {format_value(self.current_value)} → "
            f"{format_value(self.desired_value)}"
        )


@dataclass(frozen=True)
class DiffResult:
    """Difference of one entity.

    Raises:
        ValueError: If the shape does not match the operation.
    """

    operation: DiffOperation
    entity_type: str
    entity_name: str
    current: Any = None
    desired: Any = None
    changes: tuple[DiffChange, ...] = ()

    def __post_init__(self) -> None:
        match self.operation:
            case DiffOperation.CREATE:
                if self.desired is None or self.current is not None:
                    raise ValueError(f"CREATE of {self.entity_name} needs desired and no current")
            case DiffOperation.DELETE:
                if self.current is None or self.desired is not None:
                    raise ValueError(f"DELETE of {self.entity_name} needs current and no desired")
                if self.changes:
                    raise ValueError(f"DELETE of {self.entity_name} cannot carry changes")
            case DiffOperation.UPDATE:
                if self.current is None or self.desired is None:
                    raise ValueError(f"UPDATE of {self.entity_name} needs current and desired")
                if not self.changes:
                    raise ValueError(f"UPDATE of {self.entity_name} needs at least one change")


@dataclass(frozen=True)
class DiffSummary:
    """Aggregated comparison result.

    Build through ``from_results`` so the counters always match the results.
    """

    total_changes: int = 0
    creates: int = 0
    updates: int = 0
    deletes: int = 0
    results: tuple[DiffResult, ...] = field(default_factory=tuple)

    @classmethod
    def from_results(cls, results: Iterable[DiffResult]) -> DiffSummary:
        items = tuple(results)
        creates = sum(1 for r in items if r.operation == DiffOperation.CREATE)
        updates = sum(1 for r in items if r.operation == DiffOperation.UPDATE)
        deletes = sum(1 for r in items if r.operation == DiffOperation.DELETE)
        return cls(
            total_changes=len(items),
            creates=creates,
            updates=updates,
            deletes=deletes,
            results=items,
        )

    @property
    def has_changes(self) -> bool:
        return self.total_changes > 0

    def entity_types(self) -> set[str]:
        return {r.entity_type for r in self.results}

    def results_for(self, entity_type: str) -> list[DiffResult]:
        return [r for r in self.results if r.entity_type == entity_type]

    def count_for(self, entity_type: str, operation: DiffOperation) -> int:
        return sum(
            1 for r in self.results if r.entity_type == entity_type and r.operation == operation
        )


# =============================================================================
# Helpers
# =============================================================================


def to_plain(value: Any) -> Any:
    """Convert models and nested containers into JSON-compatible values."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True, mode="json")
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


def format_value(value: Any) -> str:
    """Quote scalars, JSON-encode containers and ``None``."""
    if value is None or isinstance(value, (dict, list, tuple, BaseModel)):
        return json.dumps(to_plain(value), default=str)
    return f'"{value}"'


def filter_summary(
    summary: DiffSummary,
    include: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
) -> DiffSummary:
    """Restrict a summary to selected configuration sections.

    Args:
        summary: Full comparison result.
        include: Section names (e.g. ``productTypes``) to keep; all when empty.
        exclude: Section names to drop.

    Raises:
        ValueError: If a section name is unknown.
    """
    include = list(include or [])
    exclude = list(exclude or [])
    unknown = [s for s in include + exclude if s not in SECTION_ENTITY_TYPES]
    if unknown:
        raise ValueError(
            f"Unknown configuration section(s): {', '.join(unknown)}. "
            f"Valid sections: {', '.join(SECTION_ENTITY_TYPES)}"
        )

    allowed = {SECTION_ENTITY_TYPES[s] for s in include} if include else set(ENTITY_TYPES)
    allowed -= {SECTION_ENTITY_TYPES[s] for s in exclude}
    return DiffSummary.from_results(r for r in summary.results if r.entity_type in allowed)


# =============================================================================
# Rendering
# =============================================================================

OPERATION_ICONS = {
    DiffOperation.CREATE: "➕",
    DiffOperation.UPDATE: "🔄",
    DiffOperation.DELETE: "➖",
}

OPERATION_LABELS = {
    DiffOperation.CREATE: "Create",
    DiffOperation.UPDATE: "Update",
    DiffOperation.DELETE: "Delete",
}

NO_CHANGES_MESSAGE = "No differences found. Local configuration matches Saleor instance."


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def group_by_entity_type(results: Iterable[DiffResult]) -> dict[str, list[DiffResult]]:
    """Group results by entity type, keeping first-seen order."""
    grouped: dict[str, list[DiffResult]] = {}
    for result in results:
        grouped.setdefault(result.entity_type, []).append(result)
    return grouped


def format_diff_summary(summary: DiffSummary) -> str:
    """Render a summary as grouped, human-readable text."""
    if not summary.has_changes:
        return f"✅ {NO_CHANGES_MESSAGE}"

    lines = [
        "📊 Configuration Diff Results",
        "═" * 50,
        "",
        "The following changes would be applied to reconcile Saleor with your "
        "local configuration:",
        "",
    ]

    for entity_type, results in group_by_entity_type(summary.results).items():
        lines.append(entity_type)
        lines.append("─" * (len(entity_type) + 2))
        for result in results:
            icon = OPERATION_ICONS[result.operation]
            label = OPERATION_LABELS[result.operation]
            lines.append(f'  {icon} {label}: "{result.entity_name}"')
            for change in result.changes:
                lines.append(f"    │ {change.render()}")
            if result.operation == DiffOperation.DELETE:
                lines.append(
                    f"    │ The {entity_type.lower()} exists on Saleor but is missing "
                    "from the local configuration."
                )
            lines.append("")

    lines.append("📈 Summary")
    lines.append("─" * 10)
    lines.append(f"Total Changes: {summary.total_changes}")
    if summary.creates:
        lines.append(f"  • {_plural(summary.creates, 'item')} to create")
    if summary.updates:
        lines.append(f"  • {_plural(summary.updates, 'item')} to update")
    if summary.deletes:
        lines.append(f"  • {_plural(summary.deletes, 'item')} to delete")

    return "\n".join(lines)


def diff_summary_to_dict(
    summary: DiffSummary,
    saleor_url: str | None = None,
    config_file: str | None = None,
) -> dict[str, Any]:
    """JSON-serialisable document of a summary (for ``--format json``)."""
    changes = [
        {
            "operation": r.operation.value,
            "entityType": r.entity_type,
            "entityName": r.entity_name,
            "changes": [
                {
                    "field": c.field,
                    "currentValue": to_plain(c.current_value),
                    "desiredValue": to_plain(c.desired_value),
                    "description": c.render(),
                }
                for c in r.changes
            ],
        }
        for r in summary.results
    ]

    by_entity_type: dict[str, dict[str, int]] = {}
    for entity_type, results in group_by_entity_type(summary.results).items():
        by_entity_type[entity_type] = {
            "creates": sum(1 for r in results if r.operation == DiffOperation.CREATE),
            "updates": sum(1 for r in results if r.operation == DiffOperation.UPDATE),
            "deletes": sum(1 for r in results if r.operation == DiffOperation.DELETE),
        }

    return {
        "version": "1.0",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "saleorUrl": saleor_url,
        "configFile": config_file,
        "summary": {
            "totalChanges": summary.total_changes,
            "creates": summary.creates,
            "updates": summary.updates,
            "deletes": summary.deletes,
            "hasDeletions": summary.deletes > 0,
        },
        "byEntityType": by_entity_type,
        "changes": changes,
    }
