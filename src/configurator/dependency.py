"""Entity dependency table and the stage skip rule.

A deployment stage for entity type X can be skipped only when the diff holds
no changes for X and none for any entity type that (transitively) depends on
X. Products reference categories, product types, channels and tax classes, so
a diff with only product changes still runs those stages: the bootstrap
services resolve references by creating or updating what they need.

DESIGN PHILOSOPHY:
- Edges are declared data (``ENTITY_DEPENDENCIES``), not per-stage checks
- One shared predicate (``should_skip``) is used by every stage
- ``validate_stage_order`` checks the table against the stage list at build
  time: no cycles, dependencies run first
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from functools import cache

from .diff import (
    ATTRIBUTES,
    CATEGORIES,
    CHANNELS,
    COLLECTIONS,
    MENUS,
    MODELS,
    PAGE_TYPES,
    PRODUCT_TYPES,
    PRODUCTS,
    SHIPPING_ZONES,
    TAX_CLASSES,
    WAREHOUSES,
    DiffSummary,
)

logger = logging.getLogger(__name__)


class DependencyError(Exception):
    """Raised when the stage list violates the dependency table."""

    pass


class CyclicDependencyError(DependencyError):
    """Raised when a dependency cycle is detected."""

    pass


# Dependent entity type -> entity types it references
ENTITY_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    PRODUCTS: (PRODUCT_TYPES, CATEGORIES, CHANNELS, TAX_CLASSES),
    PRODUCT_TYPES: (ATTRIBUTES,),
    PAGE_TYPES: (ATTRIBUTES,),
    MODELS: (PAGE_TYPES, ATTRIBUTES),
    SHIPPING_ZONES: (WAREHOUSES, CHANNELS),
    COLLECTIONS: (PRODUCTS, CHANNELS),
    MENUS: (CATEGORIES, COLLECTIONS, MODELS),
}


def validate_dependencies(table: dict[str, tuple[str, ...]] = ENTITY_DEPENDENCIES) -> None:
    """Check the table for cycles.

    Raises:
        CyclicDependencyError: If a cycle is detected.
    """
    nodes = set(table)
    for deps in table.values():
        nodes.update(deps)

    # Kahn's algorithm: in-degree counts how many types depend on a node
    in_degree: dict[str, int] = {node: 0 for node in nodes}
    for deps in table.values():
        for dep in deps:
            in_degree[dep] += 1

    queue = sorted(node for node, degree in in_degree.items() if degree == 0)
    processed = 0
    while queue:
        current = queue.pop(0)
        processed += 1
        for dep in table.get(current, ()):
            in_degree[dep] -= 1
            if in_degree[dep] == 0:
                queue.append(dep)

    if processed != len(nodes):
        cycle_nodes = sorted(node for node, degree in in_degree.items() if degree > 0)
        raise CyclicDependencyError(f"Circular dependency detected involving: {cycle_nodes}")


@cache
def dependents_of(entity_type: str) -> frozenset[str]:
    """Every entity type that depends on ``entity_type``, directly or not."""
    found: set[str] = set()
    frontier = [entity_type]
    while frontier:
        current = frontier.pop()
        for dependent, deps in ENTITY_DEPENDENCIES.items():
            if current in deps and dependent not in found:
                found.add(dependent)
                frontier.append(dependent)
    return frozenset(found)


def should_skip(entity_type: str, summary: DiffSummary) -> bool:
    """True when neither ``entity_type`` nor any dependent has changes."""
    present = summary.entity_types()
    if entity_type in present:
        return False
    return not (dependents_of(entity_type) & present)


def validate_stage_order(entity_types: Iterable[str | None]) -> None:
    """Check that every entity type runs after the types it depends on.

    Args:
        entity_types: Entity type of each stage in execution order; ``None``
            for stages not bound to an entity type.

    Raises:
        CyclicDependencyError: If the dependency table has a cycle.
        DependencyError: If a dependency is scheduled after its dependent.
    """
    validate_dependencies()

    order: Sequence[str] = [t for t in entity_types if t is not None]
    position = {entity_type: i for i, entity_type in enumerate(order)}
    violations = [
        f"{entity_type} runs before {dep}"
        for entity_type in order
        for dep in ENTITY_DEPENDENCIES.get(entity_type, ())
        if dep in position and position[dep] > position[entity_type]
    ]
    if violations:
        raise DependencyError(f"Stage order violates dependencies: {'; '.join(violations)}")
