"""In-memory attribute metadata for one deployment run.

Populated by the attribute-choice preflight and the attributes stage, read by
later stages to resolve attribute references by name without extra queries.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class AttributeSection(str, Enum):
    """Section an attribute belongs to."""

    PRODUCT = "product"
    CONTENT = "content"


@dataclass(frozen=True)
class CachedAttribute:
    """Minimal attribute metadata needed for reference resolution."""

    id: str
    name: str
    slug: str
    input_type: str


@dataclass(frozen=True)
class WrongSectionResult:
    """Where an attribute was found when looked up in the wrong section."""

    found: bool
    actual_section: AttributeSection | None = None
    attribute: CachedAttribute | None = None


@dataclass(frozen=True)
class CacheStats:
    product_attribute_count: int
    content_attribute_count: int

    @property
    def total_count(self) -> int:
        return self.product_attribute_count + self.content_attribute_count


class AttributeCache:
    """Attributes keyed by name, split into product and content sections.

    Populating an existing name replaces the entry (last write wins).
    """

    def __init__(self) -> None:
        self._product: dict[str, CachedAttribute] = {}
        self._content: dict[str, CachedAttribute] = {}

    def populate_product_attributes(self, attributes: Iterable[CachedAttribute]) -> None:
        for attr in attributes:
            self._product[attr.name] = attr

    def populate_content_attributes(self, attributes: Iterable[CachedAttribute]) -> None:
        for attr in attributes:
            self._content[attr.name] = attr

    def get_product_attribute(self, name: str) -> CachedAttribute | None:
        return self._product.get(name)

    def get_content_attribute(self, name: str) -> CachedAttribute | None:
        return self._content.get(name)

    def has_product_attribute(self, name: str) -> bool:
        return name in self._product

    def has_content_attribute(self, name: str) -> bool:
        return name in self._content

    def find_attribute_in_wrong_section(
        self, name: str, expected_section: AttributeSection | str
    ) -> WrongSectionResult:
        """Look for ``name`` in the section opposite to ``expected_section``.

        Used to explain a failed lookup, e.g. a product type referencing an
        attribute that only exists as a content attribute.
        """
        expected = AttributeSection(expected_section)
        if expected == AttributeSection.PRODUCT:
            attr = self._content.get(name)
            other = AttributeSection.CONTENT
        else:
            attr = self._product.get(name)
            other = AttributeSection.PRODUCT

        if attr is None:
            return WrongSectionResult(found=False)
        return WrongSectionResult(found=True, actual_section=other, attribute=attr)

    def get_stats(self) -> CacheStats:
        return CacheStats(
            product_attribute_count=len(self._product),
            content_attribute_count=len(self._content),
        )

    def clear(self) -> None:
        self._product.clear()
        self._content.clear()

    def product_attribute_names(self) -> list[str]:
        return list(self._product)

    def content_attribute_names(self) -> list[str]:
        return list(self._content)
