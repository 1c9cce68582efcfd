"""Per-entity comparators.

Each comparator matches the local (desired) and remote (current) collections
of one configuration section by natural key and emits CREATE, UPDATE and
DELETE results in a deterministic order: local declaration order for creates
and updates, then remote order for deletes.

NATURAL KEYS:
- Slug when the entity type carries one.
- Entity types with an optional slug use it only when every entity on both
  sides has one; otherwise the whole section is keyed by name. Keying both
  sides the same way keeps matching symmetric.
- A duplicate key inside one side is an ``EntityValidationError``.

Fields left unset in the local file are not managed for singleton-style
settings (shop settings, channel settings): they never produce a change.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any, ClassVar

from pydantic import BaseModel

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
    SHOP_SETTINGS,
    TAX_CLASSES,
    WAREHOUSES,
    DiffChange,
    DiffOperation,
    DiffResult,
    EntityValidationError,
    to_plain,
)
from .models import (
    Address,
    AttributeInput,
    MenuItemInput,
    SaleorConfig,
    ShopSettings,
    field_alias,
)
from .remote import plain_text

logger = logging.getLogger(__name__)


def serialize_value(value: Any) -> str:
    """Render a value inside a change description."""
    if value is None or isinstance(value, (bool, dict, list, tuple, BaseModel)):
        return json.dumps(to_plain(value), default=str)
    return str(value)


def field_change(
    field: str,
    current: Any,
    desired: Any,
    description: str | None = None,
) -> DiffChange:
    """Build a change with the default ``field: "old" → "new"`` description."""
    return DiffChange(
        field=field,
        current_value=to_plain(current),
        desired_value=to_plain(desired),
        description=description
        or f'{field}: "{serialize_value(current)}" → "{serialize_value(desired)}"',
    )


def _list_text(values: Iterable[Any]) -> str:
    return "[" + ", ".join(str(v) for v in values) + "]"


# =============================================================================
# Base Comparator
# =============================================================================


class EntityComparator:
    """Compare one list-valued configuration section.

    Subclasses set ``entity_type``, ``section`` and ``key_fields`` and
    implement ``compare_fields``. ``key_fields`` is ``(primary,)`` or
    ``(primary, fallback)``.
    """

    entity_type: ClassVar[str] = ""
    section: ClassVar[str] = ""
    key_fields: ClassVar[tuple[str, ...]] = ("slug",)

    def get_section(self, config: SaleorConfig) -> list[Any]:
        return list(getattr(config, self.section) or [])

    def compare_configs(self, local: SaleorConfig, remote: SaleorConfig) -> list[DiffResult]:
        return self.compare(self.get_section(local), self.get_section(remote))

    def compare(self, local: Sequence[Any], remote: Sequence[Any]) -> list[DiffResult]:
        key_field = self.resolve_key_field([*local, *remote])
        local_by_key = self._index(local, key_field)
        remote_by_key = self._index(remote, key_field)

        results: list[DiffResult] = []
        for key, desired in local_by_key.items():
            current = remote_by_key.get(key)
            if current is None:
                results.append(self.create_result(key, desired))
                continue
            changes = self.compare_fields(desired, current)
            if changes:
                results.append(
                    DiffResult(
                        operation=DiffOperation.UPDATE,
                        entity_type=self.entity_type,
                        entity_name=key,
                        current=current,
                        desired=desired,
                        changes=tuple(changes),
                    )
                )

        for key, current in remote_by_key.items():
            if key not in local_by_key:
                results.append(
                    DiffResult(
                        operation=DiffOperation.DELETE,
                        entity_type=self.entity_type,
                        entity_name=key,
                        current=current,
                    )
                )
        return results

    def create_result(self, key: str, desired: Any) -> DiffResult:
        return DiffResult(
            operation=DiffOperation.CREATE,
            entity_type=self.entity_type,
            entity_name=key,
            desired=desired,
        )

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        raise NotImplementedError

    def resolve_key_field(self, entities: Sequence[Any]) -> str:
        """Pick the key field used for both sides of this comparison."""
        primary = self.key_fields[0]
        if len(self.key_fields) == 1:
            return primary
        if entities and all(getattr(e, primary, None) for e in entities):
            return primary
        return self.key_fields[1]

    def _index(self, entities: Sequence[Any], key_field: str) -> dict[str, Any]:
        indexed: dict[str, Any] = {}
        duplicates: list[str] = []
        for entity in entities:
            key = getattr(entity, key_field, None)
            if not key or not isinstance(key, str):
                raise EntityValidationError(
                    f"{self.entity_type} entity must have a valid {key_field}",
                    entity_type=self.entity_type,
                )
            if key in indexed:
                if key not in duplicates:
                    duplicates.append(key)
                continue
            indexed[key] = entity

        if duplicates:
            raise EntityValidationError(
                f"Duplicate entity identifiers found in {self.entity_type}: "
                f"{', '.join(duplicates)}",
                entity_type=self.entity_type,
            )
        return indexed

    def compare_simple_fields(
        self, local: BaseModel, remote: BaseModel, attrs: Iterable[str]
    ) -> list[DiffChange]:
        """Plain equality over model attributes, reported by YAML name."""
        changes = []
        for attr in attrs:
            desired = getattr(local, attr)
            current = getattr(remote, attr)
            if desired != current:
                changes.append(field_change(field_alias(local, attr), current, desired))
        return changes


# =============================================================================
# Shop
# =============================================================================


class ShopComparator:
    """Singleton comparison of shop settings."""

    entity_type = SHOP_SETTINGS
    section = "shop"

    def compare_configs(self, local: SaleorConfig, remote: SaleorConfig) -> list[DiffResult]:
        return self.compare(local.shop, remote.shop)

    def compare(
        self, local: ShopSettings | None, remote: ShopSettings | None
    ) -> list[DiffResult]:
        if local is None and remote is None:
            return []
        if local is None:
            return [
                DiffResult(
                    operation=DiffOperation.DELETE,
                    entity_type=SHOP_SETTINGS,
                    entity_name=SHOP_SETTINGS,
                    current=remote,
                )
            ]
        if remote is None:
            return [
                DiffResult(
                    operation=DiffOperation.CREATE,
                    entity_type=SHOP_SETTINGS,
                    entity_name=SHOP_SETTINGS,
                    desired=local,
                )
            ]

        changes = []
        for attr in ShopSettings.model_fields:
            desired = getattr(local, attr)
            current = getattr(remote, attr)
            if desired is None or desired == current:
                continue
            name = field_alias(local, attr)
            changes.append(
                field_change(
                    name,
                    current,
                    desired,
                    f'{name} changed from "{serialize_value(current)}" '
                    f'to "{serialize_value(desired)}"',
                )
            )

        if not changes:
            return []
        return [
            DiffResult(
                operation=DiffOperation.UPDATE,
                entity_type=SHOP_SETTINGS,
                entity_name=SHOP_SETTINGS,
                current=remote,
                desired=local,
                changes=tuple(changes),
            )
        ]


# =============================================================================
# Channels, Warehouses, Shipping, Taxes
# =============================================================================


class ChannelComparator(EntityComparator):
    entity_type = CHANNELS
    section = "channels"

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(
            local, remote, ("name", "currency_code", "default_country", "is_active")
        )
        if local.settings is None:
            return changes

        for attr in type(local.settings).model_fields:
            desired = getattr(local.settings, attr)
            current = getattr(remote.settings, attr) if remote.settings else None
            if desired is not None and desired != current:
                name = f"settings.{field_alias(local.settings, attr)}"
                changes.append(field_change(name, current, desired))
        return changes


ADDRESS_FIELDS = tuple(Address.model_fields)


class WarehouseComparator(EntityComparator):
    entity_type = WAREHOUSES
    section = "warehouses"

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(
            local, remote, ("name", "is_private", "click_and_collect_option")
        )

        # Empty string and unset email are equivalent
        if (local.email or None) != (remote.email or None):
            changes.append(field_change("email", remote.email or None, local.email or None))

        changes.extend(self._compare_addresses(local.address, remote.address))

        local_zones = sorted(local.shipping_zones)
        remote_zones = sorted(remote.shipping_zones)
        if local_zones != remote_zones:
            changes.append(
                field_change(
                    "shippingZones",
                    remote_zones,
                    local_zones,
                    f"Shipping zones: {_list_text(remote_zones)} → {_list_text(local_zones)}",
                )
            )
        return changes

    def _compare_addresses(
        self, local: Address | None, remote: Address | None
    ) -> list[DiffChange]:
        if local is None or remote is None:
            if local != remote:
                return [field_change("address", remote, local)]
            return []

        changes = []
        for attr in ADDRESS_FIELDS:
            desired = getattr(local, attr) or ""
            current = getattr(remote, attr) or ""
            # The remote instance upper-cases city names
            differs = (
                desired.lower() != current.lower() if attr == "city" else desired != current
            )
            if differs:
                path = f"address.{field_alias(local, attr)}"
                changes.append(field_change(path, current, desired))
        return changes


class ShippingZoneComparator(EntityComparator):
    entity_type = SHIPPING_ZONES
    section = "shipping_zones"
    key_fields = ("name",)

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(local, remote, ("description", "default"))
        for attr in ("countries", "warehouses", "channels"):
            desired = sorted(getattr(local, attr))
            current = sorted(getattr(remote, attr))
            if desired != current:
                changes.append(field_change(attr, current, desired))

        local_methods = sorted(m.name for m in local.shipping_methods)
        remote_methods = sorted(m.name for m in remote.shipping_methods)
        if local_methods != remote_methods:
            changes.append(
                field_change(
                    "shippingMethods",
                    remote_methods,
                    local_methods,
                    f"Shipping methods: {_list_text(remote_methods)} → "
                    f"{_list_text(local_methods)}",
                )
            )
        return changes


def _format_rate(rate: float) -> str:
    return f"{rate:g}%"


class TaxClassComparator(EntityComparator):
    entity_type = TAX_CLASSES
    section = "tax_classes"
    key_fields = ("name",)

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        local_rates = {r.country_code: r.rate for r in local.country_rates}
        remote_rates = {r.country_code: r.rate for r in remote.country_rates}

        changes = []
        for country, rate in local_rates.items():
            field = f"countryRates.{country}"
            if country not in remote_rates:
                changes.append(
                    field_change(
                        field, None, rate, f"Tax rate for {country} added: {_format_rate(rate)}"
                    )
                )
            elif remote_rates[country] != rate:
                current = remote_rates[country]
                changes.append(
                    field_change(
                        field,
                        current,
                        rate,
                        f"Tax rate for {country}: {_format_rate(current)} → {_format_rate(rate)}",
                    )
                )
        for country, rate in remote_rates.items():
            if country not in local_rates:
                changes.append(
                    field_change(
                        f"countryRates.{country}",
                        rate,
                        None,
                        f"Tax rate for {country} removed (was {_format_rate(rate)})",
                    )
                )
        return changes


# =============================================================================
# Attributes and Types
# =============================================================================


class AttributeComparator(EntityComparator):
    entity_type = ATTRIBUTES
    section = "attributes"
    key_fields = ("slug", "identifier")

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = []
        if local.input_type and local.input_type != remote.input_type:
            changes.append(field_change("inputType", remote.input_type, local.input_type))

        if local.input_type == "REFERENCE" and local.entity_type != remote.entity_type:
            changes.append(field_change("entityType", remote.entity_type, local.entity_type))

        name = local.identifier
        local_values = [v.name for v in local.values]
        remote_values = [v.name for v in remote.values]
        for value in local_values:
            if value not in remote_values:
                changes.append(
                    field_change(
                        "values", None, value, f'Attribute "{name}" value "{value}" added'
                    )
                )
        for value in remote_values:
            if value not in local_values:
                changes.append(
                    field_change(
                        "values", value, None, f'Attribute "{name}" value "{value}" removed'
                    )
                )
        return changes


def _attribute_map(attributes: Sequence[AttributeInput]) -> dict[str, AttributeInput]:
    return {a.identifier: a for a in attributes}


class ProductTypeComparator(EntityComparator):
    entity_type = PRODUCT_TYPES
    section = "product_types"
    key_fields = ("slug", "name")

    def create_result(self, key: str, desired: Any) -> DiffResult:
        changes = [
            field_change("attributes", None, name, f'Attribute "{name}" will be created')
            for attrs in (desired.product_attributes, desired.variant_attributes)
            for name in _attribute_map(attrs)
        ]
        return DiffResult(
            operation=DiffOperation.CREATE,
            entity_type=self.entity_type,
            entity_name=key,
            desired=desired,
            changes=tuple(changes),
        )

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(local, remote, ("is_shipping_required",))
        changes.extend(
            self._compare_attributes(local.product_attributes, remote.product_attributes)
        )
        changes.extend(
            self._compare_attributes(local.variant_attributes, remote.variant_attributes)
        )
        return changes

    def _compare_attributes(
        self, local: Sequence[AttributeInput], remote: Sequence[AttributeInput]
    ) -> list[DiffChange]:
        local_map = _attribute_map(local)
        remote_map = _attribute_map(remote)

        changes = []
        for name, attr in local_map.items():
            remote_attr = remote_map.get(name)
            if remote_attr is None:
                changes.append(field_change("attributes", None, name, f'Attribute "{name}" added'))
                continue
            if attr.variant_selection != remote_attr.variant_selection:
                current = json.dumps(remote_attr.variant_selection)
                desired = json.dumps(attr.variant_selection)
                changes.append(
                    field_change(
                        f"attributes.{name}.variantSelection",
                        remote_attr.variant_selection,
                        attr.variant_selection,
                        f'Attribute "{name}" variantSelection: {current} → {desired}',
                    )
                )
        for name in remote_map:
            if name not in local_map:
                changes.append(
                    field_change("attributes", name, None, f'Attribute "{name}" removed')
                )
        return changes


class PageTypeComparator(EntityComparator):
    entity_type = PAGE_TYPES
    section = "page_types"
    key_fields = ("slug", "name")

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = []
        if local.slug and remote.slug and local.slug != remote.slug:
            changes.append(field_change("slug", remote.slug, local.slug))

        local_names = list(_attribute_map(local.attributes))
        remote_names = list(_attribute_map(remote.attributes))
        for name in local_names:
            if name not in remote_names:
                changes.append(
                    field_change(
                        "attributes",
                        None,
                        name,
                        f'Attribute "{name}" added (in config, not on Saleor)',
                    )
                )
        for name in remote_names:
            if name not in local_names:
                changes.append(
                    field_change(
                        "attributes",
                        name,
                        None,
                        f'Attribute "{name}" removed (on Saleor, not in config)',
                    )
                )
        return changes


def _normalized_values(value: Any) -> list[str] | None:
    if value is None or value == [] or value == "":
        return None
    values = value if isinstance(value, list) else [value]
    return sorted(str(v) for v in values)


def _values_text(values: list[str] | None) -> str:
    if values is None:
        return "not set"
    return values[0] if len(values) == 1 else _list_text(values)


class ModelComparator(EntityComparator):
    """Content models keyed by slug.

    Content is compared as text so an EditorJS document written by a deploy
    matches the plain text it came from. ``publishedAt`` is managed only when
    set in the config.
    """

    entity_type = MODELS
    section = "models"

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(local, remote, ("title", "page_type"))
        if (plain_text(local.content) or None) != (plain_text(remote.content) or None):
            changes.append(
                field_change("content", remote.content, local.content, "Content changed")
            )
        changes.extend(self.compare_simple_fields(local, remote, ("is_published",)))
        if local.published_at is not None and local.published_at != remote.published_at:
            changes.append(field_change("publishedAt", remote.published_at, local.published_at))

        for key in dict.fromkeys([*local.attributes, *remote.attributes]):
            desired = _normalized_values(local.attributes.get(key))
            current = _normalized_values(remote.attributes.get(key))
            if desired != current:
                changes.append(
                    field_change(
                        f"attributes.{key}",
                        current,
                        desired,
                        f'Attribute "{key}": {_values_text(current)} → {_values_text(desired)}',
                    )
                )
        return changes


# =============================================================================
# Catalogue
# =============================================================================


class CategoryComparator(EntityComparator):
    entity_type = CATEGORIES
    section = "categories"
    key_fields = ("slug", "name")

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = []
        if local.slug and remote.slug and local.slug != remote.slug:
            changes.append(field_change("slug", remote.slug, local.slug))
        if local.description is not None and (
            plain_text(local.description) != plain_text(remote.description)
        ):
            changes.append(field_change("description", remote.description, local.description))

        local_subs = [c.name for c in local.subcategories]
        remote_subs = [c.name for c in remote.subcategories]
        for name in local_subs:
            if name not in remote_subs:
                changes.append(
                    field_change(
                        "subcategories",
                        None,
                        name,
                        f'Subcategory "{name}" added (in config, not on Saleor)',
                    )
                )
        for name in remote_subs:
            if name not in local_subs:
                changes.append(
                    field_change(
                        "subcategories",
                        name,
                        None,
                        f'Subcategory "{name}" removed (on Saleor, not in config)',
                    )
                )
        return changes


class ProductComparator(EntityComparator):
    entity_type = PRODUCTS
    section = "products"

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(local, remote, ("name",))
        if plain_text(local.description) != plain_text(remote.description):
            changes.append(field_change("description", remote.description, local.description))
        changes.extend(
            self.compare_simple_fields(local, remote, ("product_type", "category", "tax_class"))
        )

        for key in dict.fromkeys([*local.attributes, *remote.attributes]):
            desired = local.attributes.get(key)
            current = remote.attributes.get(key)
            if desired != current:
                changes.append(
                    field_change(
                        f"attributes.{key}",
                        current,
                        desired,
                        f'Attribute "{key}": {json.dumps(current)} → {json.dumps(desired)}',
                    )
                )

        local_channels = {c.channel: c for c in local.channel_listings}
        remote_channels = {c.channel: c for c in remote.channel_listings}
        for slug in dict.fromkeys([*local_channels, *remote_channels]):
            desired = local_channels.get(slug)
            current = remote_channels.get(slug)
            if current is None:
                changes.append(
                    field_change(
                        f"channels.{slug}", None, desired, f'Channel "{slug}" will be added'
                    )
                )
            elif desired is None:
                changes.append(
                    field_change(
                        f"channels.{slug}", current, None, f'Channel "{slug}" will be removed'
                    )
                )
            elif desired != current:
                changes.append(
                    field_change(
                        f"channels.{slug}", current, desired, f'Channel "{slug}" settings changed'
                    )
                )

        local_variants = {v.sku: v for v in local.variants}
        remote_variants = {v.sku: v for v in remote.variants}
        for sku in dict.fromkeys([*local_variants, *remote_variants]):
            desired = local_variants.get(sku)
            current = remote_variants.get(sku)
            if current is None:
                changes.append(
                    field_change(f"variants.{sku}", None, desired, f'Variant "{sku}" will be added')
                )
            elif desired is None:
                changes.append(
                    field_change(
                        f"variants.{sku}", current, None, f'Variant "{sku}" will be removed'
                    )
                )
            else:
                changes.extend(self._compare_variant(sku, desired, current))
        return changes

    def _compare_variant(self, sku: str, local: Any, remote: Any) -> list[DiffChange]:
        checks = (
            ("name", "name changed"),
            ("weight", "weight changed"),
            ("attributes", "attributes changed"),
            ("channel_listings", "pricing/stock changed"),
        )
        changes = []
        for attr, label in checks:
            desired = getattr(local, attr)
            current = getattr(remote, attr)
            if desired != current:
                changes.append(
                    field_change(
                        f"variants.{sku}.{field_alias(local, attr)}",
                        current,
                        desired,
                        f'Variant "{sku}" {label}',
                    )
                )
        return changes


class CollectionComparator(EntityComparator):
    entity_type = COLLECTIONS
    section = "collections"

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(local, remote, ("name",))
        if (plain_text(local.description) or None) != (plain_text(remote.description) or None):
            changes.append(field_change("description", remote.description, local.description))

        local_products = sorted(local.products)
        remote_products = sorted(remote.products)
        if local_products != remote_products:
            changes.append(
                field_change(
                    "products",
                    remote_products,
                    local_products,
                    f"Products: {_list_text(remote_products)} → {_list_text(local_products)}",
                )
            )

        local_listings = sorted(
            f"{c.channel_slug}({'published' if c.is_published else 'unpublished'})"
            for c in local.channel_listings
        )
        remote_listings = sorted(
            f"{c.channel_slug}({'published' if c.is_published else 'unpublished'})"
            for c in remote.channel_listings
        )
        if local_listings != remote_listings:
            changes.append(
                field_change(
                    "channelListings",
                    remote.channel_listings,
                    local.channel_listings,
                    f"Channel listings: {_list_text(remote_listings)} → "
                    f"{_list_text(local_listings)}",
                )
            )
        return changes


class MenuComparator(EntityComparator):
    entity_type = MENUS
    section = "menus"

    def compare_fields(self, local: Any, remote: Any) -> list[DiffChange]:
        changes = self.compare_simple_fields(local, remote, ("name",))
        changes.extend(self._compare_items(local.items, remote.items, "items"))
        return changes

    def _compare_items(
        self,
        local: Sequence[MenuItemInput],
        remote: Sequence[MenuItemInput],
        path: str,
    ) -> list[DiffChange]:
        local_map = {item.name: item for item in local}
        remote_map = {item.name: item for item in remote}

        changes = []
        for name, item in local_map.items():
            remote_item = remote_map.get(name)
            if remote_item is None:
                changes.append(field_change(path, None, name, f'Menu item "{name}" added'))
            else:
                changes.extend(self._compare_item(item, remote_item, f"{path}/{name}"))
        for name in remote_map:
            if name not in local_map:
                changes.append(field_change(path, name, None, f'Menu item "{name}" removed'))

        local_names = [item.name for item in local]
        remote_names = [item.name for item in remote]
        if local_names != remote_names and sorted(local_names) == sorted(remote_names):
            changes.append(
                field_change(
                    f"{path}.order",
                    remote_names,
                    local_names,
                    f"Menu items reordered: {_list_text(remote_names)} → "
                    f"{_list_text(local_names)}",
                )
            )
        return changes

    def _compare_item(
        self, local: MenuItemInput, remote: MenuItemInput, path: str
    ) -> list[DiffChange]:
        changes = []
        for attr in ("url", "category", "collection", "page"):
            desired = getattr(local, attr) or None
            current = getattr(remote, attr) or None
            if desired != current:
                changes.append(field_change(f"{path}.{attr}", current, desired))
        if local.children or remote.children:
            changes.extend(self._compare_items(local.children, remote.children, f"{path}/children"))
        return changes


# Iteration order of a full comparison
COMPARATORS: tuple[ShopComparator | EntityComparator, ...] = (
    ShopComparator(),
    ChannelComparator(),
    WarehouseComparator(),
    ShippingZoneComparator(),
    TaxClassComparator(),
    AttributeComparator(),
    ProductTypeComparator(),
    PageTypeComparator(),
    ModelComparator(),
    CategoryComparator(),
    ProductComparator(),
    CollectionComparator(),
    MenuComparator(),
)
