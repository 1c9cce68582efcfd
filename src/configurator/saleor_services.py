"""GraphQL-backed bootstrap services.

Every bootstrap call is create-or-update by natural key (slug, or name where
an entity has no slug), so re-running a deployment converges instead of
duplicating entities. Lookup indexes are shared between services and
invalidated after writes, so a later stage sees entities created by an
earlier one.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

from . import queries
from .attribute_cache import AttributeCache
from .models import (
    AttributeInput,
    AttributeValue,
    CategoryInput,
    ChannelInput,
    ChannelSettings,
    CollectionInput,
    MenuInput,
    MenuItemInput,
    ModelInput,
    PageTypeInput,
    ProductInput,
    ProductTypeInput,
    ProductVariantInput,
    ShippingZoneInput,
    ShopSettings,
    TaxClassInput,
    WarehouseInput,
)
from .remote import nodes
from .services import RemoteAttribute
from .transport import GraphQLClient, GraphQLError

logger = logging.getLogger(__name__)


class MutationError(GraphQLError):
    """A mutation returned a non-empty ``errors`` list."""

    pass


def rich_text(text: str | None) -> str | None:
    """Description as Saleor's EditorJS JSON string.

    Values that already are EditorJS documents pass through unchanged.
    """
    if text is None:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and "blocks" in parsed:
        return text
    return json.dumps({"blocks": [{"type": "paragraph", "data": {"text": text}}]})


async def mutate(
    client: GraphQLClient,
    document: str,
    variables: dict[str, Any],
    payload_key: str,
) -> dict[str, Any]:
    """Run a mutation and raise when its payload reports errors."""
    data = await client.execute(document, variables)
    payload = data.get(payload_key) or {}
    errors = payload.get("errors") or []
    if errors:
        details = "; ".join(
            f"{e.get('field')}: {e.get('message')}" if e.get("field") else str(e.get("message"))
            for e in errors
        )
        raise MutationError(f"{payload_key} failed: {details}", errors)
    return payload


class LookupIndex:
    """Lazily loaded ``key -> node`` map for one entity type.

    Args:
        client: GraphQL client.
        query: Lookup query.
        root: Field of the response holding the entities.
        key: Node field used as the key.
        connection: Whether ``root`` is a Relay connection.
    """

    def __init__(
        self,
        client: GraphQLClient,
        query: str,
        root: str,
        key: str,
        connection: bool = True,
    ) -> None:
        self._client = client
        self._query = query
        self._root = root
        self._key = key
        self._connection = connection
        self._items: dict[str, dict[str, Any]] | None = None
        self._lock = asyncio.Lock()

    async def all(self) -> dict[str, dict[str, Any]]:
        async with self._lock:
            if self._items is None:
                data = await self._client.execute(self._query)
                raw = data.get(self._root)
                items = nodes(raw) if self._connection else list(raw or [])
                self._items = {item[self._key]: item for item in items if item.get(self._key)}
            return self._items

    async def get(self, key: str) -> dict[str, Any] | None:
        return (await self.all()).get(key)

    async def id_of(self, key: str, label: str) -> str:
        """Id of ``key``; raises ``LookupError`` naming ``label`` when missing."""
        item = await self.get(key)
        if item is None:
            raise LookupError(f"{label} not found: {key}")
        return item["id"]

    def invalidate(self) -> None:
        self._items = None


class Catalog:
    """Lookup indexes shared by all services of one run."""

    def __init__(self, client: GraphQLClient) -> None:
        self.channels = LookupIndex(
            client, queries.CHANNELS_QUERY, "channels", "slug", connection=False
        )
        self.warehouses = LookupIndex(client, queries.WAREHOUSES_QUERY, "warehouses", "name")
        self.shipping_zones = LookupIndex(
            client, queries.SHIPPING_ZONES_QUERY, "shippingZones", "name"
        )
        self.tax_classes = LookupIndex(client, queries.TAX_CLASSES_QUERY, "taxClasses", "name")
        self.attributes = LookupIndex(client, queries.ATTRIBUTES_QUERY, "attributes", "name")
        self.product_types = LookupIndex(
            client, queries.PRODUCT_TYPES_QUERY, "productTypes", "name"
        )
        self.page_types = LookupIndex(client, queries.PAGE_TYPES_QUERY, "pageTypes", "name")
        self.categories = LookupIndex(client, queries.CATEGORIES_QUERY, "categories", "slug")
        self.collections = LookupIndex(client, queries.COLLECTIONS_QUERY, "collections", "slug")
        self.pages = LookupIndex(client, queries.PAGES_QUERY, "pages", "slug")
        self.menus = LookupIndex(client, queries.MENUS_QUERY, "menus", "slug")


class _Service:
    def __init__(self, client: GraphQLClient, catalog: Catalog) -> None:
        self._client = client
        self._catalog = catalog

    async def _mutate(
        self, document: str, variables: dict[str, Any], payload_key: str
    ) -> dict[str, Any]:
        return await mutate(self._client, document, variables, payload_key)


# =============================================================================
# Shop, Channels, Warehouses, Shipping, Taxes
# =============================================================================


class ShopSettingsService(_Service):
    async def update_settings(self, shop: ShopSettings) -> None:
        values = shop.model_dump(by_alias=True, exclude_none=True)
        if not values:
            logger.debug("No shop settings to update")
            return
        await self._mutate(queries.SHOP_SETTINGS_UPDATE, {"input": values}, "shopSettingsUpdate")


_STOCK_SETTINGS = ("allocationStrategy",)
_CHECKOUT_SETTINGS = ("useLegacyErrorFlow", "automaticallyCompleteFullyPaidCheckouts")
_PAYMENT_SETTINGS = ("defaultTransactionFlowStrategy",)


def channel_settings_input(settings: ChannelSettings | None) -> dict[str, Any]:
    """Split flat channel settings into Saleor's settings groups."""
    if settings is None:
        return {}
    values = settings.model_dump(by_alias=True, exclude_none=True)
    groups: dict[str, dict[str, Any]] = {}
    for key, value in values.items():
        if key in _STOCK_SETTINGS:
            groups.setdefault("stockSettings", {})[key] = value
        elif key in _CHECKOUT_SETTINGS:
            groups.setdefault("checkoutSettings", {})[key] = value
        elif key in _PAYMENT_SETTINGS:
            groups.setdefault("paymentSettings", {})[key] = value
        else:
            groups.setdefault("orderSettings", {})[key] = value
    return groups


class ChannelService(_Service):
    async def bootstrap_channels(self, channels: Sequence[ChannelInput]) -> None:
        index = self._catalog.channels
        for channel in channels:
            base = {
                "name": channel.name,
                "slug": channel.slug,
                "defaultCountry": channel.default_country,
                "isActive": channel.is_active,
                **channel_settings_input(channel.settings),
            }
            existing = await index.get(channel.slug)
            if existing is None:
                await self._mutate(
                    queries.CHANNEL_CREATE,
                    {"input": {**base, "currencyCode": channel.currency_code}},
                    "channelCreate",
                )
                logger.info("Created channel", extra={"slug": channel.slug})
            else:
                await self._mutate(
                    queries.CHANNEL_UPDATE, {"id": existing["id"], "input": base}, "channelUpdate"
                )
                logger.info("Updated channel", extra={"slug": channel.slug})
        index.invalidate()


class WarehouseService(_Service):
    async def bootstrap_warehouses(self, warehouses: Sequence[WarehouseInput]) -> None:
        index = self._catalog.warehouses
        for warehouse in warehouses:
            values: dict[str, Any] = {
                "name": warehouse.name,
                "slug": warehouse.slug,
                "email": warehouse.email or "",
            }
            if warehouse.address is not None:
                values["address"] = warehouse.address.model_dump(by_alias=True)
            existing = await index.get(warehouse.name)
            if existing is None:
                await self._mutate(queries.WAREHOUSE_CREATE, {"input": values}, "createWarehouse")
                logger.info("Created warehouse", extra={"slug": warehouse.slug})
            else:
                values["isPrivate"] = warehouse.is_private
                values["clickAndCollectOption"] = warehouse.click_and_collect_option
                await self._mutate(
                    queries.WAREHOUSE_UPDATE,
                    {"id": existing["id"], "input": values},
                    "updateWarehouse",
                )
                logger.info("Updated warehouse", extra={"slug": warehouse.slug})
        index.invalidate()


class ShippingZoneService(_Service):
    async def bootstrap_shipping_zones(self, zones: Sequence[ShippingZoneInput]) -> None:
        index = self._catalog.shipping_zones
        for zone in zones:
            warehouse_ids = [
                await self._catalog.warehouses.id_of(name, "Warehouse") for name in zone.warehouses
            ]
            channel_ids = [
                await self._catalog.channels.id_of(slug, "Channel") for slug in zone.channels
            ]
            values = {
                "name": zone.name,
                "description": zone.description or "",
                "default": zone.default,
                "countries": zone.countries,
                "addWarehouses": warehouse_ids,
                "addChannels": channel_ids,
            }
            existing = await index.get(zone.name)
            if existing is None:
                await self._mutate(
                    queries.SHIPPING_ZONE_CREATE, {"input": values}, "shippingZoneCreate"
                )
                logger.info("Created shipping zone", extra={"zone": zone.name})
            else:
                await self._mutate(
                    queries.SHIPPING_ZONE_UPDATE,
                    {"id": existing["id"], "input": values},
                    "shippingZoneUpdate",
                )
                logger.info("Updated shipping zone", extra={"zone": zone.name})
        index.invalidate()


class TaxClassService(_Service):
    async def bootstrap_tax_classes(self, tax_classes: Sequence[TaxClassInput]) -> None:
        index = self._catalog.tax_classes
        for tax_class in tax_classes:
            rates = [
                {"countryCode": r.country_code, "rate": r.rate} for r in tax_class.country_rates
            ]
            existing = await index.get(tax_class.name)
            if existing is None:
                await self._mutate(
                    queries.TAX_CLASS_CREATE,
                    {"input": {"name": tax_class.name, "createCountryRates": rates}},
                    "taxClassCreate",
                )
                logger.info("Created tax class", extra={"tax_class": tax_class.name})
            else:
                await self._mutate(
                    queries.TAX_CLASS_UPDATE,
                    {
                        "id": existing["id"],
                        "input": {"name": tax_class.name, "updateCountryRates": rates},
                    },
                    "taxClassUpdate",
                )
                logger.info("Updated tax class", extra={"tax_class": tax_class.name})
        index.invalidate()


# =============================================================================
# Attributes and Types
# =============================================================================


class AttributeService(_Service):
    async def get_attributes_by_names(self, names: Sequence[str]) -> list[RemoteAttribute]:
        if not names:
            return []
        data = await self._client.execute(queries.ATTRIBUTES_BY_NAMES_QUERY, {"names": list(names)})
        return [
            RemoteAttribute(
                id=node["id"],
                name=node["name"],
                input_type=node.get("inputType"),
                slug=node.get("slug"),
                choices=tuple(c["name"] for c in nodes(node.get("choices"))),
            )
            for node in nodes(data.get("attributes"))
        ]

    async def update_attribute(self, attribute_id: str, add_values: Sequence[str]) -> None:
        await self._mutate(
            queries.ATTRIBUTE_UPDATE,
            {"id": attribute_id, "input": {"addValues": [{"name": v} for v in add_values]}},
            "attributeUpdate",
        )

    async def bootstrap_attributes(self, attributes: Sequence[AttributeInput]) -> None:
        # Reference entries point at attributes declared elsewhere
        declared = [a for a in attributes if a.name and a.input_type]
        found = await self.get_attributes_by_names([a.name for a in declared if a.name])
        existing = {a.name: a for a in found}

        for attribute in declared:
            values = [v.name for v in attribute.values]
            current = existing.get(attribute.identifier)
            if current is None:
                payload: dict[str, Any] = {
                    "name": attribute.name,
                    "inputType": attribute.input_type,
                    "type": attribute.type or "PRODUCT_TYPE",
                    "values": [{"name": v} for v in values],
                }
                if attribute.slug:
                    payload["slug"] = attribute.slug
                if attribute.entity_type:
                    payload["entityType"] = attribute.entity_type
                await self._mutate(queries.ATTRIBUTE_CREATE, {"input": payload}, "attributeCreate")
                logger.info("Created attribute", extra={"attribute": attribute.name})
                continue

            missing = [v for v in values if v not in current.choices]
            if missing:
                await self.update_attribute(current.id, missing)
                logger.info(
                    "Added attribute values",
                    extra={"attribute": attribute.name, "values": missing},
                )
        self._catalog.attributes.invalidate()

    async def resolve_ids(self, attributes: Sequence[AttributeInput]) -> list[str]:
        return [
            await self._catalog.attributes.id_of(a.identifier, "Attribute") for a in attributes
        ]


class ProductTypeService(_Service):
    def __init__(
        self, client: GraphQLClient, catalog: Catalog, attributes: AttributeService
    ) -> None:
        super().__init__(client, catalog)
        self._attributes = attributes

    async def bootstrap_product_type(self, product_type: ProductTypeInput) -> None:
        values: dict[str, Any] = {
            "name": product_type.name,
            "isShippingRequired": product_type.is_shipping_required,
            "kind": "NORMAL",
        }
        if product_type.slug:
            values["slug"] = product_type.slug

        existing = await self._catalog.product_types.get(product_type.name)
        if existing is None:
            payload = await self._mutate(
                queries.PRODUCT_TYPE_CREATE, {"input": values}, "productTypeCreate"
            )
            type_id = payload["productType"]["id"]
            assigned: set[str] = set()
            logger.info("Created product type", extra={"product_type": product_type.name})
        else:
            await self._mutate(
                queries.PRODUCT_TYPE_UPDATE,
                {"id": existing["id"], "input": values},
                "productTypeUpdate",
            )
            type_id = existing["id"]
            assigned = {a["id"] for a in existing.get("productAttributes") or []}
            assigned |= {
                a["attribute"]["id"] for a in existing.get("assignedVariantAttributes") or []
            }

        product_ids = await self._attributes.resolve_ids(product_type.product_attributes)
        variant_ids = await self._attributes.resolve_ids(product_type.variant_attributes)
        operations = [{"id": i, "type": "PRODUCT"} for i in product_ids if i not in assigned]
        operations += [
            {"id": i, "type": "VARIANT", "variantSelection": a.variant_selection}
            for i, a in zip(variant_ids, product_type.variant_attributes, strict=True)
            if i not in assigned
        ]
        if operations:
            await self._mutate(
                queries.PRODUCT_ATTRIBUTE_ASSIGN,
                {"productTypeId": type_id, "operations": operations},
                "productAttributeAssign",
            )
        self._catalog.product_types.invalidate()


class PageTypeService(_Service):
    def __init__(
        self, client: GraphQLClient, catalog: Catalog, attributes: AttributeService
    ) -> None:
        super().__init__(client, catalog)
        self._attributes = attributes

    async def bootstrap_page_type(self, page_type: PageTypeInput) -> None:
        attribute_ids = await self._attributes.resolve_ids(page_type.attributes)
        existing = await self._catalog.page_types.get(page_type.name)
        values: dict[str, Any] = {"name": page_type.name}
        if page_type.slug:
            values["slug"] = page_type.slug

        if existing is None:
            values["addAttributes"] = attribute_ids
            await self._mutate(queries.PAGE_TYPE_CREATE, {"input": values}, "pageTypeCreate")
            logger.info("Created page type", extra={"page_type": page_type.name})
        else:
            assigned = {a["id"] for a in existing.get("attributes") or []}
            values["addAttributes"] = [i for i in attribute_ids if i not in assigned]
            await self._mutate(
                queries.PAGE_TYPE_UPDATE, {"id": existing["id"], "input": values}, "pageTypeUpdate"
            )
        self._catalog.page_types.invalidate()


class ModelService(_Service):
    """Content models, stored as Saleor pages keyed by slug."""

    async def _attributes_input(
        self, attributes: dict[str, AttributeValue]
    ) -> list[dict[str, Any]]:
        result = []
        for name, value in attributes.items():
            attribute = await self._catalog.attributes.get(name)
            if attribute is None:
                raise LookupError(f"Attribute not found: {name}")
            result.append(
                attribute_value_input(attribute["id"], attribute.get("inputType") or "", value)
            )
        return result

    async def bootstrap_model(self, model: ModelInput) -> str:
        """Create or update one model.

        Returns:
            The page id.
        """
        page_type_id = await self._catalog.page_types.id_of(model.page_type, "PageType")
        values: dict[str, Any] = {
            "title": model.title,
            "slug": model.slug,
            "isPublished": model.is_published,
            "attributes": await self._attributes_input(model.attributes),
        }
        if model.content is not None:
            values["content"] = rich_text(model.content)
        if model.published_at is not None:
            values["publishedAt"] = model.published_at

        existing = await self._catalog.pages.get(model.slug)
        if existing is None:
            values["pageType"] = page_type_id
            payload = await self._mutate(queries.PAGE_CREATE, {"input": values}, "pageCreate")
            page_id = payload["page"]["id"]
            logger.info("Created model", extra={"model": model.slug})
        else:
            await self._mutate(
                queries.PAGE_UPDATE, {"id": existing["id"], "input": values}, "pageUpdate"
            )
            page_id = existing["id"]
            logger.info("Updated model", extra={"model": model.slug})
        self._catalog.pages.invalidate()
        return page_id


# =============================================================================
# Catalogue
# =============================================================================


class CategoryService(_Service):
    async def bootstrap_categories(self, categories: Sequence[CategoryInput]) -> None:
        for category in categories:
            await self._bootstrap(category, parent_id=None)
        self._catalog.categories.invalidate()

    async def _bootstrap(self, category: CategoryInput, parent_id: str | None) -> None:
        values: dict[str, Any] = {"name": category.name}
        if category.slug:
            values["slug"] = category.slug
        if category.description is not None:
            values["description"] = rich_text(category.description)

        existing = await self._catalog.categories.get(category.slug) if category.slug else None
        if existing is None:
            payload = await self._mutate(
                queries.CATEGORY_CREATE, {"parent": parent_id, "input": values}, "categoryCreate"
            )
            category_id = payload["category"]["id"]
            logger.info("Created category", extra={"category": category.name})
        else:
            await self._mutate(
                queries.CATEGORY_UPDATE, {"id": existing["id"], "input": values}, "categoryUpdate"
            )
            category_id = existing["id"]

        for child in category.subcategories:
            await self._bootstrap(child, category_id)


def attribute_value_input(
    attribute_id: str, input_type: str, value: AttributeValue
) -> dict[str, Any]:
    """Saleor ``AttributeValueInput`` for one assigned value."""
    values = value if isinstance(value, list) else [value]
    match input_type:
        case "DROPDOWN":
            return {"id": attribute_id, "dropdown": {"value": values[0]}}
        case "MULTISELECT":
            return {"id": attribute_id, "multiselect": [{"value": v} for v in values]}
        case "SWATCH":
            return {"id": attribute_id, "swatch": {"value": values[0]}}
        case "PLAIN_TEXT":
            return {"id": attribute_id, "plainText": values[0]}
        case "RICH_TEXT":
            return {"id": attribute_id, "richText": rich_text(values[0])}
        case "NUMERIC":
            return {"id": attribute_id, "numeric": values[0]}
        case "BOOLEAN":
            return {"id": attribute_id, "boolean": str(values[0]).lower() == "true"}
        case "DATE":
            return {"id": attribute_id, "date": values[0]}
        case "DATE_TIME":
            return {"id": attribute_id, "dateTime": values[0]}
        case _:
            return {"id": attribute_id, "values": values}


class ProductService(_Service):
    def __init__(self, client: GraphQLClient, catalog: Catalog) -> None:
        super().__init__(client, catalog)
        self._attribute_cache: AttributeCache | None = None

    def prime_attribute_cache(self, cache: AttributeCache) -> None:
        self._attribute_cache = cache

    async def _attributes_input(
        self, attributes: dict[str, AttributeValue]
    ) -> list[dict[str, Any]]:
        result = []
        for name, value in attributes.items():
            cached = (
                self._attribute_cache.get_product_attribute(name)
                if self._attribute_cache
                else None
            )
            if cached is not None:
                result.append(attribute_value_input(cached.id, cached.input_type, value))
                continue
            attribute_id = await self._catalog.attributes.id_of(name, "Attribute")
            values = value if isinstance(value, list) else [value]
            result.append({"id": attribute_id, "values": values})
        return result

    async def bootstrap_product(self, product: ProductInput) -> str:
        """Create or update one product with its listings and variants.

        Returns:
            The product id.
        """
        product_type_id = await self._catalog.product_types.id_of(
            product.product_type, "ProductType"
        )
        category_id = await self._catalog.categories.id_of(product.category, "Category")

        values: dict[str, Any] = {
            "name": product.name,
            "slug": product.slug,
            "category": category_id,
            "attributes": await self._attributes_input(product.attributes),
        }
        if product.description is not None:
            values["description"] = rich_text(product.description)
        if product.tax_class:
            values["taxClass"] = await self._catalog.tax_classes.id_of(
                product.tax_class, "TaxClass"
            )

        data = await self._client.execute(queries.PRODUCT_QUERY, {"slug": product.slug})
        existing = data.get("product")
        if existing is None:
            payload = await self._mutate(
                queries.PRODUCT_CREATE,
                {"input": {**values, "productType": product_type_id}},
                "productCreate",
            )
            product_id = payload["product"]["id"]
            variants: dict[str, str] = {}
            logger.info("Created product", extra={"slug": product.slug})
        else:
            product_id = existing["id"]
            await self._mutate(
                queries.PRODUCT_UPDATE, {"id": product_id, "input": values}, "productUpdate"
            )
            variants = {v["sku"]: v["id"] for v in existing.get("variants") or [] if v.get("sku")}
            logger.info("Updated product", extra={"slug": product.slug})

        if product.channel_listings:
            update_channels = []
            for listing in product.channel_listings:
                entry: dict[str, Any] = {
                    "channelId": await self._catalog.channels.id_of(listing.channel, "Channel"),
                    "isPublished": listing.is_published,
                    "visibleInListings": listing.visible_in_listings,
                }
                if listing.available_for_purchase:
                    entry["availableForPurchaseAt"] = listing.available_for_purchase
                if listing.published_at:
                    entry["publishedAt"] = listing.published_at
                update_channels.append(entry)
            await self._mutate(
                queries.PRODUCT_CHANNEL_LISTING_UPDATE,
                {"id": product_id, "input": {"updateChannels": update_channels}},
                "productChannelListingUpdate",
            )

        for variant in product.variants:
            await self._bootstrap_variant(product_id, variant, variants.get(variant.sku))

        return product_id

    async def _bootstrap_variant(
        self, product_id: str, variant: ProductVariantInput, variant_id: str | None
    ) -> None:
        values: dict[str, Any] = {
            "sku": variant.sku,
            "name": variant.name,
            "attributes": await self._attributes_input(variant.attributes),
        }
        if variant.weight is not None:
            values["weight"] = variant.weight

        if variant_id is None:
            payload = await self._mutate(
                queries.VARIANT_CREATE,
                {"input": {**values, "product": product_id}},
                "productVariantCreate",
            )
            variant_id = payload["productVariant"]["id"]
        else:
            await self._mutate(
                queries.VARIANT_UPDATE,
                {"id": variant_id, "input": values},
                "productVariantUpdate",
            )

        if variant.channel_listings:
            listings = []
            for listing in variant.channel_listings:
                entry: dict[str, Any] = {
                    "channelId": await self._catalog.channels.id_of(listing.channel, "Channel"),
                    "price": listing.price,
                }
                if listing.cost_price is not None:
                    entry["costPrice"] = listing.cost_price
                listings.append(entry)
            await self._mutate(
                queries.VARIANT_CHANNEL_LISTING_UPDATE,
                {"id": variant_id, "input": listings},
                "productVariantChannelListingUpdate",
            )


class CollectionService(_Service):
    async def bootstrap_collections(self, collections: Sequence[CollectionInput]) -> None:
        index = self._catalog.collections
        for collection in collections:
            values: dict[str, Any] = {"name": collection.name, "slug": collection.slug}
            if collection.description is not None:
                values["description"] = rich_text(collection.description)

            existing = await index.get(collection.slug)
            if existing is None:
                payload = await self._mutate(
                    queries.COLLECTION_CREATE, {"input": values}, "collectionCreate"
                )
                collection_id = payload["collection"]["id"]
                logger.info("Created collection", extra={"slug": collection.slug})
            else:
                collection_id = existing["id"]
                await self._mutate(
                    queries.COLLECTION_UPDATE,
                    {"id": collection_id, "input": values},
                    "collectionUpdate",
                )

            if collection.products:
                data = await self._client.execute(
                    queries.PRODUCTS_BY_SLUGS_QUERY, {"slugs": collection.products}
                )
                found = {p["slug"]: p["id"] for p in nodes(data.get("products"))}
                missing = [s for s in collection.products if s not in found]
                if missing:
                    raise LookupError(f"Product not found: {', '.join(missing)}")
                await self._mutate(
                    queries.COLLECTION_ADD_PRODUCTS,
                    {"collectionId": collection_id, "products": list(found.values())},
                    "collectionAddProducts",
                )

            if collection.channel_listings:
                add_channels = [
                    {
                        "channelId": await self._catalog.channels.id_of(
                            listing.channel_slug, "Channel"
                        ),
                        "isPublished": listing.is_published,
                    }
                    for listing in collection.channel_listings
                ]
                await self._mutate(
                    queries.COLLECTION_CHANNEL_LISTING_UPDATE,
                    {"id": collection_id, "input": {"addChannels": add_channels}},
                    "collectionChannelListingUpdate",
                )
        index.invalidate()


class MenuService(_Service):
    """Menus are replaced item by item: existing items are removed, then the
    configured tree is recreated in order."""

    async def bootstrap_menus(self, menus: Sequence[MenuInput]) -> None:
        index = self._catalog.menus
        for menu in menus:
            values = {"name": menu.name, "slug": menu.slug}
            existing = await index.get(menu.slug)
            if existing is None:
                payload = await self._mutate(queries.MENU_CREATE, {"input": values}, "menuCreate")
                menu_id = payload["menu"]["id"]
                logger.info("Created menu", extra={"slug": menu.slug})
            else:
                menu_id = existing["id"]
                await self._mutate(
                    queries.MENU_UPDATE, {"id": menu_id, "input": values}, "menuUpdate"
                )
                for item in existing.get("items") or []:
                    await self._mutate(
                        queries.MENU_ITEM_DELETE, {"id": item["id"]}, "menuItemDelete"
                    )

            for item in menu.items:
                await self._create_item(menu_id, item, parent_id=None)
        index.invalidate()

    async def _create_item(self, menu_id: str, item: MenuItemInput, parent_id: str | None) -> None:
        values: dict[str, Any] = {"menu": menu_id, "name": item.name}
        if parent_id:
            values["parent"] = parent_id
        if item.url:
            values["url"] = item.url
        if item.category:
            values["category"] = await self._catalog.categories.id_of(item.category, "Category")
        if item.collection:
            values["collection"] = await self._catalog.collections.id_of(
                item.collection, "Collection"
            )
        if item.page:
            values["page"] = await self._catalog.pages.id_of(item.page, "Page")

        payload = await self._mutate(queries.MENU_ITEM_CREATE, {"input": values}, "menuItemCreate")
        for child in item.children:
            await self._create_item(menu_id, child, payload["menuItem"]["id"])


class SaleorServices:
    """All GraphQL-backed services sharing one client and lookup catalog."""

    def __init__(self, client: GraphQLClient) -> None:
        catalog = Catalog(client)
        self.catalog = catalog
        self.shop = ShopSettingsService(client, catalog)
        self.channel = ChannelService(client, catalog)
        self.warehouse = WarehouseService(client, catalog)
        self.shipping_zone = ShippingZoneService(client, catalog)
        self.tax_class = TaxClassService(client, catalog)
        self.attribute = AttributeService(client, catalog)
        self.product_type = ProductTypeService(client, catalog, self.attribute)
        self.page_type = PageTypeService(client, catalog, self.attribute)
        self.model = ModelService(client, catalog)
        self.category = CategoryService(client, catalog)
        self.product = ProductService(client, catalog)
        self.collection = CollectionService(client, catalog)
        self.menu = MenuService(client, catalog)
