"""Remote configuration retrieval.

The remote instance is read with one GraphQL query and mapped into the same
camelCase shape as the YAML file, then validated through ``parse_config`` so
both sides of a comparison are the same models. Nothing is written locally.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .config_loader import parse_config
from .models import SaleorConfig
from .queries import GET_CONFIG_QUERY
from .transport import GraphQLClient

logger = logging.getLogger(__name__)


def nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Unwrap a Relay connection (``edges[].node``)."""
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges") or [] if edge.get("node")]


def _slug(ref: dict[str, Any] | None) -> str | None:
    return ref.get("slug") if ref else None


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def plain_text(value: Any) -> str | None:
    """Text of an EditorJS document, as written by ``rich_text``.

    Paragraph texts are joined with newlines. Values that are not EditorJS
    documents pass through unchanged.
    """
    if value is None:
        return None
    document = value
    if isinstance(value, str):
        try:
            document = json.loads(value)
        except ValueError:
            return value
    if not isinstance(document, dict) or not isinstance(document.get("blocks"), list):
        return value if isinstance(value, str) else json.dumps(value)

    texts = [
        block["data"]["text"]
        for block in document["blocks"]
        if isinstance(block, dict)
        and isinstance(block.get("data"), dict)
        and isinstance(block["data"].get("text"), str)
    ]
    if not texts:
        return None
    return "\n".join(texts)


def _attribute_values(assigned: list[dict[str, Any]]) -> dict[str, str | list[str]]:
    values: dict[str, str | list[str]] = {}
    for item in assigned or []:
        name = (item.get("attribute") or {}).get("name")
        names = [v["name"] for v in item.get("values") or [] if v.get("name")]
        if not name or not names:
            continue
        values[name] = names[0] if len(names) == 1 else names
    return values


# =============================================================================
# Section Mappers
# =============================================================================


def map_channel(node: dict[str, Any]) -> dict[str, Any]:
    settings = _compact(
        {
            **(node.get("stockSettings") or {}),
            **(node.get("checkoutSettings") or {}),
            **(node.get("paymentSettings") or {}),
            **(node.get("orderSettings") or {}),
        }
    )
    channel = {
        "name": node["name"],
        "slug": node["slug"],
        "currencyCode": node["currencyCode"],
        "defaultCountry": (node.get("defaultCountry") or {}).get("code", ""),
        "isActive": node.get("isActive", False),
    }
    if settings:
        channel["settings"] = settings
    return channel


def map_warehouse(node: dict[str, Any]) -> dict[str, Any]:
    address = dict(node.get("address") or {})
    if address:
        address["country"] = (address.get("country") or {}).get("code", "")
    return _compact(
        {
            "name": node["name"],
            "slug": node["slug"],
            "email": node.get("email") or None,
            "isPrivate": node.get("isPrivate", False),
            "clickAndCollectOption": node.get("clickAndCollectOption") or "DISABLED",
            "address": _compact(address) or None,
            "shippingZones": [z["name"] for z in nodes(node.get("shippingZones"))],
        }
    )


def map_shipping_zone(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "description": node.get("description"),
            "default": node.get("default", False),
            "countries": [c["code"] for c in node.get("countries") or []],
            "warehouses": [w["name"] for w in node.get("warehouses") or []],
            "channels": [c["slug"] for c in node.get("channels") or []],
            "shippingMethods": [_compact(m) for m in node.get("shippingMethods") or []],
        }
    )


def map_tax_class(node: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": node["name"],
        "countryRates": [
            {"countryCode": r["country"]["code"], "rate": r["rate"]}
            for r in node.get("countries") or []
        ],
    }


def map_attribute(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "slug": node.get("slug"),
            "inputType": node.get("inputType"),
            "entityType": node.get("entityType"),
            "values": [{"name": c["name"]} for c in nodes(node.get("choices"))],
        }
    )


def map_product_type(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "slug": node.get("slug"),
            "isShippingRequired": node.get("isShippingRequired", False),
            "productAttributes": [
                {"attribute": a["name"]} for a in node.get("productAttributes") or []
            ],
            "variantAttributes": [
                {
                    "attribute": a["attribute"]["name"],
                    "variantSelection": bool(a.get("variantSelection")),
                }
                for a in node.get("assignedVariantAttributes") or []
            ],
        }
    )


def map_page_type(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "slug": node.get("slug"),
            "attributes": [{"attribute": a["name"]} for a in node.get("attributes") or []],
        }
    )


def map_model(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "title": node["title"],
            "slug": node["slug"],
            "modelType": (node.get("pageType") or {}).get("name"),
            "content": plain_text(node.get("content")),
            "isPublished": bool(node.get("isPublished")),
            "publishedAt": node.get("publishedAt"),
            "attributes": _attribute_values(node.get("attributes") or []),
        }
    )


def build_category_tree(flat: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Nest categories under their parents; orphans become roots."""
    by_slug: dict[str, dict[str, Any]] = {}
    for node in flat:
        by_slug[node["slug"]] = _compact(
            {
                "name": node["name"],
                "slug": node["slug"],
                "description": plain_text(node.get("description")),
                "subcategories": [],
            }
        )

    roots: list[dict[str, Any]] = []
    for node in flat:
        parent = _slug(node.get("parent"))
        category = by_slug[node["slug"]]
        if parent and parent in by_slug:
            by_slug[parent]["subcategories"].append(category)
        else:
            roots.append(category)
    return roots


def map_product(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "slug": node["slug"],
            "description": plain_text(node.get("description")),
            "productType": (node.get("productType") or {}).get("name", ""),
            "category": _slug(node.get("category")) or "",
            "taxClass": (node.get("taxClass") or {}).get("name"),
            "attributes": _attribute_values(node.get("attributes")),
            "channelListings": [
                _compact(
                    {
                        "channel": listing["channel"]["slug"],
                        "isPublished": listing.get("isPublished", True),
                        "visibleInListings": listing.get("visibleInListings", True),
                        "availableForPurchase": listing.get("availableForPurchaseAt"),
                        "publishedAt": listing.get("publishedAt"),
                    }
                )
                for listing in node.get("channelListings") or []
            ],
            "variants": [map_variant(v) for v in node.get("variants") or []],
        }
    )


def map_variant(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node.get("name") or "",
            "sku": node.get("sku") or "",
            "weight": (node.get("weight") or {}).get("value"),
            "attributes": _attribute_values(node.get("attributes")),
            "channelListings": [
                _compact(
                    {
                        "channel": listing["channel"]["slug"],
                        "price": (listing.get("price") or {}).get("amount", 0),
                        "costPrice": (listing.get("costPrice") or {}).get("amount"),
                    }
                )
                for listing in node.get("channelListings") or []
            ],
        }
    )


def map_collection(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "slug": node["slug"],
            "description": plain_text(node.get("description")),
            "products": [p["slug"] for p in nodes(node.get("products"))],
            "channelListings": [
                {"channelSlug": listing["channel"]["slug"], "isPublished": listing["isPublished"]}
                for listing in node.get("channelListings") or []
            ],
        }
    )


def map_menu_item(node: dict[str, Any]) -> dict[str, Any]:
    return _compact(
        {
            "name": node["name"],
            "url": node.get("url"),
            "category": _slug(node.get("category")),
            "collection": _slug(node.get("collection")),
            "page": _slug(node.get("page")),
            "children": [map_menu_item(child) for child in node.get("children") or []],
        }
    )


def map_menu(node: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": node["name"],
        "slug": node["slug"],
        "items": [map_menu_item(item) for item in node.get("items") or []],
    }


def map_remote_config(data: dict[str, Any]) -> SaleorConfig:
    """Map the ``GetConfig`` response into a validated ``SaleorConfig``.

    Raises:
        ConfigLoadError: If the mapped data fails model validation.
    """
    raw: dict[str, Any] = {}
    if data.get("shop"):
        raw["shop"] = _compact(data["shop"])
    raw["channels"] = [map_channel(c) for c in data.get("channels") or []]
    raw["warehouses"] = [map_warehouse(n) for n in nodes(data.get("warehouses"))]
    raw["shippingZones"] = [map_shipping_zone(n) for n in nodes(data.get("shippingZones"))]
    raw["taxClasses"] = [map_tax_class(n) for n in nodes(data.get("taxClasses"))]
    raw["attributes"] = [map_attribute(n) for n in nodes(data.get("attributes"))]
    raw["productTypes"] = [map_product_type(n) for n in nodes(data.get("productTypes"))]
    raw["pageTypes"] = [map_page_type(n) for n in nodes(data.get("pageTypes"))]
    raw["models"] = [map_model(n) for n in nodes(data.get("pages"))]
    raw["categories"] = build_category_tree(nodes(data.get("categories")))
    raw["products"] = [map_product(n) for n in nodes(data.get("products"))]
    raw["collections"] = [map_collection(n) for n in nodes(data.get("collections"))]
    raw["menus"] = [map_menu(n) for n in nodes(data.get("menus"))]
    return parse_config(raw, source="remote instance")


class RemoteConfigSource:
    """Reads the current configuration of the remote instance."""

    def __init__(self, client: GraphQLClient) -> None:
        self._client = client

    async def retrieve_without_saving(self) -> SaleorConfig:
        data = await self._client.execute(GET_CONFIG_QUERY)
        config = map_remote_config(data)
        logger.info(
            "Retrieved remote configuration",
            extra={
                "channels": len(config.channels or []),
                "products": len(config.products or []),
            },
        )
        return config
