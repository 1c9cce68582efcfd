"""Deployment stages in execution order.

Each stage loads the local configuration, hands its section to the matching
bootstrap service and returns. Bootstrap services are idempotent (create or
update by natural key), so a run can be repeated after a partial failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from .attribute_cache import CachedAttribute
from .chunking import process_in_chunks, profile_for
from .dependency import validate_stage_order
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
)
from .errors import DeploymentError, EntityFailure, stage_aggregate_error
from .models import ProductInput, SaleorConfig
from .pipeline import DeploymentContext, DeploymentStage
from .results import EntityResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Attribute input types whose values must exist as choices before use
PREFLIGHT_INPUT_TYPES = frozenset({"DROPDOWN", "MULTISELECT"})


class StageNames:
    VALIDATION = "Validating configuration"
    SHOP_SETTINGS = "Updating shop settings"
    PRODUCT_TYPES = "Managing product types"
    ATTRIBUTES = "Managing attributes"
    CHANNELS = "Managing channels"
    PAGE_TYPES = "Managing page types"
    MODELS = "Managing models"
    COLLECTIONS = "Managing collections"
    MENUS = "Managing menus"
    CATEGORIES = "Managing categories"
    WAREHOUSES = "Managing warehouses"
    TAX_CLASSES = "Managing tax classes"
    SHIPPING_ZONES = "Managing shipping zones"
    ATTRIBUTE_CHOICES = "Preparing attribute choices"
    PRODUCTS = "Managing products"


class StageError(Exception):
    """A stage body failed as a whole."""

    pass


async def _load(context: DeploymentContext) -> SaleorConfig:
    return await context.services.config_storage.load()


async def _wrap(description: str, call: Awaitable[Any]) -> None:
    try:
        await call
    except DeploymentError:
        raise
    except Exception as e:
        raise StageError(f"Failed to manage {description}: {e}") from e


def _operations(context: DeploymentContext, entity_type: str) -> dict[str, str]:
    """Entity name -> planned operation (``create``/``update``/``delete``)."""
    return {
        r.entity_name: r.operation.value.lower() for r in context.summary.results_for(entity_type)
    }


def _each(call: Callable[[T], Awaitable[Any]]) -> Callable[[list[T]], Awaitable[list[Any]]]:
    """Chunk function running ``call`` for every item of the chunk concurrently."""

    async def run(chunk: list[T]) -> list[Any]:
        return list(await asyncio.gather(*(call(item) for item in chunk), return_exceptions=True))

    return run


async def _process(
    context: DeploymentContext,
    stage_name: str,
    entity_type: str,
    items: Sequence[T],
    name_of: Callable[[T], str],
    chunk_call: Callable[[list[T]], Awaitable[Any]],
) -> list[str]:
    """Run ``chunk_call`` over ``items`` with the entity type's chunk profile.

    A failed chunk fails every item in it; a chunk returning a list of
    per-item outcomes fails only the items whose outcome is an exception.

    Returns:
        Names of the items that succeeded, in input order.

    Raises:
        DeploymentError: Aggregate of every failed item, carrying the
            successes and each entity's planned operation.
    """
    profile = profile_for(entity_type)
    chunked = await process_in_chunks(
        items,
        chunk_call,
        chunk_size=profile.chunk_size,
        delay_seconds=profile.delay_seconds,
        entity_type=entity_type,
    )

    failures = [EntityFailure(name_of(item), error) for item, error in chunked.failures]
    successes: list[str] = []
    for item, outcome in chunked.successes:
        if isinstance(outcome, Exception):
            failures.append(EntityFailure(name_of(item), outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            successes.append(name_of(item))

    if failures:
        raise stage_aggregate_error(
            stage_name, failures, successes, _operations(context, entity_type)
        )
    return successes


# =============================================================================
# Stage Bodies
# =============================================================================


async def validate_configuration(context: DeploymentContext) -> None:
    try:
        await _load(context)
    except Exception as e:
        raise StageError(f"Configuration validation failed: {e}") from e


async def update_shop_settings(context: DeploymentContext) -> None:
    config = await _load(context)
    if config.shop is None:
        logger.debug("No shop settings to update")
        return
    try:
        await context.services.shop.update_settings(config.shop)
    except Exception as e:
        raise StageError(f"Failed to update shop settings: {e}") from e


async def manage_tax_classes(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.tax_classes:
        logger.debug("No tax classes to manage")
        return
    await _wrap("tax classes", context.services.tax_class.bootstrap_tax_classes(config.tax_classes))


async def manage_attributes(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.attributes:
        logger.debug("No attributes to manage")
        return
    await _wrap("attributes", context.services.attribute.bootstrap_attributes(config.attributes))


async def manage_product_types(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.product_types:
        logger.debug("No product types to manage")
        return
    await _process(
        context,
        StageNames.PRODUCT_TYPES,
        PRODUCT_TYPES,
        config.product_types,
        lambda pt: pt.name,
        _each(context.services.product_type.bootstrap_product_type),
    )


async def manage_channels(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.channels:
        logger.debug("No channels to manage")
        return
    await _wrap("channels", context.services.channel.bootstrap_channels(config.channels))


async def manage_page_types(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.page_types:
        logger.debug("No page types to manage")
        return
    await _process(
        context,
        StageNames.PAGE_TYPES,
        PAGE_TYPES,
        config.page_types,
        lambda pt: pt.name,
        _each(context.services.page_type.bootstrap_page_type),
    )


async def manage_models(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.models:
        logger.debug("No models to manage")
        return
    await _process(
        context,
        StageNames.MODELS,
        MODELS,
        config.models,
        lambda model: model.slug,
        _each(context.services.model.bootstrap_model),
    )


async def manage_warehouses(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.warehouses:
        logger.debug("No warehouses to manage")
        return
    await _process(
        context,
        StageNames.WAREHOUSES,
        WAREHOUSES,
        config.warehouses,
        lambda warehouse: warehouse.slug,
        context.services.warehouse.bootstrap_warehouses,
    )


async def manage_shipping_zones(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.shipping_zones:
        logger.debug("No shipping zones to manage")
        return
    await _process(
        context,
        StageNames.SHIPPING_ZONES,
        SHIPPING_ZONES,
        config.shipping_zones,
        lambda zone: zone.name,
        context.services.shipping_zone.bootstrap_shipping_zones,
    )


async def manage_categories(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.categories:
        logger.debug("No categories to manage")
        return
    await _process(
        context,
        StageNames.CATEGORIES,
        CATEGORIES,
        config.categories,
        lambda category: category.slug or category.name,
        context.services.category.bootstrap_categories,
    )


def _product_attribute_values(products: Sequence[ProductInput]) -> dict[str, list[str]]:
    """Attribute name -> values used by products and their variants, in first-seen order."""
    values: dict[str, list[str]] = {}

    def add(attributes: dict[str, str | list[str]]) -> None:
        for name, value in attributes.items():
            bucket = values.setdefault(name, [])
            for v in value if isinstance(value, list) else [value]:
                if v and v not in bucket:
                    bucket.append(v)

    for product in products:
        add(product.attributes)
        for variant in product.variants:
            add(variant.attributes)
    return values


def _has_product_changes(context: DeploymentContext) -> bool:
    return bool(context.summary.results_for(PRODUCTS))


async def prepare_attribute_choices(context: DeploymentContext) -> None:
    """Make sure choice values referenced by products exist on their attributes."""
    config = await _load(context)
    used = _product_attribute_values(config.products or [])
    if not used:
        logger.debug("No product attribute values to prepare")
        return

    attribute_service = context.services.attribute
    remote = await attribute_service.get_attributes_by_names(list(used))

    failures: list[EntityFailure] = []
    successes: list[str] = []
    for attribute in remote:
        if attribute.input_type not in PREFLIGHT_INPUT_TYPES:
            continue
        missing = [v for v in used.get(attribute.name, []) if v not in attribute.choices]
        if not missing:
            continue
        try:
            await attribute_service.update_attribute(attribute.id, missing)
        except Exception as e:
            failures.append(EntityFailure(attribute.name, e))
            continue
        successes.append(attribute.name)
        logger.info(
            "Added missing attribute choices",
            extra={"attribute": attribute.name, "values": missing},
        )

    context.attribute_cache.populate_product_attributes(
        CachedAttribute(
            id=a.id,
            name=a.name,
            slug=a.slug or "",
            input_type=a.input_type or "",
        )
        for a in remote
    )
    context.services.product.prime_attribute_cache(context.attribute_cache)

    if failures:
        raise stage_aggregate_error(StageNames.ATTRIBUTE_CHOICES, failures, successes)


async def manage_products(context: DeploymentContext) -> list[EntityResult]:
    """Bootstrap products in chunks; each chunk runs its products concurrently."""
    config = await _load(context)
    if not config.products:
        logger.debug("No products to manage")
        return []

    successes = await _process(
        context,
        StageNames.PRODUCTS,
        PRODUCTS,
        config.products,
        lambda product: product.slug,
        _each(context.services.product.bootstrap_product),
    )

    operations = _operations(context, PRODUCTS)
    return [
        EntityResult(name=slug, operation=operations.get(slug, "update"), success=True)
        for slug in successes
    ]


async def manage_collections(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.collections:
        logger.debug("No collections to manage")
        return
    await _wrap(
        "collections", context.services.collection.bootstrap_collections(config.collections)
    )


async def manage_menus(context: DeploymentContext) -> None:
    config = await _load(context)
    if not config.menus:
        logger.debug("No menus to manage")
        return
    await _wrap("menus", context.services.menu.bootstrap_menus(config.menus))


# =============================================================================
# Stage Definitions
# =============================================================================

validation_stage = DeploymentStage(StageNames.VALIDATION, validate_configuration)
shop_settings_stage = DeploymentStage(StageNames.SHOP_SETTINGS, update_shop_settings, SHOP_SETTINGS)
tax_classes_stage = DeploymentStage(StageNames.TAX_CLASSES, manage_tax_classes, TAX_CLASSES)
attributes_stage = DeploymentStage(StageNames.ATTRIBUTES, manage_attributes, ATTRIBUTES)
product_types_stage = DeploymentStage(StageNames.PRODUCT_TYPES, manage_product_types, PRODUCT_TYPES)
channels_stage = DeploymentStage(StageNames.CHANNELS, manage_channels, CHANNELS)
page_types_stage = DeploymentStage(StageNames.PAGE_TYPES, manage_page_types, PAGE_TYPES)
models_stage = DeploymentStage(StageNames.MODELS, manage_models, MODELS)
warehouses_stage = DeploymentStage(StageNames.WAREHOUSES, manage_warehouses, WAREHOUSES)
shipping_zones_stage = DeploymentStage(
    StageNames.SHIPPING_ZONES, manage_shipping_zones, SHIPPING_ZONES
)
categories_stage = DeploymentStage(StageNames.CATEGORIES, manage_categories, CATEGORIES)
attribute_choices_preflight_stage = DeploymentStage(
    StageNames.ATTRIBUTE_CHOICES,
    prepare_attribute_choices,
    skip_when=lambda context: not _has_product_changes(context),
)
products_stage = DeploymentStage(StageNames.PRODUCTS, manage_products, PRODUCTS)
collections_stage = DeploymentStage(StageNames.COLLECTIONS, manage_collections, COLLECTIONS)
menus_stage = DeploymentStage(StageNames.MENUS, manage_menus, MENUS)


def get_all_stages() -> list[DeploymentStage]:
    """Every stage in execution order (dependencies first).

    Raises:
        DependencyError: If the order contradicts the dependency table.
    """
    stages = [
        validation_stage,
        shop_settings_stage,
        tax_classes_stage,
        attributes_stage,
        product_types_stage,
        channels_stage,
        page_types_stage,
        models_stage,
        warehouses_stage,
        shipping_zones_stage,
        categories_stage,
        attribute_choices_preflight_stage,
        products_stage,
        collections_stage,
        menus_stage,
    ]
    validate_stage_order(stage.entity_type for stage in stages)
    return stages
