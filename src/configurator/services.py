"""Collaborator contracts used by the deployment stages.

Stages only see the ``ServiceContainer``; every collaborator is a
``typing.Protocol`` so tests can pass plain fakes. ``build_services`` wires
the GraphQL-backed implementations for a real run.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from .attribute_cache import AttributeCache
from .models import (
    AttributeInput,
    CategoryInput,
    ChannelInput,
    CollectionInput,
    MenuInput,
    ModelInput,
    PageTypeInput,
    ProductInput,
    ProductTypeInput,
    SaleorConfig,
    ShippingZoneInput,
    ShopSettings,
    TaxClassInput,
    WarehouseInput,
)


@dataclass(frozen=True)
class RemoteAttribute:
    """Attribute as returned by a lookup by name."""

    id: str
    name: str
    input_type: str | None = None
    slug: str | None = None
    choices: tuple[str, ...] = field(default_factory=tuple)


# =============================================================================
# Protocols
# =============================================================================


class ConfigStorage(Protocol):
    async def load(self) -> SaleorConfig: ...


class ConfigurationSource(Protocol):
    async def retrieve_without_saving(self) -> SaleorConfig: ...


class ShopService(Protocol):
    async def update_settings(self, shop: ShopSettings) -> None: ...


class ChannelService(Protocol):
    async def bootstrap_channels(self, channels: Sequence[ChannelInput]) -> Any: ...


class WarehouseService(Protocol):
    async def bootstrap_warehouses(self, warehouses: Sequence[WarehouseInput]) -> Any: ...


class ShippingZoneService(Protocol):
    async def bootstrap_shipping_zones(self, zones: Sequence[ShippingZoneInput]) -> Any: ...


class TaxClassService(Protocol):
    async def bootstrap_tax_classes(self, tax_classes: Sequence[TaxClassInput]) -> Any: ...


class AttributeService(Protocol):
    async def bootstrap_attributes(self, attributes: Sequence[AttributeInput]) -> Any: ...

    async def get_attributes_by_names(self, names: Sequence[str]) -> list[RemoteAttribute]: ...

    async def update_attribute(self, attribute_id: str, add_values: Sequence[str]) -> Any: ...


class ProductTypeService(Protocol):
    async def bootstrap_product_type(self, product_type: ProductTypeInput) -> Any: ...


class PageTypeService(Protocol):
    async def bootstrap_page_type(self, page_type: PageTypeInput) -> Any: ...


class ModelService(Protocol):
    async def bootstrap_model(self, model: ModelInput) -> Any: ...


class CategoryService(Protocol):
    async def bootstrap_categories(self, categories: Sequence[CategoryInput]) -> Any: ...


class ProductService(Protocol):
    async def bootstrap_product(self, product: ProductInput) -> Any: ...

    def prime_attribute_cache(self, cache: AttributeCache) -> None: ...


class CollectionService(Protocol):
    async def bootstrap_collections(self, collections: Sequence[CollectionInput]) -> Any: ...


class MenuService(Protocol):
    async def bootstrap_menus(self, menus: Sequence[MenuInput]) -> Any: ...


@dataclass
class ServiceContainer:
    """Every collaborator a deployment needs."""

    config_storage: ConfigStorage
    configuration: ConfigurationSource
    shop: ShopService
    channel: ChannelService
    warehouse: WarehouseService
    shipping_zone: ShippingZoneService
    tax_class: TaxClassService
    attribute: AttributeService
    product_type: ProductTypeService
    page_type: PageTypeService
    model: ModelService
    category: CategoryService
    product: ProductService
    collection: CollectionService
    menu: MenuService


def build_services(settings: Any) -> ServiceContainer:
    """Wire the GraphQL-backed services for ``settings``.

    Args:
        settings: Validated ``Settings`` with URL and token set.
    """
    from .config_loader import LocalConfigSource
    from .remote import RemoteConfigSource
    from .saleor_services import SaleorServices
    from .transport import GraphQLClient

    settings.require_remote()
    client = GraphQLClient(
        settings.graphql_url,
        settings.token,
        timeout_seconds=settings.request_timeout_seconds,
        max_attempts=settings.max_retries,
    )
    saleor = SaleorServices(client)
    return ServiceContainer(
        config_storage=LocalConfigSource(settings.config_path),
        configuration=RemoteConfigSource(client),
        shop=saleor.shop,
        channel=saleor.channel,
        warehouse=saleor.warehouse,
        shipping_zone=saleor.shipping_zone,
        tax_class=saleor.tax_class,
        attribute=saleor.attribute,
        product_type=saleor.product_type,
        page_type=saleor.page_type,
        model=saleor.model,
        category=saleor.category,
        product=saleor.product,
        collection=saleor.collection,
        menu=saleor.menu,
    )
