"""Pydantic models for the declarative Saleor configuration.

These models provide:
1. Type-safe YAML parsing (camelCase keys in the file, snake_case in Python)
2. Validation at the boundary (fail fast, fail loudly)
3. One shape for both sides of a comparison: the local file and the state
   retrieved from the remote instance are parsed into the same models

Snapshots are frozen once parsed so a configuration cannot change while it is
being compared.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Base Model
# =============================================================================


class ConfigModel(BaseModel):
    """Base for every configuration entity."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def field_alias(model: BaseModel, attr: str) -> str:
    """Return the YAML (camelCase) name of a model attribute."""
    info = type(model).model_fields.get(attr)
    if info is not None and info.alias:
        return info.alias
    return attr


NonEmptyStr = Annotated[str, Field(min_length=1)]
AttributeValue = str | list[str]

CHOICE_INPUT_TYPES = frozenset({"DROPDOWN", "MULTISELECT", "SWATCH"})

# Attribute owners: attributes are assigned to product types or page types
ATTRIBUTE_TYPES = frozenset({"PRODUCT_TYPE", "PAGE_TYPE"})

VALID_INPUT_TYPES = frozenset(
    {
        "DROPDOWN",
        "MULTISELECT",
        "SWATCH",
        "PLAIN_TEXT",
        "RICH_TEXT",
        "NUMERIC",
        "BOOLEAN",
        "DATE",
        "DATE_TIME",
        "FILE",
        "REFERENCE",
    }
)


# =============================================================================
# Shop
# =============================================================================


class ShopSettings(ConfigModel):
    """Global shop settings (singleton section)."""

    header_text: str | None = None
    description: str | None = None
    default_mail_sender_name: str | None = None
    default_mail_sender_address: str | None = None
    customer_set_password_url: str | None = None
    display_gross_prices: bool | None = None
    enable_account_confirmation_by_email: bool | None = None
    limit_quantity_per_checkout: int | None = None
    track_inventory_by_default: bool | None = None
    reserve_stock_duration_anonymous_user: int | None = None
    reserve_stock_duration_authenticated_user: int | None = None
    default_digital_max_downloads: int | None = None
    default_digital_url_valid_days: int | None = None
    default_weight_unit: str | None = None
    allow_login_without_confirmation: bool | None = None
    fulfillment_auto_approve: bool | None = None
    fulfillment_allow_unpaid: bool | None = None


# =============================================================================
# Channels, Warehouses, Shipping, Taxes
# =============================================================================


class ChannelSettings(ConfigModel):
    """Order and checkout settings of a channel."""

    allocation_strategy: str | None = None
    automatically_confirm_all_new_orders: bool | None = None
    automatically_fulfill_non_shippable_gift_card: bool | None = None
    expire_orders_after: int | None = None
    delete_expired_orders_after: int | None = None
    mark_as_paid_strategy: str | None = None
    allow_unpaid_orders: bool | None = None
    include_draft_order_in_voucher_usage: bool | None = None
    use_legacy_error_flow: bool | None = None
    automatically_complete_fully_paid_checkouts: bool | None = None
    default_transaction_flow_strategy: str | None = None


class ChannelInput(ConfigModel):
    """Sales channel."""

    name: NonEmptyStr
    slug: NonEmptyStr
    currency_code: Annotated[str, Field(min_length=3, max_length=3)]
    default_country: Annotated[str, Field(min_length=2, max_length=2)]
    is_active: bool = False
    settings: ChannelSettings | None = None


class Address(ConfigModel):
    """Postal address of a warehouse."""

    street_address1: str = ""
    street_address2: str = ""
    city: str = ""
    city_area: str = ""
    postal_code: str = ""
    country: str = ""
    country_area: str = ""
    company_name: str = ""
    phone: str = ""


class WarehouseInput(ConfigModel):
    """Stock location."""

    name: NonEmptyStr
    slug: NonEmptyStr
    email: str | None = None
    is_private: bool = False
    click_and_collect_option: str = "DISABLED"
    address: Address | None = None
    shipping_zones: list[str] = Field(default_factory=list)

    @field_validator("click_and_collect_option")
    @classmethod
    def validate_click_and_collect(cls, v: str) -> str:
        valid = {"DISABLED", "LOCAL", "ALL"}
        if v not in valid:
            raise ValueError(f"clickAndCollectOption must be one of {sorted(valid)}")
        return v


class ShippingMethodInput(ConfigModel):
    """Shipping method offered inside a zone."""

    name: NonEmptyStr
    type: str = "PRICE"
    description: str | None = None


class ShippingZoneInput(ConfigModel):
    """Shipping zone with its countries, warehouses and methods."""

    name: NonEmptyStr
    description: str | None = None
    default: bool = False
    countries: list[str] = Field(default_factory=list)
    warehouses: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)
    shipping_methods: list[ShippingMethodInput] = Field(default_factory=list)


class TaxClassCountryRate(ConfigModel):
    """Tax rate of one country."""

    country_code: Annotated[str, Field(min_length=2, max_length=2)]
    rate: Annotated[float, Field(ge=0, le=100)]


class TaxClassInput(ConfigModel):
    """Tax class, identified by name."""

    name: NonEmptyStr
    country_rates: list[TaxClassCountryRate] = Field(default_factory=list)


# =============================================================================
# Attributes and Types
# =============================================================================


class AttributeValueInput(ConfigModel):
    """Choice value of a DROPDOWN/MULTISELECT/SWATCH attribute."""

    name: NonEmptyStr


class AttributeInput(ConfigModel):
    """Attribute definition or reference.

    Inline form declares the attribute (``name`` + ``inputType``); reference
    form points at an attribute declared elsewhere (``attribute: Name``).
    """

    name: str | None = None
    attribute: str | None = None
    slug: str | None = None
    input_type: str | None = None
    entity_type: str | None = None
    type: str | None = None
    values: list[AttributeValueInput] = Field(default_factory=list)
    variant_selection: bool = False

    @field_validator("input_type")
    @classmethod
    def validate_input_type(cls, v: str | None) -> str | None:
        if v is not None and v not in VALID_INPUT_TYPES:
            raise ValueError(f"inputType must be one of {sorted(VALID_INPUT_TYPES)}")
        return v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str | None) -> str | None:
        if v is not None and v not in ATTRIBUTE_TYPES:
            raise ValueError(f"type must be one of {sorted(ATTRIBUTE_TYPES)}")
        return v

    @model_validator(mode="after")
    def validate_identity(self) -> AttributeInput:
        if not self.name and not self.attribute:
            raise ValueError("attribute needs either 'name' or 'attribute'")
        return self

    @property
    def identifier(self) -> str:
        """Name of the referenced or declared attribute."""
        return self.attribute or self.name or ""

    @property
    def is_choice(self) -> bool:
        return self.input_type in CHOICE_INPUT_TYPES


class ProductTypeInput(ConfigModel):
    """Product type with its product and variant attributes."""

    name: NonEmptyStr
    slug: str | None = None
    is_shipping_required: bool = False
    product_attributes: list[AttributeInput] = Field(default_factory=list)
    variant_attributes: list[AttributeInput] = Field(default_factory=list)


class PageTypeInput(ConfigModel):
    """Page (content model) type."""

    name: NonEmptyStr
    slug: str | None = None
    attributes: list[AttributeInput] = Field(default_factory=list)


class ModelInput(ConfigModel):
    """Content model (a Saleor page) built on a page type.

    ``modelType`` names the page type; ``attributes`` maps attribute names to
    the values assigned on this page.
    """

    title: NonEmptyStr
    slug: NonEmptyStr
    page_type: NonEmptyStr = Field(alias="modelType")
    content: str | None = None
    is_published: bool = False
    published_at: str | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)


# =============================================================================
# Catalogue
# =============================================================================


class CategoryInput(ConfigModel):
    """Category with optional nested subcategories."""

    name: NonEmptyStr
    slug: str | None = None
    description: str | None = None
    subcategories: list[CategoryInput] = Field(default_factory=list)


class ProductChannelListing(ConfigModel):
    """Product availability in one channel."""

    channel: NonEmptyStr
    is_published: bool = True
    visible_in_listings: bool = True
    available_for_purchase: str | None = None
    published_at: str | None = None


class VariantChannelListing(ConfigModel):
    """Variant price in one channel."""

    channel: NonEmptyStr
    price: float
    cost_price: float | None = None


class ProductVariantInput(ConfigModel):
    """Product variant, identified by SKU."""

    name: str = ""
    sku: NonEmptyStr
    weight: float | None = None
    digital: bool | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)
    channel_listings: list[VariantChannelListing] = Field(default_factory=list)


class ProductInput(ConfigModel):
    """Product, identified by slug."""

    name: NonEmptyStr
    slug: NonEmptyStr
    product_type: NonEmptyStr
    category: NonEmptyStr
    description: str | None = None
    tax_class: str | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)
    channel_listings: list[ProductChannelListing] = Field(default_factory=list)
    variants: list[ProductVariantInput] = Field(default_factory=list)


class CollectionChannelListing(ConfigModel):
    """Collection publication state in one channel."""

    channel_slug: NonEmptyStr
    is_published: bool = False


class CollectionInput(ConfigModel):
    """Collection of products, identified by slug."""

    name: NonEmptyStr
    slug: NonEmptyStr
    description: str | None = None
    products: list[str] = Field(default_factory=list)
    channel_listings: list[CollectionChannelListing] = Field(default_factory=list)


class MenuItemInput(ConfigModel):
    """Navigation entry; exactly one target is usually set."""

    name: NonEmptyStr
    url: str | None = None
    category: str | None = None
    collection: str | None = None
    page: str | None = None
    children: list[MenuItemInput] = Field(default_factory=list)


class MenuInput(ConfigModel):
    """Navigation menu, identified by slug."""

    name: NonEmptyStr
    slug: NonEmptyStr
    items: list[MenuItemInput] = Field(default_factory=list)


class VoucherInput(ConfigModel):
    """Discount voucher. Loaded and persisted, not diffed."""

    name: NonEmptyStr
    code: NonEmptyStr
    discount_value_type: str = "PERCENTAGE"
    discount_value: float | None = None
    channels: list[str] = Field(default_factory=list)


# =============================================================================
# Root Configuration
# =============================================================================

# Section names in the YAML file, in comparison order
CONFIG_SECTIONS: tuple[str, ...] = (
    "shop",
    "channels",
    "warehouses",
    "shippingZones",
    "taxClasses",
    "attributes",
    "productTypes",
    "pageTypes",
    "models",
    "categories",
    "products",
    "collections",
    "menus",
    "vouchers",
)


class SaleorConfig(ConfigModel):
    """Complete declarative configuration of a Saleor instance.

    Every section is optional. For comparison an absent section is the same
    as an empty one, so entities present only remotely show up as deletions.
    """

    shop: ShopSettings | None = None
    channels: list[ChannelInput] | None = None
    warehouses: list[WarehouseInput] | None = None
    shipping_zones: list[ShippingZoneInput] | None = None
    tax_classes: list[TaxClassInput] | None = None
    attributes: list[AttributeInput] | None = None
    product_types: list[ProductTypeInput] | None = None
    page_types: list[PageTypeInput] | None = None
    models: list[ModelInput] | None = None
    categories: list[CategoryInput] | None = None
    products: list[ProductInput] | None = None
    collections: list[CollectionInput] | None = None
    menus: list[MenuInput] | None = None
    vouchers: list[VoucherInput] | None = None

    def section(self, name: str) -> Any:
        """Get a section by its YAML name (e.g. ``productTypes``)."""
        for attr, info in type(self).model_fields.items():
            if name in (attr, info.alias):
                return getattr(self, attr)
        raise KeyError(f"Unknown configuration section: {name}")

    def to_yaml_dict(self) -> dict[str, Any]:
        """Dump to the camelCase mapping written to YAML files."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
