"""Tests for the deployment stage bodies."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from configurator.chunking import ChunkProfile
from configurator.diff import (
    MODELS,
    PRODUCTS,
    WAREHOUSES,
    DiffChange,
    DiffOperation,
    DiffResult,
    DiffSummary,
)
from configurator.errors import DeploymentError, ErrorKind, StageAggregateFailure
from configurator.models import SaleorConfig, ShopSettings, WarehouseInput
from configurator.pipeline import DeploymentContext
from configurator.services import RemoteAttribute
from configurator.stages import (
    StageError,
    StageNames,
    attribute_choices_preflight_stage,
    get_all_stages,
    manage_categories,
    manage_channels,
    manage_models,
    manage_product_types,
    manage_products,
    manage_warehouses,
    prepare_attribute_choices,
    update_shop_settings,
    validate_configuration,
)
from saleor_mock import (
    FakeSaleor,
    make_category,
    make_channel,
    make_model,
    make_product,
    make_product_type,
)


def _context(saleor: FakeSaleor, summary: DiffSummary | None = None) -> DeploymentContext:
    return DeploymentContext(services=saleor.container(), summary=summary or DiffSummary())


def _created(*slugs: str) -> list[DiffResult]:
    return [
        DiffResult(DiffOperation.CREATE, PRODUCTS, slug, desired=make_product(slug))
        for slug in slugs
    ]


def _updated(slug: str) -> DiffResult:
    return DiffResult(
        DiffOperation.UPDATE,
        PRODUCTS,
        slug,
        current=make_product(slug),
        desired=make_product(slug, name="Renamed"),
        changes=(DiffChange("name", slug.title(), "Renamed"),),
    )


class TestStageOrder:
    """Tests for the stage list."""

    def test_order_and_names(self) -> None:
        """Test that stages run dependencies first and validate cleanly."""
        names = [stage.name for stage in get_all_stages()]

        assert names[0] == StageNames.VALIDATION
        assert names.index(StageNames.CATEGORIES) < names.index(StageNames.PRODUCTS)
        assert names.index(StageNames.PRODUCT_TYPES) < names.index(StageNames.PRODUCTS)
        assert names.index(StageNames.CHANNELS) < names.index(StageNames.PRODUCTS)
        assert names.index(StageNames.ATTRIBUTE_CHOICES) == names.index(StageNames.PRODUCTS) - 1
        assert names.index(StageNames.PAGE_TYPES) < names.index(StageNames.MODELS)
        assert names.index(StageNames.MODELS) < names.index(StageNames.MENUS)
        assert names[-1] == StageNames.MENUS

    def test_preflight_skipped_without_product_changes(self) -> None:
        """Test the preflight's custom skip predicate."""
        saleor = FakeSaleor()
        assert attribute_choices_preflight_stage.skip(_context(saleor)) is True
        summary = DiffSummary.from_results(_created("a"))
        assert attribute_choices_preflight_stage.skip(_context(saleor, summary)) is False


class TestSimpleStages:
    """Tests for stages that hand a whole section to one service call."""

    @pytest.mark.asyncio
    async def test_validation_wraps_load_errors(self) -> None:
        """Test that a failing load fails the validation stage."""
        saleor = FakeSaleor()
        saleor.fail("load", ValueError("broken yaml"))

        with pytest.raises(StageError, match="Configuration validation failed: broken yaml"):
            await validate_configuration(_context(saleor))

    @pytest.mark.asyncio
    async def test_shop_settings(self) -> None:
        """Test that shop settings are passed through and absent settings skipped."""
        saleor = FakeSaleor(local=SaleorConfig(shop=ShopSettings(header_text="Hi")))
        await update_shop_settings(_context(saleor))
        assert saleor.called("update_settings") == [ShopSettings(header_text="Hi")]

        empty = FakeSaleor()
        await update_shop_settings(_context(empty))
        assert empty.called("update_settings") == []

    @pytest.mark.asyncio
    async def test_section_failure_is_wrapped(self) -> None:
        """Test that service errors become a StageError naming the section."""
        saleor = FakeSaleor(local=SaleorConfig(channels=[make_channel()]))
        saleor.fail("bootstrap_channels", RuntimeError("currency not supported"))

        with pytest.raises(StageError) as exc_info:
            await manage_channels(_context(saleor))
        assert str(exc_info.value) == "Failed to manage channels: currency not supported"

    @pytest.mark.asyncio
    async def test_empty_section_calls_nothing(self) -> None:
        """Test that an empty section makes no service call."""
        saleor = FakeSaleor()
        await manage_channels(_context(saleor))
        assert saleor.called("bootstrap_channels") == []


class TestProductTypesStage:
    """Tests for the concurrent product type stage."""

    @pytest.mark.asyncio
    async def test_aggregates_failures(self) -> None:
        """Test that one failing product type yields an aggregate error."""
        saleor = FakeSaleor(
            local=SaleorConfig(
                product_types=[make_product_type("T-Shirt"), make_product_type("Mug")]
            )
        )
        saleor.fail("bootstrap_product_type", ValueError("Attribute Size not found"), "Mug")

        with pytest.raises(DeploymentError) as exc_info:
            await manage_product_types(_context(saleor))

        error = exc_info.value
        assert error.kind == ErrorKind.STAGE_AGGREGATE
        assert isinstance(error.payload, StageAggregateFailure)
        assert error.payload.successes == ("T-Shirt",)
        assert [f.entity for f in error.payload.failures] == ["Mug"]
        assert len(saleor.called("bootstrap_product_type")) == 2


class TestProductsStage:
    """Tests for the chunked products stage."""

    @pytest.mark.asyncio
    async def test_entity_results_follow_diff_operations(self) -> None:
        """Test that each product yields a result with its diff operation."""
        saleor = FakeSaleor(local=SaleorConfig(products=[make_product("a"), make_product("b")]))
        summary = DiffSummary.from_results([*_created("a"), _updated("b")])

        results = await manage_products(_context(saleor, summary))

        assert [(r.name, r.operation, r.success) for r in results] == [
            ("a", "create", True),
            ("b", "update", True),
        ]

    @pytest.mark.asyncio
    async def test_no_products(self) -> None:
        """Test that an empty products section returns no results."""
        assert await manage_products(_context(FakeSaleor())) == []

    @pytest.mark.asyncio
    async def test_partial_failure(self) -> None:
        """Test that failing products are isolated from the rest."""
        products = [make_product(slug) for slug in ("a", "b", "c", "d")]
        saleor = FakeSaleor(local=SaleorConfig(products=products))
        saleor.fail("bootstrap_product", ValueError("Category not found: shoes"), "c")

        with pytest.raises(DeploymentError) as exc_info:
            summary = DiffSummary.from_results(_created("a", "b", "c", "d"))
            await manage_products(_context(saleor, summary))

        payload = exc_info.value.payload
        assert isinstance(payload, StageAggregateFailure)
        assert payload.stage_name == StageNames.PRODUCTS
        assert payload.successes == ("a", "b", "d")
        assert [(f.entity, f.message) for f in payload.failures] == [
            ("c", "Category not found: shoes")
        ]

    @pytest.mark.asyncio
    async def test_partial_failure_carries_operations(self) -> None:
        """Test that successes and failures keep their diff operation."""
        products = [make_product(slug) for slug in ("a", "b", "c")]
        saleor = FakeSaleor(local=SaleorConfig(products=products))
        saleor.fail("bootstrap_product", ValueError("boom"), "b")
        summary = DiffSummary.from_results([_updated("a"), *_created("b", "c")])

        with pytest.raises(DeploymentError) as exc_info:
            await manage_products(_context(saleor, summary))

        payload = exc_info.value.payload
        assert isinstance(payload, StageAggregateFailure)
        assert payload.operation_of("a") == "update"
        assert payload.operation_of("b") == "create"
        assert payload.operation_of("c") == "create"

    @pytest.mark.asyncio
    async def test_large_catalogue_is_chunked(self) -> None:
        """Test that every product is bootstrapped across chunks."""
        products = [make_product(f"p{i}") for i in range(12)]
        saleor = FakeSaleor(local=SaleorConfig(products=products))

        with patch("configurator.stages.profile_for", return_value=ChunkProfile(5, 0)):
            results = await manage_products(_context(saleor))

        assert len(results) == 12
        assert [p.slug for p in saleor.called("bootstrap_product")] == [f"p{i}" for i in range(12)]


def _warehouse(slug: str) -> WarehouseInput:
    return WarehouseInput(name=slug.title(), slug=slug)


class TestChunkedBulkStages:
    """Tests for section stages processed in chunks."""

    @pytest.mark.asyncio
    async def test_warehouses_use_their_chunk_profile(self) -> None:
        """Test that warehouses are sent in chunks sized by their profile."""
        warehouses = [_warehouse(f"w{i}") for i in range(7)]
        saleor = FakeSaleor(local=SaleorConfig(warehouses=warehouses))

        with patch(
            "configurator.stages.profile_for", return_value=ChunkProfile(3, 0)
        ) as profile_for:
            await manage_warehouses(_context(saleor))

        profile_for.assert_called_once_with(WAREHOUSES)
        assert [[w.slug for w in call] for call in saleor.called("bootstrap_warehouses")] == [
            ["w0", "w1", "w2"],
            ["w3", "w4", "w5"],
            ["w6"],
        ]

    @pytest.mark.asyncio
    async def test_failed_chunk_fails_its_items_only(self) -> None:
        """Test that a failing chunk is reported per item and later chunks still run."""
        warehouses = [_warehouse(f"w{i}") for i in range(5)]
        saleor = FakeSaleor(local=SaleorConfig(warehouses=warehouses))
        saleor.fail("bootstrap_warehouses", RuntimeError("address invalid"), "w2")
        created = [
            DiffResult(DiffOperation.CREATE, WAREHOUSES, w.slug, desired=w) for w in warehouses
        ]

        with patch("configurator.stages.profile_for", return_value=ChunkProfile(2, 0)):
            with pytest.raises(DeploymentError) as exc_info:
                await manage_warehouses(_context(saleor, DiffSummary.from_results(created)))

        payload = exc_info.value.payload
        assert isinstance(payload, StageAggregateFailure)
        assert payload.stage_name == StageNames.WAREHOUSES
        assert payload.successes == ("w0", "w1", "w4")
        assert [(f.entity, f.message) for f in payload.failures] == [
            ("w2", "address invalid"),
            ("w3", "address invalid"),
        ]
        assert payload.operation_of("w2") == "create"

    @pytest.mark.asyncio
    async def test_categories_chunk_root_categories(self) -> None:
        """Test that whole category trees travel together."""
        categories = [
            make_category("apparel", subcategories=[{"name": "Shirts", "slug": "shirts"}]),
            make_category("books"),
        ]
        saleor = FakeSaleor(local=SaleorConfig(categories=categories))

        await manage_categories(_context(saleor))

        calls = saleor.called("bootstrap_categories")
        assert len(calls) == 1
        assert [c.slug for c in calls[0]] == ["apparel", "books"]
        assert calls[0][0].subcategories[0].slug == "shirts"


class TestModelsStage:
    """Tests for the content models stage."""

    @pytest.mark.asyncio
    async def test_bootstraps_every_model(self) -> None:
        """Test that each model is created or updated."""
        saleor = FakeSaleor(local=SaleorConfig(models=[make_model("about"), make_model("faq")]))

        await manage_models(_context(saleor))

        assert [m.slug for m in saleor.called("bootstrap_model")] == ["about", "faq"]

    @pytest.mark.asyncio
    async def test_failure_is_aggregated(self) -> None:
        """Test that a model with a missing page type fails alone."""
        saleor = FakeSaleor(local=SaleorConfig(models=[make_model("about"), make_model("faq")]))
        saleor.fail("bootstrap_model", LookupError("PageType not found: Landing"), "faq")
        summary = DiffSummary.from_results(
            [DiffResult(DiffOperation.CREATE, MODELS, "faq", desired=make_model("faq"))]
        )

        with pytest.raises(DeploymentError) as exc_info:
            await manage_models(_context(saleor, summary))

        payload = exc_info.value.payload
        assert isinstance(payload, StageAggregateFailure)
        assert payload.stage_name == StageNames.MODELS
        assert payload.successes == ("about",)
        assert payload.operation_of("faq") == "create"

    @pytest.mark.asyncio
    async def test_no_models(self) -> None:
        """Test that an empty section makes no call."""
        saleor = FakeSaleor()
        await manage_models(_context(saleor))
        assert saleor.called("bootstrap_model") == []


class TestAttributeChoicesPreflight:
    """Tests for the attribute choice preflight."""

    @pytest.mark.asyncio
    async def test_adds_missing_choice_values(self) -> None:
        """Test that unknown dropdown values are added and the cache primed."""
        products = [
            make_product("a", attributes={"Color": "Blue", "Material": "Wool"}),
            make_product(
                "b",
                attributes={"Color": ["Red", "Green"]},
                variants=[{"sku": "B-1", "attributes": {"Size": "XL"}}],
            ),
        ]
        saleor = FakeSaleor(
            local=SaleorConfig(products=products),
            attributes=[
                RemoteAttribute("attr-1", "Color", "DROPDOWN", "color", ("Red",)),
                RemoteAttribute("attr-2", "Material", "PLAIN_TEXT", "material"),
                RemoteAttribute("attr-3", "Size", "MULTISELECT", "size", ("XL",)),
            ],
        )
        context = _context(saleor)

        await prepare_attribute_choices(context)

        assert saleor.called("get_attributes_by_names") == [["Color", "Material", "Size"]]
        assert saleor.called("update_attribute") == [("attr-1", ["Blue", "Green"])]
        assert saleor.primed_cache is context.attribute_cache
        assert context.attribute_cache.get_stats().product_attribute_count == 3
        assert context.attribute_cache.get_product_attribute("Color").id == "attr-1"

    @pytest.mark.asyncio
    async def test_failure_is_aggregated(self) -> None:
        """Test that a failed value update raises an aggregate error."""
        saleor = FakeSaleor(
            local=SaleorConfig(products=[make_product("a", attributes={"Color": "Blue"})]),
            attributes=[RemoteAttribute("attr-1", "Color", "DROPDOWN", "color")],
        )
        saleor.fail("update_attribute", RuntimeError("permission denied"), "Color")

        with pytest.raises(DeploymentError) as exc_info:
            await prepare_attribute_choices(_context(saleor))

        payload = exc_info.value.payload
        assert isinstance(payload, StageAggregateFailure)
        assert payload.stage_name == StageNames.ATTRIBUTE_CHOICES
        assert [f.entity for f in payload.failures] == ["Color"]

    @pytest.mark.asyncio
    async def test_nothing_to_prepare(self) -> None:
        """Test that products without attributes skip the lookup."""
        saleor = FakeSaleor(local=SaleorConfig(products=[make_product("a")]))
        await prepare_attribute_choices(_context(saleor))
        assert saleor.called("get_attributes_by_names") == []
