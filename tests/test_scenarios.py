"""End-to-end deployment scenarios through SaleorConfigurator.

These drive diff and deploy exactly as the CLI does, against FakeSaleor,
and check the outcome the user would see: stage statuses, entity results,
metrics and the exit code.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

import pytest

from configurator.config import Settings
from configurator.config_loader import LocalConfigSource
from configurator.configurator import ConfigFileExistsError, SaleorConfigurator
from configurator.diff import PRODUCTS
from configurator.errors import ExitCode
from configurator.models import SaleorConfig
from configurator.pipeline import EnhancedDeploymentOutcome
from configurator.resilience import record_rate_limit, record_retry
from configurator.results import StageResult, StageStatus
from configurator.stages import StageNames
from saleor_mock import FakeSaleor, make_category, make_channel, make_product


def _configurator(
    saleor: FakeSaleor, tmp_path: Path, max_reports: int = 5
) -> SaleorConfigurator:
    settings = Settings(report_dir=tmp_path / "reports", max_reports=max_reports)
    return SaleorConfigurator(saleor.container(), settings)


def _products(*slugs: str) -> FakeSaleor:
    return FakeSaleor(local=SaleorConfig(products=[make_product(s) for s in slugs]))


def _stage(outcome: EnhancedDeploymentOutcome, name: str) -> StageResult:
    return next(s for s in outcome.result.stages if s.name == name)


class TestMinimalDeployment:
    """Two new products and nothing else."""

    @pytest.mark.asyncio
    async def test_products_deployed(self, tmp_path: Path) -> None:
        """Test entity results, dependency stages and metrics."""
        saleor = _products("a", "b")
        configurator = _configurator(saleor, tmp_path)

        summary = await configurator.diff()
        outcome = await configurator.deploy(summary)

        assert summary.creates == 2
        assert outcome.exit_code == ExitCode.SUCCESS
        assert outcome.result.overall_status == StageStatus.SUCCESS
        assert outcome.result.summary.total_entities == 2
        assert [e.operation for e in _stage(outcome, StageNames.PRODUCTS).entities] == [
            "create",
            "create",
        ]
        for name in (StageNames.CATEGORIES, StageNames.PRODUCT_TYPES, StageNames.CHANNELS):
            assert _stage(outcome, name).status == StageStatus.SUCCESS
        assert _stage(outcome, StageNames.MENUS).status == StageStatus.SKIPPED
        assert outcome.metrics.entity_counts[PRODUCTS].created == 2

    @pytest.mark.asyncio
    async def test_rerun_has_nothing_to_do(self, tmp_path: Path) -> None:
        """Test that a deployed configuration diffs clean."""
        config = SaleorConfig(channels=[make_channel("web")], categories=[make_category()])
        configurator = _configurator(FakeSaleor(local=config, remote=config), tmp_path)

        summary = await configurator.diff()

        assert summary.has_changes is False


class TestResilienceRollUp:
    """Rate limits and retries inside a stage roll up into the metrics."""

    @pytest.mark.asyncio
    async def test_events_attributed_to_products(self, tmp_path: Path) -> None:
        """Test per-stage attribution and totals."""
        saleor = _products("a", "b")

        def throttled(product: object) -> None:
            record_rate_limit()
            record_retry()

        saleor.on("bootstrap_product", throttled)
        configurator = _configurator(saleor, tmp_path)

        outcome = await configurator.deploy(await configurator.diff())

        products = outcome.metrics.stage_resilience[StageNames.PRODUCTS]
        assert products.rate_limit_hits == 2
        assert products.retry_attempts == 2
        assert outcome.metrics.resilience_totals.rate_limit_hits == 2


class TestPartialProducts:
    """One product out of four fails."""

    @pytest.mark.asyncio
    async def test_partial_failure(self, tmp_path: Path) -> None:
        """Test the partial status, exit code and recovery suggestions."""
        saleor = _products("a", "b", "c", "d")
        saleor.fail("bootstrap_product", LookupError("Category not found: shoes"), entity="c")
        configurator = _configurator(saleor, tmp_path)

        outcome = await configurator.deploy(await configurator.diff())

        assert outcome.exit_code == ExitCode.PARTIAL_FAILURE
        assert outcome.result.overall_status == StageStatus.PARTIAL
        stage = _stage(outcome, StageNames.PRODUCTS)
        assert stage.status == StageStatus.PARTIAL
        succeeded = [e.name for e in stage.entities if e.success]
        failed = [e for e in stage.entities if not e.success]
        assert succeeded == ["a", "b", "d"]
        assert [e.name for e in failed] == ["c"]
        assert len(failed[0].suggestions) == 3
        assert _stage(outcome, StageNames.COLLECTIONS).status == StageStatus.SKIPPED
        assert outcome.metrics.entity_counts[PRODUCTS].created == 3

    @pytest.mark.asyncio
    async def test_updates_and_creates_keep_their_operation(self, tmp_path: Path) -> None:
        """Test entity operations and counts when updates and creates are mixed."""
        local = SaleorConfig(
            products=[
                make_product("a", name="Renamed"),
                make_product("b"),
                make_product("c", name="Renamed"),
                make_product("d"),
            ]
        )
        remote = SaleorConfig(products=[make_product("a"), make_product("c")])
        saleor = FakeSaleor(local=local, remote=remote)
        saleor.fail("bootstrap_product", LookupError("Category not found: shoes"), entity="b")
        configurator = _configurator(saleor, tmp_path)

        outcome = await configurator.deploy(await configurator.diff())

        stage = _stage(outcome, StageNames.PRODUCTS)
        assert stage.status == StageStatus.PARTIAL
        assert sorted((e.name, e.operation, e.success) for e in stage.entities) == [
            ("a", "update", True),
            ("b", "create", False),
            ("c", "update", True),
            ("d", "create", True),
        ]
        counts = outcome.metrics.entity_counts[PRODUCTS]
        assert (counts.created, counts.updated, counts.deleted) == (1, 2, 0)


class TestSectionFilter:
    """Deploying a subset of sections."""

    @pytest.mark.asyncio
    async def test_excluded_products_are_not_deployed(self, tmp_path: Path) -> None:
        """Test that excluding products skips product work entirely."""
        saleor = FakeSaleor(
            local=SaleorConfig(channels=[make_channel("web")], products=[make_product("a")])
        )
        configurator = _configurator(saleor, tmp_path)

        summary = await configurator.diff(exclude=["products"])
        outcome = await configurator.deploy(summary)

        assert summary.total_changes == 1
        assert saleor.called("bootstrap_product") == []
        assert len(saleor.called("bootstrap_channels")) == 1
        assert _stage(outcome, StageNames.PRODUCTS).status == StageStatus.SKIPPED
        assert outcome.exit_code == ExitCode.SUCCESS


class TestReports:
    """Report writing and retention."""

    @pytest.mark.asyncio
    async def test_managed_reports_are_pruned(self, tmp_path: Path) -> None:
        """Test that only the newest reports are kept."""
        reports = tmp_path / "reports"
        reports.mkdir()
        for i in range(3):
            old = reports / f"deployment-report-2024-01-0{i + 1}_00-00-00.json"
            old.write_text("{}")
            os.utime(old, (1_700_000_000 + i, 1_700_000_000 + i))

        configurator = _configurator(_products("a"), tmp_path, max_reports=2)
        summary = await configurator.diff()
        outcome = await configurator.deploy(summary)

        path = configurator.save_report(outcome, summary)

        remaining = sorted(p.name for p in reports.iterdir())
        assert path.name in remaining
        assert len(remaining) == 2

    @pytest.mark.asyncio
    async def test_custom_path_is_not_pruned(self, tmp_path: Path) -> None:
        """Test that a report outside the managed directory leaves it alone."""
        reports = tmp_path / "reports"
        reports.mkdir()
        for i in range(3):
            (reports / f"deployment-report-2024-01-0{i + 1}_00-00-00.json").write_text("{}")

        configurator = _configurator(_products("a"), tmp_path, max_reports=1)
        summary = await configurator.diff()
        outcome = await configurator.deploy(summary)

        path = configurator.save_report(outcome, summary, tmp_path / "custom.json")

        assert path == tmp_path / "custom.json"
        assert len(list(reports.iterdir())) == 3


class TestPullThenDiff:
    """Pulling the remote state gives a file that diffs clean."""

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        """Test pull followed by diff against the same instance."""
        remote = SaleorConfig(
            channels=[make_channel("web")],
            categories=[
                make_category("apparel", subcategories=[{"name": "Shirts", "slug": "shirts"}])
            ],
            products=[make_product("tee", category="shirts")],
        )
        target = tmp_path / "config.yml"
        saleor = FakeSaleor(remote=remote)
        services = replace(saleor.container(), config_storage=LocalConfigSource(target))
        configurator = SaleorConfigurator(services, Settings(config_path=target))

        await configurator.pull()
        summary = await configurator.diff()

        assert target.exists()
        assert summary.has_changes is False

    @pytest.mark.asyncio
    async def test_existing_file_needs_force(self, tmp_path: Path) -> None:
        """Test that pull refuses to overwrite without force."""
        target = tmp_path / "config.yml"
        target.write_text("channels: []\n")
        configurator = SaleorConfigurator(FakeSaleor().container(), Settings(config_path=target))

        with pytest.raises(ConfigFileExistsError):
            await configurator.pull()
        await configurator.pull(force=True)

        assert target.read_text() == "{}\n"
