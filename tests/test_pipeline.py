"""Tests for the fail-fast and enhanced deployment pipelines."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from configurator.diff import (
    CATEGORIES,
    PRODUCTS,
    DiffOperation,
    DiffResult,
    DiffSummary,
)
from configurator.errors import (
    EntityFailure,
    ExitCode,
    StageExecutionError,
    stage_aggregate_error,
)
from configurator.pipeline import (
    DeploymentContext,
    DeploymentPipeline,
    DeploymentStage,
    EnhancedDeploymentPipeline,
    execute_enhanced_deployment,
)
from configurator.resilience import record_rate_limit, record_retry
from configurator.results import EntityResult, StageStatus
from saleor_mock import FakeSaleor, make_product


def _context(summary: DiffSummary | None = None) -> DeploymentContext:
    return DeploymentContext(services=FakeSaleor().container(), summary=summary or DiffSummary())


def _product_summary(*slugs: str) -> DiffSummary:
    return DiffSummary.from_results(
        DiffResult(
            operation=DiffOperation.CREATE,
            entity_type=PRODUCTS,
            entity_name=slug,
            desired=make_product(slug),
        )
        for slug in slugs
    )


class TestDeploymentStage:
    """Tests for DeploymentStage skip decisions."""

    def test_unbound_stage_always_runs(self) -> None:
        """Test that a stage without entity type is never skipped."""
        stage = DeploymentStage("Validate", AsyncMock())
        assert stage.skip(_context()) is False

    def test_shared_rule(self) -> None:
        """Test that entity-bound stages use the dependency skip rule."""
        context = _context(_product_summary("a"))
        assert DeploymentStage("C", AsyncMock(), CATEGORIES).skip(context) is False
        assert DeploymentStage("C", AsyncMock(), CATEGORIES).skip(_context()) is True

    def test_custom_predicate_wins(self) -> None:
        """Test that skip_when replaces the shared rule."""
        stage = DeploymentStage("P", AsyncMock(), PRODUCTS, skip_when=lambda ctx: True)
        assert stage.skip(_context(_product_summary("a"))) is True


class TestDeploymentPipeline:
    """Tests for the fail-fast pipeline."""

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self) -> None:
        """Test that later stages never run and the error names the stage."""
        a = AsyncMock(return_value=None)
        b = AsyncMock(side_effect=RuntimeError("remote said no"))
        c = AsyncMock(return_value=None)
        pipeline = DeploymentPipeline(
            [
                DeploymentStage("Stage A", a),
                DeploymentStage("Stage B", b),
                DeploymentStage("Stage C", c),
            ]
        )

        with pytest.raises(StageExecutionError) as exc_info:
            await pipeline.execute(_context())

        assert a.await_count == 1
        assert b.await_count == 1
        c.assert_not_awaited()
        assert "Stage B" in str(exc_info.value)
        assert "remote said no" in str(exc_info.value)
        assert exc_info.value.stage_name == "Stage B"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert set(exc_info.value.metrics.stage_durations) == {"Stage A", "Stage B"}

    @pytest.mark.asyncio
    async def test_skipped_stages_not_timed(self) -> None:
        """Test that skipped stages do not run and get no duration."""
        body = AsyncMock()
        pipeline = DeploymentPipeline().add_stage(DeploymentStage("Categories", body, CATEGORIES))

        metrics = await pipeline.execute(_context())

        body.assert_not_awaited()
        assert metrics.stage_durations == {}

    @pytest.mark.asyncio
    async def test_entity_counts_recorded_on_success(self) -> None:
        """Test entity counters come from the diff of completed stages."""
        pipeline = DeploymentPipeline([DeploymentStage("Products", AsyncMock(), PRODUCTS)])
        metrics = await pipeline.execute(_context(_product_summary("a", "b")))

        assert metrics.entity_counts[PRODUCTS].created == 2
        assert metrics.total_created == 2

    @pytest.mark.asyncio
    async def test_resilience_attributed_per_stage(self) -> None:
        """Test that events recorded inside a stage land on that stage."""

        async def noisy(context: DeploymentContext) -> None:
            record_rate_limit()
            record_rate_limit()
            record_retry()

        async def quiet(context: DeploymentContext) -> None:
            record_retry()

        pipeline = DeploymentPipeline(
            [DeploymentStage("Noisy", noisy), DeploymentStage("Quiet", quiet)]
        )
        metrics = await pipeline.execute(_context())

        assert metrics.stage_resilience["Noisy"].to_dict() == {
            "rateLimitHits": 2,
            "retryAttempts": 1,
            "graphqlErrors": 0,
            "networkErrors": 0,
        }
        assert metrics.stage_resilience["Quiet"].retry_attempts == 1
        assert metrics.resilience_totals.retry_attempts == 2


class TestEnhancedDeploymentPipeline:
    """Tests for the continue-on-failure pipeline."""

    @pytest.mark.asyncio
    async def test_continues_after_failure(self) -> None:
        """Test that a failing stage is recorded and later stages still run."""
        later = AsyncMock(return_value=None)
        pipeline = EnhancedDeploymentPipeline(
            [
                DeploymentStage("Broken", AsyncMock(side_effect=ValueError("bad input"))),
                DeploymentStage("Later", later),
            ]
        )

        metrics, result = await pipeline.execute(_context())

        later.assert_awaited_once()
        assert [s.status for s in result.stages] == [StageStatus.FAILED, StageStatus.SUCCESS]
        assert result.stages[0].error == "bad input"
        assert result.overall_status == StageStatus.PARTIAL
        assert set(metrics.stage_durations) == {"Broken", "Later"}

    @pytest.mark.asyncio
    async def test_partial_stage(self) -> None:
        """Test that an aggregate error with successes marks the stage partial."""
        error = stage_aggregate_error(
            "Managing products",
            [EntityFailure("d", ValueError("Category not found: shoes"))],
            ["a", "b", "c"],
        )
        pipeline = EnhancedDeploymentPipeline(
            [DeploymentStage("Managing products", AsyncMock(side_effect=error), PRODUCTS)]
        )

        _, result = await pipeline.execute(_context(_product_summary("a", "b", "c", "d")))

        stage = result.stages[0]
        assert stage.status == StageStatus.PARTIAL
        assert stage.success_count == 3
        assert stage.failure_count == 1
        failed = [e for e in stage.entities if not e.success][0]
        assert failed.name == "d"
        assert any("category" in s.lower() for s in failed.suggestions)

    @pytest.mark.asyncio
    async def test_partial_stage_counts_successful_entities(self) -> None:
        """Test that entity counts cover the entities that succeeded."""
        error = stage_aggregate_error(
            "Managing products",
            [EntityFailure("d", ValueError("Category not found: shoes"))],
            ["a", "b", "c"],
        )
        pipeline = EnhancedDeploymentPipeline(
            [DeploymentStage("Managing products", AsyncMock(side_effect=error), PRODUCTS)]
        )

        metrics, _ = await pipeline.execute(_context(_product_summary("a", "b", "c", "d")))

        assert metrics.entity_counts[PRODUCTS].created == 3
        assert metrics.entity_counts[PRODUCTS].total == 3

    @pytest.mark.asyncio
    async def test_aggregate_without_successes_is_failed(self) -> None:
        """Test that an aggregate error with no successes marks the stage failed."""
        error = stage_aggregate_error("S", [EntityFailure("x", ValueError("boom"))])
        pipeline = EnhancedDeploymentPipeline([DeploymentStage("S", AsyncMock(side_effect=error))])

        _, result = await pipeline.execute(_context())

        assert result.stages[0].status == StageStatus.FAILED
        assert result.overall_status == StageStatus.FAILED

    @pytest.mark.asyncio
    async def test_skipped_stages_reported(self) -> None:
        """Test that skipped stages appear with skipped status."""
        pipeline = EnhancedDeploymentPipeline(
            [
                DeploymentStage("Categories", AsyncMock(), CATEGORIES),
                DeploymentStage("Validate", AsyncMock()),
            ]
        )
        _, result = await pipeline.execute(_context())

        assert [s.status for s in result.stages] == [StageStatus.SKIPPED, StageStatus.SUCCESS]
        assert result.summary.skipped_stages == 1
        assert result.overall_status == StageStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_entity_results_from_stage_body(self) -> None:
        """Test that returned entity results reach the stage result."""
        entities = [EntityResult("a", "create", True), EntityResult("b", "update", True)]
        pipeline = EnhancedDeploymentPipeline(
            [DeploymentStage("Products", AsyncMock(return_value=entities), PRODUCTS)]
        )
        _, result = await pipeline.execute(_context(_product_summary("a")))

        assert result.summary.total_entities == 2
        assert result.summary.successful_entities == 2


class TestExecuteEnhancedDeployment:
    """Tests for the exit code wrapper."""

    @pytest.mark.asyncio
    async def test_exit_codes(self) -> None:
        """Test success, partial and failed exit codes."""
        ok = await execute_enhanced_deployment([DeploymentStage("A", AsyncMock())], _context())
        assert ok.exit_code == ExitCode.SUCCESS
        assert not ok.should_exit

        partial = await execute_enhanced_deployment(
            [
                DeploymentStage("A", AsyncMock()),
                DeploymentStage("B", AsyncMock(side_effect=RuntimeError("x"))),
            ],
            _context(),
        )
        assert partial.exit_code == ExitCode.PARTIAL_FAILURE

        failed = await execute_enhanced_deployment(
            [DeploymentStage("B", AsyncMock(side_effect=RuntimeError("x")))], _context()
        )
        assert failed.exit_code == ExitCode.UNEXPECTED
        assert failed.should_exit
