"""Tests for stage results, overall status and the result formatter."""

from datetime import UTC, datetime, timedelta

from configurator.errors import EntityFailure, ExitCode, stage_aggregate_error
from configurator.results import (
    DeploymentResultCollector,
    DeploymentResultFormatter,
    EntityResult,
    StageResult,
    StageStatus,
    extract_entity_results,
    extract_suggestions,
    overall_status,
)

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _stage(status: StageStatus, name: str = "S", *entities: EntityResult) -> StageResult:
    return StageResult(name, status, NOW, NOW + timedelta(milliseconds=1500), tuple(entities))


class TestOverallStatus:
    """Tests for the overall status rule."""

    def test_all_success(self) -> None:
        """Test success when every stage succeeded."""
        assert overall_status([_stage(StageStatus.SUCCESS)]) == StageStatus.SUCCESS

    def test_all_skipped_is_success(self) -> None:
        """Test that a fully skipped run counts as a success."""
        assert overall_status([_stage(StageStatus.SKIPPED)]) == StageStatus.SUCCESS
        assert overall_status([]) == StageStatus.SUCCESS

    def test_failed_without_success(self) -> None:
        """Test failed when nothing succeeded."""
        stages = [_stage(StageStatus.FAILED), _stage(StageStatus.SKIPPED)]
        assert overall_status(stages) == StageStatus.FAILED

    def test_failed_with_partial_only(self) -> None:
        """Test that a partial stage does not count as a success."""
        stages = [_stage(StageStatus.FAILED), _stage(StageStatus.PARTIAL)]
        assert overall_status(stages) == StageStatus.FAILED

    def test_mixed_is_partial(self) -> None:
        """Test partial when some stages succeeded and some failed."""
        stages = [_stage(StageStatus.SUCCESS), _stage(StageStatus.FAILED)]
        assert overall_status(stages) == StageStatus.PARTIAL
        assert overall_status([_stage(StageStatus.PARTIAL)]) == StageStatus.PARTIAL


class TestDeploymentResultCollector:
    """Tests for the result collector."""

    def test_summary(self) -> None:
        """Test entity and stage counters."""
        collector = DeploymentResultCollector()
        collector.add_stage_result(
            _stage(
                StageStatus.PARTIAL,
                "Products",
                EntityResult("a", "create", True),
                EntityResult("b", "create", False, "boom"),
            )
        )
        collector.add_stage_result(_stage(StageStatus.SKIPPED, "Menus"))
        collector.add_stage_result(_stage(StageStatus.FAILED, "Channels"))
        collector.add_stage_result(_stage(StageStatus.SUCCESS, "Shop"))

        result = collector.get_result()
        summary = result.summary

        assert summary.total_entities == 2
        assert summary.successful_entities == 1
        assert summary.failed_entities == 1
        assert summary.skipped_stages == 1
        assert summary.completed_stages == 2
        assert summary.failed_stages == 1
        assert result.overall_status == StageStatus.PARTIAL
        assert result.total_duration_ms >= 0

    def test_stage_result_counts(self) -> None:
        """Test per-stage counters and duration."""
        stage = _stage(
            StageStatus.PARTIAL,
            "S",
            EntityResult("a", "create", True),
            EntityResult("b", "create", False),
        )
        assert (stage.success_count, stage.failure_count, stage.total_count) == (1, 1, 2)
        assert stage.duration_ms == 1500
        assert StageResult("S", StageStatus.SUCCESS, NOW).duration_ms is None


class TestDeploymentResultFormatter:
    """Tests for terminal rendering."""

    def test_partial_lists_failures_with_suggestions(self) -> None:
        """Test rendering of a partially completed run."""
        collector = DeploymentResultCollector()
        collector.add_stage_result(
            _stage(
                StageStatus.PARTIAL,
                "Managing products",
                EntityResult("a", "create", True),
                EntityResult(
                    "b",
                    "update",
                    False,
                    "Category not found: shoes",
                    extract_suggestions("Category not found: shoes"),
                ),
            )
        )
        collector.add_stage_result(_stage(StageStatus.SKIPPED, "Managing menus"))

        text = DeploymentResultFormatter().format(collector.get_result())

        assert "Deployment Partially Completed" in text
        assert "1 entities deployed successfully" in text
        assert "1 entities failed to deploy" in text
        assert "Managing products (1.5s)" in text
        assert "✅ CREATE: a" in text
        assert "❌ UPDATE: b" in text
        assert "Error: Category not found: shoes" in text
        assert "💡 Verify the category exists" in text
        assert "  • Managing menus" in text
        assert "💡 Next Steps:" in text

    def test_success(self) -> None:
        """Test rendering of a clean run."""
        collector = DeploymentResultCollector()
        collector.add_stage_result(_stage(StageStatus.SUCCESS, "Updating shop settings"))

        text = DeploymentResultFormatter().format(collector.get_result())

        assert text.startswith("✅ Deployment Completed Successfully")
        assert "🎉 All changes deployed successfully!" in text

    def test_stage_error_without_entities(self) -> None:
        """Test that a failed stage without entity results shows its error."""
        collector = DeploymentResultCollector()
        collector.add_stage_result(
            StageResult("Managing channels", StageStatus.FAILED, NOW, NOW, (), "boom")
        )
        text = DeploymentResultFormatter().format(collector.get_result())
        assert "Deployment Failed" in text
        assert "    Error: boom" in text

    def test_exit_codes(self) -> None:
        """Test the status to exit code mapping."""
        formatter = DeploymentResultFormatter()
        assert formatter.get_exit_code(StageStatus.SUCCESS) == ExitCode.SUCCESS == 0
        assert formatter.get_exit_code(StageStatus.PARTIAL) == ExitCode.PARTIAL_FAILURE == 5
        assert formatter.get_exit_code(StageStatus.FAILED) == ExitCode.UNEXPECTED == 1


class TestSuggestions:
    """Tests for reference suggestions."""

    def test_category(self) -> None:
        """Test category suggestions."""
        suggestions = extract_suggestions("Category not found: shoes")
        assert len(suggestions) == 3
        assert suggestions[2] == "Run 'saleor-configurator pull' to see available categories"

    def test_product_type_and_channel(self) -> None:
        """Test product type and channel suggestions."""
        assert len(extract_suggestions("ProductType not found: Mug")) == 2
        assert len(extract_suggestions("Channel not found: web")) == 2

    def test_no_match(self) -> None:
        """Test that unrelated messages produce nothing."""
        assert extract_suggestions("Category slug is taken") == ()
        assert extract_suggestions("boom") == ()


class TestExtractEntityResults:
    """Tests for entity results carried by stage errors."""

    def test_from_aggregate(self) -> None:
        """Test successes and failures of an aggregate error."""
        error = stage_aggregate_error(
            "Managing products",
            [EntityFailure("b", ValueError("Channel not found: web"))],
            ["a"],
        )
        results = extract_entity_results(error)

        assert [(r.name, r.success) for r in results] == [("a", True), ("b", False)]
        assert results[1].error == "Channel not found: web"
        assert len(results[1].suggestions) == 2

    def test_operations_are_carried(self) -> None:
        """Test that each entity reports its own operation, defaulting to update."""
        error = stage_aggregate_error(
            "Managing products",
            [EntityFailure("b", ValueError("boom"))],
            ["a", "c"],
            {"a": "update", "b": "create"},
        )

        assert [(r.name, r.operation, r.success) for r in extract_entity_results(error)] == [
            ("a", "update", True),
            ("c", "update", True),
            ("b", "create", False),
        ]

    def test_other_errors(self) -> None:
        """Test that plain exceptions carry no entity results."""
        assert extract_entity_results(RuntimeError("boom")) == []
