"""Tests for deployment metrics collection."""

import pytest

from configurator.diff import DiffOperation
from configurator.metrics import EntityCount, MetricsCollector, format_duration
from configurator.resilience import ResilienceTracker, record_rate_limit


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestFormatDuration:
    """Tests for duration rendering."""

    @pytest.mark.parametrize(
        ("ms", "expected"),
        [(0, "0ms"), (999, "999ms"), (1000, "1.0s"), (1500, "1.5s"), (61_000, "1m 1s")],
    )
    def test_format(self, ms: int, expected: str) -> None:
        """Test each duration band."""
        assert format_duration(ms) == expected


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_stage_durations(self) -> None:
        """Test stage timing with an injected clock."""
        clock = FakeClock()
        collector = MetricsCollector(clock=clock)

        collector.start_stage("A")
        clock.now += 0.25
        collector.end_stage("A")
        clock.now += 1
        metrics = collector.complete()

        assert metrics.stage_durations == {"A": 250}
        assert metrics.duration_ms == 1250

    def test_end_without_start_is_ignored(self) -> None:
        """Test that ending an unknown stage records nothing."""
        collector = MetricsCollector()
        collector.end_stage("never")
        assert collector.get_metrics().stage_durations == {}

    def test_entity_counts(self) -> None:
        """Test entity counters accept operations and strings."""
        collector = MetricsCollector()
        collector.record_entity("Products", DiffOperation.CREATE)
        collector.record_entity("Products", "create")
        collector.record_entity("Products", "update")
        collector.record_entity("Channels", DiffOperation.DELETE)
        metrics = collector.complete()

        assert metrics.entity_counts["Products"] == EntityCount(created=2, updated=1)
        assert metrics.entity_counts["Channels"].total == 1
        assert (metrics.total_created, metrics.total_updated, metrics.total_deleted) == (2, 1, 1)

    def test_resilience_snapshot_pulled_at_stage_end(self) -> None:
        """Test that a stage's resilience counters land in the metrics."""
        tracker = ResilienceTracker()
        collector = MetricsCollector(tracker)

        collector.start_stage("A")
        with tracker.stage("A"):
            record_rate_limit()
        collector.end_stage("A")

        metrics = collector.complete()
        assert metrics.stage_resilience["A"].rate_limit_hits == 1
        assert metrics.resilience_totals.rate_limit_hits == 1

    def test_complete_freezes_snapshot(self) -> None:
        """Test that get_metrics after completion returns the final values."""
        clock = FakeClock()
        collector = MetricsCollector(clock=clock)
        final = collector.complete()
        clock.now += 5
        assert collector.get_metrics().duration_ms == final.duration_ms == 0
