"""Deployment timing and entity counters."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .diff import DiffOperation
from .resilience import EMPTY_METRICS, ResilienceTracker, StageResilienceMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityCount:
    created: int = 0
    updated: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.deleted


@dataclass(frozen=True)
class DeploymentMetrics:
    """Immutable snapshot of one deployment run's metrics.

    Attributes:
        duration_ms: Wall time from collector creation to completion.
        stage_durations: Stage name -> duration in milliseconds, in run order.
        entity_counts: Entity type -> created/updated/deleted counters.
        stage_resilience: Stage name -> frozen resilience counters.
    """

    start_time: datetime
    end_time: datetime
    duration_ms: int
    stage_durations: dict[str, int] = field(default_factory=dict)
    entity_counts: dict[str, EntityCount] = field(default_factory=dict)
    stage_resilience: dict[str, StageResilienceMetrics] = field(default_factory=dict)

    @property
    def resilience_totals(self) -> StageResilienceMetrics:
        total = EMPTY_METRICS
        for metrics in self.stage_resilience.values():
            total = total + metrics
        return total

    @property
    def total_created(self) -> int:
        return sum(c.created for c in self.entity_counts.values())

    @property
    def total_updated(self) -> int:
        return sum(c.updated for c in self.entity_counts.values())

    @property
    def total_deleted(self) -> int:
        return sum(c.deleted for c in self.entity_counts.values())


def format_duration(ms: float) -> str:
    """Render milliseconds as ``Nms``, ``N.Ns`` or ``Xm Ys``."""
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60_000:
        return f"{ms / 1000:.1f}s"
    minutes = int(ms // 60_000)
    seconds = int((ms % 60_000) // 1000)
    return f"{minutes}m {seconds}s"


def _operation_field(operation: DiffOperation | str) -> str:
    match DiffOperation(str(operation).upper()):
        case DiffOperation.CREATE:
            return "created"
        case DiffOperation.UPDATE:
            return "updated"
        case DiffOperation.DELETE:
            return "deleted"


class MetricsCollector:
    """Collects stage durations and entity counters during a run.

    Args:
        tracker: The run's resilience tracker; stage snapshots are pulled from
            it when a stage ends.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        tracker: ResilienceTracker | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tracker = tracker
        self._clock = clock
        self._start_time = datetime.now(UTC)
        self._start_mono = clock()
        self._end_time: datetime | None = None
        self._end_mono: float | None = None
        self._stage_starts: dict[str, float] = {}
        self._stage_durations: dict[str, int] = {}
        self._stage_resilience: dict[str, StageResilienceMetrics] = {}
        self._entity_counts: dict[str, EntityCount] = {}

    def start_stage(self, name: str) -> None:
        self._stage_starts[name] = self._clock()

    def end_stage(self, name: str) -> None:
        """Record the stage duration; ignored for a stage that never started."""
        started = self._stage_starts.pop(name, None)
        if started is None:
            logger.debug("end_stage without start_stage", extra={"stage": name})
            return
        self._stage_durations[name] = int((self._clock() - started) * 1000)

        if self._tracker is not None:
            snapshot = self._tracker.get_stage_metrics(name)
            if snapshot is not None:
                self._stage_resilience[name] = snapshot

    def record_entity(self, entity_type: str, operation: DiffOperation | str) -> None:
        current = self._entity_counts.get(entity_type, EntityCount())
        attr = _operation_field(operation)
        self._entity_counts[entity_type] = EntityCount(
            created=current.created + (attr == "created"),
            updated=current.updated + (attr == "updated"),
            deleted=current.deleted + (attr == "deleted"),
        )

    def stage_duration(self, name: str) -> int | None:
        return self._stage_durations.get(name)

    def _snapshot(self, end_time: datetime, end_mono: float) -> DeploymentMetrics:
        return DeploymentMetrics(
            start_time=self._start_time,
            end_time=end_time,
            duration_ms=int((end_mono - self._start_mono) * 1000),
            stage_durations=dict(self._stage_durations),
            entity_counts=dict(self._entity_counts),
            stage_resilience=dict(self._stage_resilience),
        )

    def complete(self) -> DeploymentMetrics:
        """Mark the run finished and return the final snapshot."""
        self._end_time = datetime.now(UTC)
        self._end_mono = self._clock()
        return self._snapshot(self._end_time, self._end_mono)

    def get_metrics(self) -> DeploymentMetrics:
        """Snapshot so far (up to now when the run is not complete)."""
        if self._end_time is not None and self._end_mono is not None:
            return self._snapshot(self._end_time, self._end_mono)
        return self._snapshot(datetime.now(UTC), self._clock())
