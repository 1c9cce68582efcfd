"""Stage-scoped resilience accounting.

Counts the rate-limit hits, retries, GraphQL errors and network errors seen
while talking to the remote instance, attributed to the deployment stage that
was running at the time.

DESIGN:
- The pipeline opens one ``StageResilienceScope`` per stage and hands it out
  as an explicit handle; closing the scope freezes its counters into an
  immutable snapshot stored on the run's ``ResilienceTracker``.
- The scope is also published in a ``contextvars`` variable so that code deep
  inside the transport (which never sees the pipeline) can record events with
  the module-level ``record_*`` helpers. Each asyncio task and each copied
  executor context sees the scope that was active when it was created, so
  concurrent work inside one stage is attributed to that stage.
- Recording never raises: an event with no active scope is logged at debug
  level and dropped.
"""

from __future__ import annotations

import logging
import threading
from contextvars import ContextVar, Token
from dataclasses import dataclass
from types import TracebackType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResilienceMetrics:
    """Immutable snapshot of one stage's resilience counters."""

    rate_limit_hits: int = 0
    retry_attempts: int = 0
    graphql_errors: int = 0
    network_errors: int = 0

    def __add__(self, other: StageResilienceMetrics) -> StageResilienceMetrics:
        return StageResilienceMetrics(
            rate_limit_hits=self.rate_limit_hits + other.rate_limit_hits,
            retry_attempts=self.retry_attempts + other.retry_attempts,
            graphql_errors=self.graphql_errors + other.graphql_errors,
            network_errors=self.network_errors + other.network_errors,
        )

    @property
    def total_events(self) -> int:
        return (
            self.rate_limit_hits + self.retry_attempts + self.graphql_errors + self.network_errors
        )

    def to_dict(self) -> dict[str, int]:
        """Serialize with the report's camelCase keys."""
        return {
            "rateLimitHits": self.rate_limit_hits,
            "retryAttempts": self.retry_attempts,
            "graphqlErrors": self.graphql_errors,
            "networkErrors": self.network_errors,
        }


EMPTY_METRICS = StageResilienceMetrics()


_active_scope: ContextVar[StageResilienceScope | None] = ContextVar(
    "configurator_resilience_scope", default=None
)


class StageResilienceScope:
    """Mutable counters for one running stage.

    Usable as a context manager; on exit the scope closes (snapshot stored on
    the tracker) and the previously active scope is restored.
    """

    def __init__(self, tracker: ResilienceTracker, stage_name: str) -> None:
        self._tracker = tracker
        self._stage_name = stage_name
        self._lock = threading.Lock()
        self._rate_limit_hits = 0
        self._retry_attempts = 0
        self._graphql_errors = 0
        self._network_errors = 0
        self._active = True
        self._token: Token[StageResilienceScope | None] | None = None

    @property
    def stage_name(self) -> str:
        return self._stage_name

    @property
    def active(self) -> bool:
        return self._active

    @property
    def tracker(self) -> ResilienceTracker:
        return self._tracker

    def record_rate_limit(self) -> None:
        with self._lock:
            self._rate_limit_hits += 1

    def record_retry(self) -> None:
        with self._lock:
            self._retry_attempts += 1

    def record_graphql_error(self) -> None:
        with self._lock:
            self._graphql_errors += 1

    def record_network_error(self) -> None:
        with self._lock:
            self._network_errors += 1

    def snapshot(self) -> StageResilienceMetrics:
        """Current counters as an immutable value."""
        with self._lock:
            return StageResilienceMetrics(
                rate_limit_hits=self._rate_limit_hits,
                retry_attempts=self._retry_attempts,
                graphql_errors=self._graphql_errors,
                network_errors=self._network_errors,
            )

    def close(self) -> StageResilienceMetrics | None:
        """Freeze the counters and store them on the tracker.

        Returns:
            The frozen snapshot, or None if the scope was already closed.
        """
        if not self._active:
            return None
        self._active = False
        frozen = self.snapshot()
        self._tracker._store(self._stage_name, frozen)
        return frozen

    def __enter__(self) -> StageResilienceScope:
        self._tracker._end_active_in_context()
        self._token = _active_scope.set(self)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
        if self._token is not None:
            _active_scope.reset(self._token)
            self._token = None


def _current_scope() -> StageResilienceScope | None:
    scope = _active_scope.get()
    if scope is not None and scope.active:
        return scope
    return None


class ResilienceTracker:
    """Run-scoped store of per-stage resilience snapshots."""

    def __init__(self) -> None:
        self._snapshots: dict[str, StageResilienceMetrics] = {}
        self._lock = threading.Lock()

    def stage(self, stage_name: str) -> StageResilienceScope:
        """Create the scope handle for a stage (enter it with ``with``)."""
        return StageResilienceScope(self, stage_name)

    def start_stage_context(self, stage_name: str) -> StageResilienceScope:
        """Activate a stage scope in the current context without a ``with`` block.

        An active scope in the current context is ended first.
        """
        self._end_active_in_context()
        scope = StageResilienceScope(self, stage_name)
        _active_scope.set(scope)
        return scope

    def end_stage_context(self) -> StageResilienceMetrics | None:
        """End the active scope of the current context.

        Returns:
            The frozen snapshot, or None when no scope of this tracker is active.
        """
        scope = _current_scope()
        if scope is None or scope.tracker is not self:
            return None
        return scope.close()

    def _end_active_in_context(self) -> None:
        scope = _current_scope()
        if scope is not None:
            logger.debug(
                "Implicitly ending resilience context",
                extra={"stage": scope.stage_name},
            )
            scope.close()

    def _store(self, stage_name: str, metrics: StageResilienceMetrics) -> None:
        with self._lock:
            self._snapshots[stage_name] = metrics

    def get_stage_metrics(self, stage_name: str) -> StageResilienceMetrics | None:
        with self._lock:
            return self._snapshots.get(stage_name)

    def get_all_stage_metrics(self) -> dict[str, StageResilienceMetrics]:
        """Copy of every stored snapshot, in stage completion order."""
        with self._lock:
            return dict(self._snapshots)

    def totals(self) -> StageResilienceMetrics:
        """Sum of all stored snapshots."""
        total = EMPTY_METRICS
        for metrics in self.get_all_stage_metrics().values():
            total = total + metrics
        return total

    def is_in_stage_context(self) -> bool:
        scope = _current_scope()
        return scope is not None and scope.tracker is self

    def get_current_stage_name(self) -> str | None:
        scope = _current_scope()
        if scope is None or scope.tracker is not self:
            return None
        return scope.stage_name

    def reset(self) -> None:
        """Clear stored snapshots (between independent runs)."""
        with self._lock:
            self._snapshots.clear()


def _record(event: str) -> None:
    scope = _current_scope()
    if scope is None:
        logger.debug("Resilience event outside stage context", extra={"event": event})
        return
    match event:
        case "rate_limit":
            scope.record_rate_limit()
        case "retry":
            scope.record_retry()
        case "graphql_error":
            scope.record_graphql_error()
        case "network_error":
            scope.record_network_error()
        case _:
            logger.debug("Unknown resilience event", extra={"event": event})


def record_rate_limit() -> None:
    """Count a rate-limit response against the active stage."""
    _record("rate_limit")


def record_retry() -> None:
    """Count a retry attempt against the active stage."""
    _record("retry")


def record_graphql_error() -> None:
    """Count a GraphQL error response against the active stage."""
    _record("graphql_error")


def record_network_error() -> None:
    """Count a network failure against the active stage."""
    _record("network_error")


def current_stage_name() -> str | None:
    """Name of the stage active in this context, if any."""
    scope = _current_scope()
    return scope.stage_name if scope else None

