"""Deployment pipeline: ordered stages with skip rules, metrics and results.

Two execution modes share the same stages:

- ``DeploymentPipeline`` is fail-fast. The first stage that raises stops the
  run and surfaces as ``StageExecutionError``.
- ``EnhancedDeploymentPipeline`` records a failing stage (``failed``, or
  ``partial`` when some of its entities succeeded) and keeps going, so one
  broken section does not block the rest of the deployment.

Every executed stage runs inside its own resilience scope; transport retries
and rate-limit hits recorded while the stage runs are attributed to it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .attribute_cache import AttributeCache
from .dependency import should_skip
from .diff import DiffSummary
from .errors import DeploymentError, ErrorKind, StageAggregateFailure, StageExecutionError
from .metrics import DeploymentMetrics, MetricsCollector, format_duration
from .resilience import ResilienceTracker
from .results import (
    DeploymentResult,
    DeploymentResultCollector,
    DeploymentResultFormatter,
    EntityResult,
    StageStatus,
    extract_entity_results,
)
from .services import ServiceContainer

logger = logging.getLogger(__name__)


@dataclass
class DeploymentContext:
    """State shared by every stage of one run.

    Attributes:
        services: Collaborators the stages call.
        summary: Diff being deployed; drives skip decisions and entity counts.
        attribute_cache: Filled by the preflight stage, read by products.
        tracker: Run-scoped resilience tracker.
    """

    services: ServiceContainer
    summary: DiffSummary
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    attribute_cache: AttributeCache = field(default_factory=AttributeCache)
    tracker: ResilienceTracker = field(default_factory=ResilienceTracker)


StageBody = Callable[[DeploymentContext], Awaitable[Sequence[EntityResult] | None]]


@dataclass(frozen=True)
class DeploymentStage:
    """One step of a deployment.

    Attributes:
        name: Display name, also the key for metrics and resilience.
        run: Stage body. May return per-entity results.
        entity_type: Entity type the stage deploys. Enables the shared skip
            rule and entity counting; ``None`` for stages that always run.
        skip_when: Custom skip predicate, replaces the shared rule.
    """

    name: str
    run: StageBody
    entity_type: str | None = None
    skip_when: Callable[[DeploymentContext], bool] | None = None

    async def execute(self, context: DeploymentContext) -> Sequence[EntityResult] | None:
        return await self.run(context)

    def skip(self, context: DeploymentContext) -> bool:
        if self.skip_when is not None:
            return self.skip_when(context)
        if self.entity_type is None:
            return False
        return should_skip(self.entity_type, context.summary)


def _record_entity_counts(
    metrics: MetricsCollector,
    stage: DeploymentStage,
    summary: DiffSummary,
    succeeded: set[str] | None = None,
) -> None:
    """Count the stage's planned operations, limited to ``succeeded`` when given."""
    if stage.entity_type is None:
        return
    for result in summary.results_for(stage.entity_type):
        if succeeded is None or result.entity_name in succeeded:
            metrics.record_entity(stage.entity_type, result.operation)


class DeploymentPipeline:
    """Fail-fast sequential pipeline."""

    def __init__(self, stages: Sequence[DeploymentStage] = ()) -> None:
        self._stages: list[DeploymentStage] = list(stages)
        self._metrics: MetricsCollector | None = None

    def add_stage(self, stage: DeploymentStage) -> DeploymentPipeline:
        self._stages.append(stage)
        return self

    @property
    def stages(self) -> list[DeploymentStage]:
        return list(self._stages)

    async def execute(self, context: DeploymentContext) -> DeploymentMetrics:
        """Run every stage in order.

        Returns:
            Final deployment metrics.

        Raises:
            StageExecutionError: A stage raised. Carries the metrics collected
                up to the failure; the stage's exception is the cause.
        """
        metrics = MetricsCollector(context.tracker)
        self._metrics = metrics
        logger.info("Starting deployment pipeline", extra={"stage_count": len(self._stages)})

        for stage in self._stages:
            if stage.skip(context):
                logger.debug(f"Skipping stage: {stage.name}")
                continue

            metrics.start_stage(stage.name)
            try:
                with context.tracker.stage(stage.name):
                    await stage.execute(context)
            except Exception as e:
                metrics.end_stage(stage.name)
                logger.error(
                    f"Stage failed: {stage.name}",
                    extra={"stage": stage.name, "error": str(e)},
                )
                raise StageExecutionError(stage.name, str(e), metrics.get_metrics()) from e

            metrics.end_stage(stage.name)
            _record_entity_counts(metrics, stage, context.summary)
            logger.info(
                f"Stage completed: {stage.name}",
                extra={"stage": stage.name, "duration_ms": metrics.stage_duration(stage.name)},
            )

        return metrics.complete()


def _is_partial_failure(error: Exception) -> bool:
    return (
        isinstance(error, DeploymentError)
        and error.kind == ErrorKind.STAGE_AGGREGATE
        and isinstance(error.payload, StageAggregateFailure)
        and len(error.payload.successes) > 0
    )


class EnhancedDeploymentPipeline:
    """Sequential pipeline that records stage failures and continues."""

    def __init__(self, stages: Sequence[DeploymentStage] = ()) -> None:
        self._stages: list[DeploymentStage] = list(stages)

    def add_stage(self, stage: DeploymentStage) -> EnhancedDeploymentPipeline:
        self._stages.append(stage)
        return self

    async def execute(
        self, context: DeploymentContext
    ) -> tuple[DeploymentMetrics, DeploymentResult]:
        metrics = MetricsCollector(context.tracker)
        collector = DeploymentResultCollector()
        logger.info(
            "Starting enhanced deployment pipeline", extra={"stage_count": len(self._stages)}
        )

        for stage in self._stages:
            if stage.skip(context):
                logger.debug(f"Skipping stage: {stage.name}")
                now = datetime.now(UTC)
                collector.add_stage_result(
                    collector.create_stage_result(stage.name, StageStatus.SKIPPED, now, now)
                )
                continue

            await self._run_stage(stage, context, metrics, collector)

        return metrics.complete(), collector.get_result()

    async def _run_stage(
        self,
        stage: DeploymentStage,
        context: DeploymentContext,
        metrics: MetricsCollector,
        collector: DeploymentResultCollector,
    ) -> None:
        start_time = datetime.now(UTC)
        metrics.start_stage(stage.name)

        try:
            with context.tracker.stage(stage.name):
                entities = await stage.execute(context)
        except Exception as e:
            metrics.end_stage(stage.name)
            if isinstance(e, DeploymentError) and isinstance(e.payload, StageAggregateFailure):
                _record_entity_counts(
                    metrics, stage, context.summary, succeeded=set(e.payload.successes)
                )
            status = StageStatus.PARTIAL if _is_partial_failure(e) else StageStatus.FAILED
            result = collector.create_stage_result(
                stage.name,
                status,
                start_time,
                datetime.now(UTC),
                extract_entity_results(e),
                str(e),
            )
            collector.add_stage_result(result)
            logger.error(
                f"Stage {status.value}: {stage.name}",
                extra={
                    "stage": stage.name,
                    "error": str(e),
                    "success_count": result.success_count,
                    "failure_count": result.failure_count,
                },
            )
            return

        metrics.end_stage(stage.name)
        _record_entity_counts(metrics, stage, context.summary)
        collector.add_stage_result(
            collector.create_stage_result(
                stage.name,
                StageStatus.SUCCESS,
                start_time,
                datetime.now(UTC),
                entities or (),
            )
        )
        duration = metrics.stage_duration(stage.name) or 0
        logger.info(
            f"Stage completed: {stage.name} ({format_duration(duration)})",
            extra={"stage": stage.name, "duration_ms": duration},
        )


@dataclass(frozen=True)
class EnhancedDeploymentOutcome:
    metrics: DeploymentMetrics
    result: DeploymentResult
    exit_code: int

    @property
    def should_exit(self) -> bool:
        return self.result.overall_status == StageStatus.FAILED


async def execute_enhanced_deployment(
    stages: Sequence[DeploymentStage], context: DeploymentContext
) -> EnhancedDeploymentOutcome:
    """Run ``stages`` with the enhanced pipeline and derive the exit code."""
    metrics, result = await EnhancedDeploymentPipeline(stages).execute(context)
    exit_code = DeploymentResultFormatter().get_exit_code(result.overall_status)
    return EnhancedDeploymentOutcome(metrics=metrics, result=result, exit_code=exit_code)
