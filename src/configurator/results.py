"""Per-stage deployment results and their user-facing rendering.

A run that keeps going after a stage fails needs more than a single error:
every stage ends up as one ``StageResult`` (success, partial, failed or
skipped), the collector derives the overall status, and the formatter turns
the whole thing into the text printed at the end of ``deploy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from .errors import DeploymentError, ErrorKind, ExitCode, StageAggregateFailure


class StageStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EntityResult:
    name: str
    operation: str
    success: bool
    error: str | None = None
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class StageResult:
    name: str
    status: StageStatus
    start_time: datetime
    end_time: datetime | None = None
    entities: tuple[EntityResult, ...] = ()
    error: str | None = None

    @property
    def duration_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    @property
    def success_count(self) -> int:
        return sum(1 for e in self.entities if e.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for e in self.entities if not e.success)

    @property
    def total_count(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class ResultSummary:
    total_entities: int = 0
    successful_entities: int = 0
    failed_entities: int = 0
    skipped_stages: int = 0
    completed_stages: int = 0
    failed_stages: int = 0


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of an enhanced deployment run.

    ``overall_status`` is never ``skipped``: a run where every stage was
    skipped counts as a success.
    """

    overall_status: StageStatus
    start_time: datetime
    end_time: datetime
    stages: tuple[StageResult, ...] = ()
    summary: ResultSummary = field(default_factory=ResultSummary)

    @property
    def total_duration_ms(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() * 1000)


def overall_status(stages: tuple[StageResult, ...] | list[StageResult]) -> StageStatus:
    """Failed when nothing succeeded, partial when anything went wrong."""
    failed = sum(1 for s in stages if s.status == StageStatus.FAILED)
    partial = sum(1 for s in stages if s.status == StageStatus.PARTIAL)
    succeeded = sum(1 for s in stages if s.status == StageStatus.SUCCESS)

    if failed > 0 and succeeded == 0:
        return StageStatus.FAILED
    if failed > 0 or partial > 0:
        return StageStatus.PARTIAL
    return StageStatus.SUCCESS


class DeploymentResultCollector:
    """Accumulates stage results in execution order."""

    def __init__(self) -> None:
        self._stages: list[StageResult] = []
        self._start_time = datetime.now(UTC)

    def add_stage_result(self, result: StageResult) -> None:
        self._stages.append(result)

    def create_stage_result(
        self,
        name: str,
        status: StageStatus,
        start_time: datetime,
        end_time: datetime | None = None,
        entities: list[EntityResult] | tuple[EntityResult, ...] = (),
        error: str | None = None,
    ) -> StageResult:
        return StageResult(
            name=name,
            status=status,
            start_time=start_time,
            end_time=end_time,
            entities=tuple(entities),
            error=error,
        )

    def get_result(self) -> DeploymentResult:
        stages = tuple(self._stages)
        succeeded = sum(1 for s in stages if s.status == StageStatus.SUCCESS)
        partial = sum(1 for s in stages if s.status == StageStatus.PARTIAL)

        summary = ResultSummary(
            total_entities=sum(s.total_count for s in stages),
            successful_entities=sum(s.success_count for s in stages),
            failed_entities=sum(s.failure_count for s in stages),
            skipped_stages=sum(1 for s in stages if s.status == StageStatus.SKIPPED),
            completed_stages=succeeded + partial,
            failed_stages=sum(1 for s in stages if s.status == StageStatus.FAILED),
        )
        return DeploymentResult(
            overall_status=overall_status(stages),
            start_time=self._start_time,
            end_time=datetime.now(UTC),
            stages=stages,
            summary=summary,
        )


# =============================================================================
# Formatting
# =============================================================================

STATUS_ICONS = {
    StageStatus.SUCCESS: "✅",
    StageStatus.PARTIAL: "⚠️ ",
    StageStatus.FAILED: "❌",
    StageStatus.SKIPPED: "⏭️ ",
}

STATUS_TEXT = {
    StageStatus.SUCCESS: "Completed Successfully",
    StageStatus.PARTIAL: "Partially Completed",
    StageStatus.FAILED: "Failed",
}


class DeploymentResultFormatter:
    """Renders a ``DeploymentResult`` for the terminal."""

    def format(self, result: DeploymentResult) -> str:
        status = result.overall_status
        title = STATUS_TEXT.get(status, "Unknown Status")
        lines = [f"{STATUS_ICONS[status]} Deployment {title}", ""]

        summary = result.summary
        if summary.total_entities > 0:
            lines.append("📊 Summary:")
            if summary.successful_entities > 0:
                lines.append(f"  ✅ {summary.successful_entities} entities deployed successfully")
            if summary.failed_entities > 0:
                lines.append(f"  ❌ {summary.failed_entities} entities failed to deploy")
            if summary.skipped_stages > 0:
                lines.append(f"  ⏭️  {summary.skipped_stages} stages skipped (no changes detected)")
            lines.append("")

        processed = [s for s in result.stages if s.status != StageStatus.SKIPPED]
        if processed:
            lines.append("📋 Stage Results:")
            for stage in processed:
                lines.extend(self._format_stage(stage))
                lines.append("")

        skipped = [s for s in result.stages if s.status == StageStatus.SKIPPED]
        if skipped:
            lines.append("⏭️  Skipped Stages (no changes detected):")
            lines.extend(f"  • {stage.name}" for stage in skipped)
            lines.append("")

        match status:
            case StageStatus.PARTIAL:
                lines.extend(
                    [
                        "💡 Next Steps:",
                        "  • Review the failed items above",
                        "  • Fix the issues and run deploy again",
                        "  • Use --include flag to deploy only specific entities",
                        "  • Run diff command to verify current state",
                    ]
                )
            case StageStatus.SUCCESS:
                lines.append("🎉 All changes deployed successfully!")

        return "\n".join(lines)

    def _format_stage(self, stage: StageResult) -> list[str]:
        duration = stage.duration_ms
        duration_text = f" ({duration / 1000:.1f}s)" if duration else ""
        lines = [f"  {STATUS_ICONS[stage.status]} {stage.name}{duration_text}"]

        if stage.entities:
            for entity in stage.entities:
                if entity.success:
                    lines.append(f"    ✅ {entity.operation.upper()}: {entity.name}")
            for entity in stage.entities:
                if entity.success:
                    continue
                lines.append(f"    ❌ {entity.operation.upper()}: {entity.name}")
                if entity.error:
                    lines.append(f"       Error: {entity.error}")
                lines.extend(f"       💡 {s}" for s in entity.suggestions)
        elif stage.error:
            lines.append(f"    Error: {stage.error}")

        return lines

    def get_exit_code(self, status: StageStatus) -> int:
        match status:
            case StageStatus.SUCCESS:
                return ExitCode.SUCCESS
            case StageStatus.PARTIAL:
                return ExitCode.PARTIAL_FAILURE
            case _:
                return ExitCode.UNEXPECTED


# =============================================================================
# Entity Results from Stage Errors
# =============================================================================


def extract_suggestions(message: str) -> tuple[str, ...]:
    """Hints for the common "referenced entity not found" failures."""
    suggestions: list[str] = []
    if "not found" not in message:
        return ()

    if "Category" in message:
        suggestions.extend(
            [
                "Verify the category exists in your categories configuration",
                "Check category slug spelling and ensure it matches exactly",
                "Run 'saleor-configurator pull' to see available categories",
            ]
        )
    if "ProductType" in message:
        suggestions.extend(
            [
                "Verify the product type exists in your productTypes configuration",
                "Check product type name spelling and ensure it matches exactly",
            ]
        )
    if "Channel" in message:
        suggestions.extend(
            [
                "Verify the channel exists in your channels configuration",
                "Check channel slug spelling and ensure it matches exactly",
            ]
        )
    return tuple(suggestions)


def extract_entity_results(error: BaseException) -> list[EntityResult]:
    """Per-entity results carried by a stage-aggregate error.

    Any other error yields an empty list. Each entity keeps the operation
    the stage recorded for it.
    """
    if not isinstance(error, DeploymentError) or error.kind != ErrorKind.STAGE_AGGREGATE:
        return []
    payload = error.payload
    if not isinstance(payload, StageAggregateFailure):
        return []

    results = [
        EntityResult(name=name, operation=payload.operation_of(name), success=True)
        for name in payload.successes
    ]
    results.extend(
        EntityResult(
            name=failure.entity,
            operation=payload.operation_of(failure.entity),
            success=False,
            error=failure.message,
            suggestions=extract_suggestions(failure.message),
        )
        for failure in payload.failures
    )
    return results
