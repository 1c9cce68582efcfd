"""Deployment reports: JSON document, summary box text and report storage.

Reports are written to ``.configurator/reports`` under the working directory
unless a custom path is given. Only files in that managed directory are
pruned, keeping the newest ``max_reports``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .config import DEFAULT_MAX_REPORTS, DEFAULT_REPORTS_DIR
from .diff import CHANNELS, DiffOperation, DiffSummary, to_plain
from .metrics import DeploymentMetrics, format_duration
from .models import SaleorConfig
from .resilience import EMPTY_METRICS

logger = logging.getLogger(__name__)

REPORT_PREFIX = "deployment-report-"
REPORT_EXTENSION = ".json"
SUMMARY_LINE_WIDTH = 57


def _iso(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# JSON Report
# =============================================================================


class DeploymentReport:
    """Machine-readable record of one deployment run.

    Args:
        metrics: Final metrics of the run.
        summary: The diff summary that was deployed.
        status: Overall status (``success``, ``partial`` or ``failed``).
    """

    def __init__(
        self,
        metrics: DeploymentMetrics,
        summary: DiffSummary,
        status: str = "success",
    ) -> None:
        self._metrics = metrics
        self._summary = summary
        self._status = status

    def build(self) -> dict[str, Any]:
        metrics = self._metrics
        return {
            "timestamp": _iso(datetime.now(UTC)),
            "summary": {
                "status": self._status,
                "duration": {
                    "totalMs": metrics.duration_ms,
                    "formatted": format_duration(metrics.duration_ms),
                },
                "changes": {
                    "total": self._summary.total_changes,
                    "created": self._summary.creates,
                    "updated": self._summary.updates,
                    "deleted": self._summary.deletes,
                },
                "resilience": metrics.resilience_totals.to_dict(),
            },
            "stages": [
                {
                    "name": name,
                    "durationMs": duration,
                    "durationFormatted": format_duration(duration),
                    "resilience": metrics.stage_resilience.get(name, EMPTY_METRICS).to_dict(),
                }
                for name, duration in metrics.stage_durations.items()
            ],
            "changes": [self._change(result) for result in self._summary.results],
            "entityCounts": {
                entity_type: {
                    "created": counts.created,
                    "updated": counts.updated,
                    "deleted": counts.deleted,
                }
                for entity_type, counts in metrics.entity_counts.items()
            },
            "metadata": {
                "startTime": _iso(metrics.start_time),
                "endTime": _iso(metrics.end_time),
            },
        }

    @staticmethod
    def _change(result: Any) -> dict[str, Any]:
        change: dict[str, Any] = {
            "entityType": result.entity_type,
            "entityName": result.entity_name,
            "operation": result.operation.value,
        }
        if result.changes:
            change["fields"] = [
                {
                    "field": c.field,
                    "oldValue": to_plain(c.current_value),
                    "newValue": to_plain(c.desired_value),
                }
                for c in result.changes
            ]
        return change

    def save(self, path: Path) -> None:
        """Write the report as indented JSON, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.build(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Deployment report saved", extra={"path": str(path)})


# =============================================================================
# Summary Box
# =============================================================================


def _truncate(line: str, width: int = SUMMARY_LINE_WIDTH) -> str:
    if len(line) <= width:
        return line
    return line[: width - 3] + "..."


class DeploymentSummaryReport:
    """End-of-run summary shown in a box after ``deploy``."""

    title = "📊 Deployment Summary"

    def __init__(self, metrics: DeploymentMetrics, summary: DiffSummary) -> None:
        self._metrics = metrics
        self._summary = summary

    def lines(self) -> list[str]:
        metrics = self._metrics
        summary = self._summary
        lines = [
            f"Duration: {format_duration(metrics.duration_ms)}",
            f"Started: {metrics.start_time.astimezone().strftime('%H:%M:%S')}",
            f"Completed: {metrics.end_time.astimezone().strftime('%H:%M:%S')}",
            "",
        ]

        if metrics.stage_durations:
            lines.append("Stage Timing:")
            for stage, duration in metrics.stage_durations.items():
                lines.append(_truncate(f"• {stage}: {format_duration(duration)}"))
            lines.append("")

        if summary.total_changes > 0:
            lines.append("Changes Applied:")
            if summary.creates:
                lines.append(f"• Created: {summary.creates} entities")
            if summary.updates:
                lines.append(f"• Updated: {summary.updates} entities")
            if summary.deletes:
                lines.append(f"• Deleted: {summary.deletes} entities")
        else:
            lines.append("No changes were applied")

        if metrics.entity_counts:
            lines.extend(["", "By Entity Type:"])
            for entity_type, counts in metrics.entity_counts.items():
                parts = []
                if counts.created:
                    parts.append(f"{counts.created} created")
                if counts.updated:
                    parts.append(f"{counts.updated} updated")
                if counts.deleted:
                    parts.append(f"{counts.deleted} deleted")
                if parts:
                    lines.append(_truncate(f"• {entity_type}: {', '.join(parts)}"))

        return lines

    def render(self) -> str:
        """Draw the summary lines inside a box."""
        body = self.lines()
        width = max([len(self.title), *(len(line) for line in body)]) + 2
        border = "─" * width
        rows = [f"┌{border}┐", f"│ {self.title.ljust(width - 1)}│", f"├{border}┤"]
        rows.extend(f"│ {line.ljust(width - 1)}│" for line in body)
        rows.append(f"└{border}┘")
        return "\n".join(rows)


# =============================================================================
# Cleanup Suggestions
# =============================================================================


@dataclass(frozen=True)
class CleanupSuggestion:
    type: str
    message: str


def analyze_deployment_cleanup(
    config: SaleorConfig, summary: DiffSummary
) -> list[CleanupSuggestion]:
    """Post-deploy hints about configuration noise worth cleaning up."""
    suggestions: list[CleanupSuggestion] = []

    for product in config.products or []:
        sku_counts: dict[str, int] = {}
        for variant in product.variants:
            sku_counts[variant.sku] = sku_counts.get(variant.sku, 0) + 1
        for sku, count in sku_counts.items():
            if count > 1:
                suggestions.append(
                    CleanupSuggestion(
                        "duplicate-variant-sku",
                        f'Product "{product.slug}": {count} variants share SKU "{sku}" '
                        "→ keep a single entry (prefer the one with channelListings)",
                    )
                )

    if any(
        r.entity_type == CHANNELS
        and r.operation == DiffOperation.DELETE
        and r.entity_name == "default-channel"
        for r in summary.results
    ):
        suggestions.append(
            CleanupSuggestion(
                "default-channel-delete",
                "'default-channel' appears as a deletion; add a stub in config to silence "
                "(slug: default-channel, isActive: false)",
            )
        )

    return suggestions


# =============================================================================
# Storage
# =============================================================================


def reports_directory(
    base: Path | None = None, reports_dir: str | Path = DEFAULT_REPORTS_DIR
) -> Path:
    return ((base or Path.cwd()) / reports_dir).resolve()


def generate_report_filename(now: datetime | None = None) -> str:
    timestamp = (now or datetime.now(UTC)).astimezone(UTC).strftime("%Y-%m-%d_%H-%M-%S")
    return f"{REPORT_PREFIX}{timestamp}{REPORT_EXTENSION}"


def is_in_managed_directory(path: Path, managed_dir: Path | None = None) -> bool:
    managed = (managed_dir or reports_directory()).resolve()
    return path.resolve().is_relative_to(managed)


def resolve_report_path(custom: Path | None = None, managed_dir: Path | None = None) -> Path:
    """Path for the next report; the managed directory is created on demand."""
    if custom is not None:
        return custom
    directory = managed_dir or reports_directory()
    directory.mkdir(parents=True, exist_ok=True)
    return directory / generate_report_filename()


def prune_old_reports(directory: Path, max_reports: int = DEFAULT_MAX_REPORTS) -> list[Path]:
    """Delete the oldest reports (by mtime) beyond ``max_reports``.

    Returns:
        The deleted paths. Files that cannot be removed are logged and kept.
    """
    if not directory.is_dir():
        return []

    reports = sorted(
        (
            p
            for p in directory.iterdir()
            if p.is_file()
            and p.name.startswith(REPORT_PREFIX)
            and p.name.endswith(REPORT_EXTENSION)
        ),
        key=lambda p: p.stat().st_mtime,
    )
    if len(reports) <= max_reports:
        return []

    deleted: list[Path] = []
    for path in reports[: len(reports) - max_reports]:
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Failed to prune report", extra={"path": str(path), "error": str(e)})
            continue
        deleted.append(path)
    return deleted
