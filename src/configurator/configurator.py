"""Command orchestration: diff, deploy and pull.

``SaleorConfigurator`` is what every CLI command drives:

1. ``diff``: load the local file and the remote state concurrently, compare
   them section by section and optionally narrow the result to selected
   sections
2. ``deploy``: run every stage of the enhanced pipeline for a diff, then
   derive the exit code from the overall result
3. ``pull``: write the remote state to the local file

The facade holds no state between commands apart from the services it was
built with, so a test can drive it with fakes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from .config import Settings
from .config_loader import save_config
from .diff import DiffSummary, filter_summary
from .diff_service import DiffService
from .models import SaleorConfig
from .pipeline import DeploymentContext, EnhancedDeploymentOutcome, execute_enhanced_deployment
from .report import (
    CleanupSuggestion,
    DeploymentReport,
    analyze_deployment_cleanup,
    is_in_managed_directory,
    prune_old_reports,
    reports_directory,
    resolve_report_path,
)
from .services import ServiceContainer
from .stages import get_all_stages

logger = logging.getLogger(__name__)


class ConfigFileExistsError(Exception):
    """Pull target already exists and overwriting was not requested."""

    pass


class SaleorConfigurator:
    """Runs configurator commands against one instance.

    Args:
        services: Local and remote collaborators.
        settings: Validated runtime settings.
    """

    def __init__(self, services: ServiceContainer, settings: Settings) -> None:
        self._services = services
        self._settings = settings

    @property
    def services(self) -> ServiceContainer:
        return self._services

    async def diff(
        self,
        include: Sequence[str] | None = None,
        exclude: Sequence[str] | None = None,
    ) -> DiffSummary:
        """Compare local and remote configuration.

        Raises:
            DiffError: Loading or comparison failed.
            ValueError: ``include``/``exclude`` names an unknown section.
        """
        service = DiffService(
            self._services.config_storage,
            self._services.configuration,
            remote_timeout_seconds=self._settings.remote_timeout_seconds,
            enable_debug_logging=self._settings.verbose,
        )
        summary = await service.compare()
        if include or exclude:
            summary = filter_summary(summary, include, exclude)
            logger.info(
                "Filtered diff summary",
                extra={
                    "include": list(include or []),
                    "exclude": list(exclude or []),
                    "total_changes": summary.total_changes,
                },
            )
        return summary

    async def deploy(self, summary: DiffSummary) -> EnhancedDeploymentOutcome:
        """Deploy ``summary``; stages without relevant changes are skipped."""
        context = DeploymentContext(services=self._services, summary=summary)
        logger.info(
            "Starting deployment",
            extra={
                "total_changes": summary.total_changes,
                "creates": summary.creates,
                "updates": summary.updates,
                "deletes": summary.deletes,
            },
        )
        outcome = await execute_enhanced_deployment(get_all_stages(), context)
        logger.info(
            "Deployment finished",
            extra={
                "status": outcome.result.overall_status.value,
                "exit_code": outcome.exit_code,
                "duration_ms": outcome.metrics.duration_ms,
            },
        )
        return outcome

    async def pull(self, path: Path | None = None, force: bool = False) -> SaleorConfig:
        """Write the remote configuration to ``path`` (default: the config file).

        Raises:
            ConfigFileExistsError: ``path`` exists and ``force`` is not set.
        """
        target = path or self._settings.config_path
        if target.exists() and not force:
            raise ConfigFileExistsError(
                f"{target} already exists. Use --force to overwrite it."
            )
        config = await self._services.configuration.retrieve_without_saving()
        save_config(config, target)
        return config

    async def cleanup_suggestions(self, summary: DiffSummary) -> list[CleanupSuggestion]:
        config = await self._services.config_storage.load()
        return analyze_deployment_cleanup(config, summary)

    def save_report(
        self,
        outcome: EnhancedDeploymentOutcome,
        summary: DiffSummary,
        report_path: Path | None = None,
    ) -> Path:
        """Write the deployment report; prune old ones in the managed directory."""
        managed_dir = reports_directory(reports_dir=self._settings.report_dir)
        path = resolve_report_path(report_path, managed_dir)
        DeploymentReport(outcome.metrics, summary, outcome.result.overall_status.value).save(path)

        if is_in_managed_directory(path, managed_dir):
            deleted = prune_old_reports(managed_dir, self._settings.max_reports)
            if deleted:
                logger.debug("Pruned old deployment reports", extra={"count": len(deleted)})
        return path
