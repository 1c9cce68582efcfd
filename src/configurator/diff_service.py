"""Comparison of the local configuration against the remote instance."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from .comparators import COMPARATORS
from .config import DEFAULT_REMOTE_TIMEOUT_SECONDS
from .diff import (
    ConfigurationLoadError,
    DiffComparisonError,
    DiffResult,
    DiffSummary,
    EntityValidationError,
    RemoteConfigurationError,
)
from .models import SaleorConfig
from .services import ConfigStorage, ConfigurationSource

logger = logging.getLogger(__name__)


def _section_counts(config: SaleorConfig) -> dict[str, int]:
    counts: dict[str, int] = {}
    for attr in SaleorConfig.model_fields:
        value = getattr(config, attr)
        if isinstance(value, list):
            counts[attr] = len(value)
        elif value is not None:
            counts[attr] = 1
    return counts


class DiffService:
    """Load both configurations concurrently and run every comparator.

    Args:
        local_source: Provides the desired configuration (``load()``).
        remote_source: Provides the current remote state
            (``retrieve_without_saving()``).
        remote_timeout_seconds: Upper bound for remote retrieval.
        enable_debug_logging: Log per-section counts and per-comparator results.
    """

    def __init__(
        self,
        local_source: ConfigStorage,
        remote_source: ConfigurationSource,
        remote_timeout_seconds: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        enable_debug_logging: bool = False,
    ) -> None:
        self._local_source = local_source
        self._remote_source = remote_source
        self._remote_timeout_seconds = remote_timeout_seconds
        self._debug = enable_debug_logging

    async def compare(self) -> DiffSummary:
        """Compare local and remote configuration.

        Raises:
            ConfigurationLoadError: The local configuration failed to load.
            RemoteConfigurationError: Remote retrieval failed or timed out.
            DiffComparisonError: A comparator failed.
            EntityValidationError: A section contains duplicate identifiers.
        """
        start = time.monotonic()
        logger.info("Starting diff comparison")

        try:
            local, remote = await asyncio.gather(self._load_local(), self._load_remote())
            if self._debug:
                logger.debug(
                    "Configurations loaded",
                    extra={
                        "local_sections": _section_counts(local),
                        "remote_sections": _section_counts(remote),
                    },
                )
            summary = self.compare_configs(local, remote)
        except Exception as e:
            logger.error(
                "Failed to compare configurations",
                extra={
                    "error": str(e),
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
            )
            raise

        logger.info(
            "Diff comparison completed",
            extra={
                "total_changes": summary.total_changes,
                "creates": summary.creates,
                "updates": summary.updates,
                "deletes": summary.deletes,
                "duration_ms": int((time.monotonic() - start) * 1000),
            },
        )
        return summary

    def compare_configs(self, local: SaleorConfig, remote: SaleorConfig) -> DiffSummary:
        """Run every comparator in order over two loaded configurations."""
        results: list[DiffResult] = []
        for comparator in COMPARATORS:
            try:
                section_results = comparator.compare_configs(local, remote)
            except EntityValidationError:
                raise
            except Exception as e:
                section = SaleorConfig.model_fields[comparator.section].alias or comparator.section
                raise DiffComparisonError(
                    f"Failed to compare {section}: {e}",
                    entity_type=comparator.entity_type,
                ) from e

            if self._debug and section_results:
                logger.debug(
                    f"Comparison completed for {comparator.entity_type}",
                    extra={
                        "entity_type": comparator.entity_type,
                        "changes_found": len(section_results),
                    },
                )
            results.extend(section_results)

        return DiffSummary.from_results(results)

    async def _load_local(self) -> SaleorConfig:
        try:
            config = await self._local_source.load()
        except Exception as e:
            raise ConfigurationLoadError(f"Failed to load local configuration: {e}") from e
        return config or SaleorConfig()

    async def _load_remote(self) -> SaleorConfig:
        timeout_ms = int(self._remote_timeout_seconds * 1000)
        try:
            config: Any = await asyncio.wait_for(
                self._remote_source.retrieve_without_saving(),
                timeout=self._remote_timeout_seconds,
            )
        except TimeoutError as e:
            raise RemoteConfigurationError(
                "Failed to retrieve remote configuration: "
                f"Remote configuration retrieval timed out after {timeout_ms}ms",
                timed_out=True,
            ) from e
        except Exception as e:
            raise RemoteConfigurationError(
                f"Failed to retrieve remote configuration: {e}"
            ) from e
        return config or SaleorConfig()
