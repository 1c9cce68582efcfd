"""Local configuration file loading and saving.

All reads enforce a size limit before parsing. Input validation is performed
at the boundary: a file that does not parse into ``SaleorConfig`` never
reaches the diff engine.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_CONFIG_FILE_SIZE_BYTES
from .models import SaleorConfig

logger = logging.getLogger(__name__)


class ConfigLoadError(Exception):
    """Raised when the configuration file cannot be read or fails validation.

    Attributes:
        path: The file that failed to load.
        validation_errors: One ``"loc: msg"`` line per schema violation.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        validation_errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.validation_errors = validation_errors or []


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into readable ``loc: msg`` lines."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"{loc}: {item['msg']}")
    return lines


def parse_config(raw_data: Any, source: str = "<memory>") -> SaleorConfig:
    """Validate an already-parsed mapping into a SaleorConfig.

    Args:
        raw_data: Result of ``yaml.safe_load`` (``None`` means empty file).
        source: Label used in error messages.

    Raises:
        ConfigLoadError: If the data is not a mapping or fails validation.
    """
    if raw_data is None:
        return SaleorConfig()

    if not isinstance(raw_data, dict):
        raise ConfigLoadError(f"Configuration must be a YAML mapping: {source}")

    try:
        return SaleorConfig.model_validate(raw_data)
    except ValidationError as e:
        errors = format_validation_errors(e)
        error_list = "\n".join(f"  - {line}" for line in errors)
        raise ConfigLoadError(
            f"Validation failed for {source}:\n{error_list}",
            validation_errors=errors,
        ) from e


def load_config(path: Path) -> SaleorConfig:
    """Load and validate the configuration file.

    Args:
        path: Path to the YAML configuration.

    Returns:
        Validated configuration snapshot.

    Raises:
        ConfigLoadError: If the file cannot be loaded or fails validation.
    """
    if not path.exists():
        raise ConfigLoadError(f"Configuration file not found: {path}", path=path)

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ConfigLoadError(f"Failed to stat configuration file {path}: {e}", path=path) from e

    if file_size > MAX_CONFIG_FILE_SIZE_BYTES:
        raise ConfigLoadError(
            f"Configuration file exceeds maximum size of {MAX_CONFIG_FILE_SIZE_BYTES} bytes: "
            f"{path}",
            path=path,
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(f"Failed to read configuration file {path}: {e}", path=path) from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML in {path}: {e}", path=path) from e

    try:
        config = parse_config(raw_data, source=str(path))
    except ConfigLoadError as e:
        e.path = path
        raise

    logger.info("Loaded configuration from %s", path)
    return config


def save_config(config: SaleorConfig, path: Path) -> None:
    """Write a configuration snapshot as YAML.

    Parent directories are created as needed. Keys keep declaration order.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = yaml.safe_dump(
        config.to_yaml_dict(),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    path.write_text(content, encoding="utf-8")
    logger.info("Saved configuration to %s", path)


class LocalConfigSource:
    """Configuration source backed by the local YAML file.

    The parsed snapshot is cached: every stage of one deployment run sees the
    same configuration even if the file changes on disk mid-run.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._cached: SaleorConfig | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> SaleorConfig:
        """Load (once) and return the local configuration."""
        if self._cached is None:
            loop = asyncio.get_running_loop()
            self._cached = await loop.run_in_executor(None, load_config, self._path)
        return self._cached

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next load re-reads the file."""
        self._cached = None
