"""Runtime settings with validation.

Settings are resolved once per CLI invocation: environment variables provide
defaults, explicit command-line flags override them. Everything is validated
at construction time so a bad URL or an out-of-range timeout fails before any
network call is made.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class ConfigurationError(Exception):
    """Raised when settings validation fails."""

    pass


# Settings constants with documented bounds
DEFAULT_CONFIG_PATH = "config.yml"

DEFAULT_REMOTE_TIMEOUT_SECONDS = 30
MIN_REMOTE_TIMEOUT_SECONDS = 1
MAX_REMOTE_TIMEOUT_SECONDS = 600

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60

DEFAULT_REPORTS_DIR = ".configurator/reports"
DEFAULT_MAX_REPORTS = 5
MAX_REPORTS_LIMIT = 100

# Retry policy for the GraphQL transport
MAX_RETRY_ATTEMPTS = 3
RETRY_INITIAL_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 15.0

# Local configuration files larger than this are rejected before parsing
MAX_CONFIG_FILE_SIZE_BYTES = 5 * 1024 * 1024  # 5MB

# Chunking defaults (per-entity profiles live in chunking.py)
DEFAULT_CHUNK_SIZE = 10
DEFAULT_CHUNK_DELAY_SECONDS = 0.5

VALID_URL_PATTERN = r"^https?://[^\s/$.?#][^\s]*$"
GRAPHQL_PATH_SUFFIX = "/graphql/"


def normalize_graphql_url(url: str) -> str:
    """Ensure a Saleor API URL points at the GraphQL endpoint.

    Args:
        url: Instance URL, with or without the ``/graphql/`` suffix.

    Returns:
        URL ending in ``/graphql/``.
    """
    stripped = url.strip().rstrip("/")
    if stripped.endswith("/graphql"):
        return stripped + "/"
    return stripped + GRAPHQL_PATH_SUFFIX


@dataclass(frozen=True)
class Settings:
    """Configurator settings for one CLI invocation.

    ``url`` and ``token`` may be empty for commands that never talk to the
    remote instance; ``require_remote()`` enforces them where needed.
    """

    url: str = ""
    token: str = ""
    config_path: Path = field(default_factory=lambda: Path(DEFAULT_CONFIG_PATH))

    # Timing
    remote_timeout_seconds: int = DEFAULT_REMOTE_TIMEOUT_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRY_ATTEMPTS

    # Reports
    report_dir: Path = field(default_factory=lambda: Path(DEFAULT_REPORTS_DIR))
    max_reports: int = DEFAULT_MAX_REPORTS

    # Output
    quiet: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        errors: list[str] = []

        if self.url and not re.match(VALID_URL_PATTERN, self.url):
            errors.append(f"SALEOR_URL must be an http(s) URL: {self.url}")

        if not (
            MIN_REMOTE_TIMEOUT_SECONDS
            <= self.remote_timeout_seconds
            <= MAX_REMOTE_TIMEOUT_SECONDS
        ):
            errors.append(
                f"SALEOR_REMOTE_TIMEOUT must be between {MIN_REMOTE_TIMEOUT_SECONDS} "
                f"and {MAX_REMOTE_TIMEOUT_SECONDS} seconds"
            )

        if self.request_timeout_seconds < 1:
            errors.append("request timeout must be at least 1 second")

        if self.max_retries < 1:
            errors.append("SALEOR_MAX_RETRIES must be at least 1")

        if not (1 <= self.max_reports <= MAX_REPORTS_LIMIT):
            errors.append(f"SALEOR_MAX_REPORTS must be between 1 and {MAX_REPORTS_LIMIT}")

        if self.quiet and self.verbose:
            errors.append("--quiet and --verbose cannot be combined")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def graphql_url(self) -> str:
        """The instance URL normalised to the GraphQL endpoint."""
        return normalize_graphql_url(self.url) if self.url else ""

    def require_remote(self) -> None:
        """Fail fast when a command needs the remote instance but lacks credentials.

        Raises:
            ConfigurationError: If URL or token is missing.
        """
        missing = []
        if not self.url:
            missing.append("SALEOR_URL (--url)")
        if not self.token:
            missing.append("SALEOR_TOKEN (--token)")
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    @classmethod
    def from_env(cls, **overrides: Any) -> Settings:
        """Load settings from environment variables.

        Environment Variables:
            SALEOR_URL: Saleor instance URL (GraphQL endpoint)
            SALEOR_TOKEN: App or staff token with the required permissions
            SALEOR_CONFIG: Path to the local YAML configuration (default: config.yml)
            SALEOR_REMOTE_TIMEOUT: Seconds allowed for remote retrieval (default: 30)
            SALEOR_MAX_RETRIES: Transport retry attempts (default: 3)
            SALEOR_REPORT_DIR: Managed reports directory (default: .configurator/reports)
            SALEOR_MAX_REPORTS: Reports retained after pruning (default: 5)

        Args:
            **overrides: Values from command-line flags. ``None`` values are
                ignored so unset flags fall through to the environment.
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None or value == "":
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        values: dict[str, Any] = {
            "url": os.environ.get("SALEOR_URL", ""),
            "token": os.environ.get("SALEOR_TOKEN", ""),
            "config_path": Path(os.environ.get("SALEOR_CONFIG", DEFAULT_CONFIG_PATH)),
            "remote_timeout_seconds": get_int(
                "SALEOR_REMOTE_TIMEOUT", DEFAULT_REMOTE_TIMEOUT_SECONDS
            ),
            "max_retries": get_int("SALEOR_MAX_RETRIES", MAX_RETRY_ATTEMPTS),
            "report_dir": Path(os.environ.get("SALEOR_REPORT_DIR", DEFAULT_REPORTS_DIR)),
            "max_reports": get_int("SALEOR_MAX_REPORTS", DEFAULT_MAX_REPORTS),
        }

        for key, value in overrides.items():
            if value is None:
                continue
            if key in ("config_path", "report_dir"):
                value = Path(value)
            values[key] = value

        return cls(**values)
