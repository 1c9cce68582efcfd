"""Deployment error taxonomy, exit codes and user-facing rendering.

Every failure that reaches the CLI is a ``DeploymentError`` carrying one
closed ``ErrorKind`` tag. Exit codes and user messages are derived from the
tag by the pure functions ``exit_code_for`` and ``render_user_message``;
``classify_error`` turns any other exception into a ``DeploymentError``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

from .config import ConfigurationError
from .config_loader import ConfigLoadError
from .diff import (
    ConfigurationLoadError,
    DiffComparisonError,
    EntityValidationError,
    RemoteConfigurationError,
)
from .recovery import format_recovery_suggestions, get_recovery_suggestions
from .transport import GraphQLError, TransportError


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    UNEXPECTED = 1
    AUTHENTICATION = 2
    NETWORK = 3
    VALIDATION = 4
    PARTIAL_FAILURE = 5
    DELETION_BLOCKED = 6


class ErrorKind(str, Enum):
    """Closed set of deployment failure kinds."""

    LOCAL_CONFIG_LOAD = "local_config_load"
    REMOTE_CONFIG_RETRIEVAL = "remote_config_retrieval"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    STAGE_AGGREGATE = "stage_aggregate"
    PARTIAL_DEPLOYMENT = "partial_deployment"
    UNEXPECTED = "unexpected"


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class EntityFailure:
    """One entity that failed inside a stage."""

    entity: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass(frozen=True)
class StageAggregateFailure:
    """Entities of one stage that succeeded and failed.

    Attributes:
        operations: ``(entity, operation)`` pairs taken from the diff
            (``create``, ``update`` or ``delete``).
    """

    stage_name: str
    failures: tuple[EntityFailure, ...]
    successes: tuple[str, ...] = ()
    operations: tuple[tuple[str, str], ...] = ()

    @property
    def total(self) -> int:
        return len(self.failures) + len(self.successes)

    def operation_of(self, entity: str) -> str:
        """Operation applied to ``entity``; ``update`` when the diff has none."""
        return dict(self.operations).get(entity, "update")


@dataclass(frozen=True)
class FailedOperation:
    operation: str
    error: str


@dataclass(frozen=True)
class PartialDeploymentFailure:
    completed: tuple[str, ...]
    failed: tuple[FailedOperation, ...]


@dataclass(frozen=True)
class ValidationFailure:
    validation_errors: tuple[str, ...]


Payload = StageAggregateFailure | PartialDeploymentFailure | ValidationFailure


# =============================================================================
# Suggestions and Titles
# =============================================================================

_NETWORK_SUGGESTIONS = (
    "Check your internet connection",
    "Verify the Saleor instance URL is correct",
    "Ensure the Saleor instance is running and accessible",
    "Check if you're behind a proxy or firewall",
)

_VALIDATION_SUGGESTIONS = (
    "Review the validation errors above",
    "Check your configuration file for syntax errors",
    "Ensure all required fields are present",
    "Validate your configuration with 'saleor-configurator diff'",
)

DEFAULT_SUGGESTIONS: dict[ErrorKind, tuple[str, ...]] = {
    ErrorKind.NETWORK: _NETWORK_SUGGESTIONS,
    ErrorKind.REMOTE_CONFIG_RETRIEVAL: (
        *_NETWORK_SUGGESTIONS[:3],
        "Increase SALEOR_REMOTE_TIMEOUT if the instance is slow to respond",
    ),
    ErrorKind.AUTHENTICATION: (
        "Verify your API token is correct: --token YOUR_TOKEN",
        "Check token permissions in Saleor dashboard",
        "Generate a new token if the current one is expired",
        "Ensure the token has the required permissions for this operation",
    ),
    ErrorKind.VALIDATION: _VALIDATION_SUGGESTIONS,
    ErrorKind.LOCAL_CONFIG_LOAD: _VALIDATION_SUGGESTIONS,
    ErrorKind.STAGE_AGGREGATE: (
        "Review the individual errors below",
        "Fix the issues and run deploy again",
        "Use --include flag to deploy only specific entities",
        "Run 'saleor-configurator diff' to check current state",
    ),
    ErrorKind.PARTIAL_DEPLOYMENT: (
        "Review the failed operations above",
        "Fix the issues and run deploy again to retry failed operations",
        "Check Saleor logs for more details",
        "Consider running 'saleor-configurator diff' to see current state",
    ),
    ErrorKind.UNEXPECTED: (
        "Check the error message above for clues",
        "Run with --verbose flag for more details",
        "Check if this is a known issue on GitHub",
        "Report this issue if it persists",
    ),
}

KIND_TITLES: dict[ErrorKind, str] = {
    ErrorKind.LOCAL_CONFIG_LOAD: "Configuration Load Error",
    ErrorKind.REMOTE_CONFIG_RETRIEVAL: "Remote Configuration Error",
    ErrorKind.NETWORK: "Network Error",
    ErrorKind.AUTHENTICATION: "Authentication Error",
    ErrorKind.VALIDATION: "Validation Error",
    ErrorKind.STAGE_AGGREGATE: "Stage Execution Failure",
    ErrorKind.PARTIAL_DEPLOYMENT: "Partial Deployment Failure",
    ErrorKind.UNEXPECTED: "Unexpected Error",
}


# =============================================================================
# DeploymentError
# =============================================================================


class DeploymentError(Exception):
    """A classified deployment failure.

    Attributes:
        kind: Failure kind; decides exit code and rendering.
        context: Key/value details shown to the user.
        suggestions: Numbered suggested actions.
        original_error: The exception this error was classified from.
        payload: Kind-specific data (stage failures, partial operations,
            validation errors).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        context: dict[str, Any] | None = None,
        suggestions: Sequence[str] | None = None,
        original_error: BaseException | None = None,
        payload: Payload | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = dict(context or {})
        self.suggestions = (
            tuple(suggestions) if suggestions is not None else DEFAULT_SUGGESTIONS[kind]
        )
        self.original_error = original_error
        self.payload = payload

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.kind)


def network_error(
    message: str,
    context: dict[str, Any] | None = None,
    original_error: BaseException | None = None,
) -> DeploymentError:
    return DeploymentError(ErrorKind.NETWORK, message, context, original_error=original_error)


def authentication_error(
    message: str,
    context: dict[str, Any] | None = None,
    original_error: BaseException | None = None,
) -> DeploymentError:
    return DeploymentError(
        ErrorKind.AUTHENTICATION, message, context, original_error=original_error
    )


def validation_error(
    message: str,
    validation_errors: Sequence[str],
    context: dict[str, Any] | None = None,
    original_error: BaseException | None = None,
    kind: ErrorKind = ErrorKind.VALIDATION,
) -> DeploymentError:
    details = {**(context or {}), "validationErrors": ", ".join(validation_errors)}
    return DeploymentError(
        kind,
        message,
        details,
        original_error=original_error,
        payload=ValidationFailure(tuple(validation_errors)),
    )


def stage_aggregate_error(
    stage_name: str,
    failures: Sequence[EntityFailure],
    successes: Sequence[str] = (),
    operations: Mapping[str, str] | None = None,
) -> DeploymentError:
    """Error raised by a stage when some of its entities failed.

    Args:
        operations: Entity name -> diff operation, for entities the diff covers.
    """
    payload = StageAggregateFailure(
        stage_name,
        tuple(failures),
        tuple(successes),
        tuple((operations or {}).items()),
    )
    return DeploymentError(
        ErrorKind.STAGE_AGGREGATE,
        f"{stage_name} failed for {len(failures)} of {payload.total} entities",
        {
            "stageName": stage_name,
            "totalEntities": payload.total,
            "failedCount": len(failures),
            "successCount": len(successes),
        },
        payload=payload,
    )


def partial_deployment_error(
    message: str,
    completed: Sequence[str],
    failed: Sequence[FailedOperation],
    context: dict[str, Any] | None = None,
    original_error: BaseException | None = None,
) -> DeploymentError:
    details = {
        **(context or {}),
        "completedCount": len(completed),
        "failedCount": len(failed),
    }
    return DeploymentError(
        ErrorKind.PARTIAL_DEPLOYMENT,
        message,
        details,
        original_error=original_error,
        payload=PartialDeploymentFailure(tuple(completed), tuple(failed)),
    )


def unexpected_error(message: str, original_error: BaseException | None = None) -> DeploymentError:
    return DeploymentError(ErrorKind.UNEXPECTED, message, original_error=original_error)


class StageExecutionError(Exception):
    """A deployment stage raised; the run stopped at that stage.

    Attributes:
        stage_name: Name of the failing stage.
        metrics: Deployment metrics collected up to the failure.
    """

    def __init__(self, stage_name: str, message: str, metrics: Any = None) -> None:
        super().__init__(f'Deployment failed during "{stage_name}": {message}')
        self.stage_name = stage_name
        self.metrics = metrics


# =============================================================================
# Pure Functions
# =============================================================================


def exit_code_for(kind: ErrorKind) -> int:
    """Process exit code for a failure kind."""
    match kind:
        case ErrorKind.AUTHENTICATION:
            return ExitCode.AUTHENTICATION
        case ErrorKind.NETWORK | ErrorKind.REMOTE_CONFIG_RETRIEVAL:
            return ExitCode.NETWORK
        case ErrorKind.VALIDATION | ErrorKind.LOCAL_CONFIG_LOAD:
            return ExitCode.VALIDATION
        case ErrorKind.STAGE_AGGREGATE | ErrorKind.PARTIAL_DEPLOYMENT:
            return ExitCode.PARTIAL_FAILURE
        case _:
            return ExitCode.UNEXPECTED


def _numbered(suggestions: Sequence[str]) -> list[str]:
    return [f"  {i}. {s}" for i, s in enumerate(suggestions, start=1)]


def _render_stage_aggregate(error: DeploymentError, payload: StageAggregateFailure) -> str:
    lines = [
        f"❌ {payload.stage_name} - {len(payload.failures)} of {payload.total} failed",
        "",
    ]

    if payload.successes:
        lines.append("✅ Successful:")
        lines.extend(f"  • {entity}" for entity in payload.successes)
        lines.append("")

    if payload.failures:
        lines.append("❌ Failed:")
        for failure in payload.failures:
            lines.append(f"  • {failure.entity}")
            lines.append(f"    Error: {failure.message}")
            recovery = format_recovery_suggestions(get_recovery_suggestions(failure.message))
            lines.extend(f"    {line}" for line in recovery)
            lines.append("")

    if error.suggestions:
        lines.append("General suggestions:")
        lines.extend(_numbered(error.suggestions))

    lines.extend(["", "Run 'saleor-configurator deploy --verbose' for detailed error traces"])
    return "\n".join(lines)


def render_user_message(error: DeploymentError, verbose: bool = False) -> str:
    """Render the text shown to the user for a failure.

    Stage-aggregate failures list successes and failures with per-failure
    recovery suggestions; partial deployments list completed and failed
    operations. Verbose mode appends the original error.
    """
    if error.kind == ErrorKind.STAGE_AGGREGATE and isinstance(
        error.payload, StageAggregateFailure
    ):
        return _render_stage_aggregate(error, error.payload)

    lines = [f"❌ Deployment failed: {KIND_TITLES[error.kind]}", "", error.message]

    if error.context:
        lines.extend(["", "Details:"])
        lines.extend(f"  • {key}: {value}" for key, value in error.context.items())

    if isinstance(error.payload, PartialDeploymentFailure):
        if error.payload.completed:
            lines.extend(["", "✅ Completed operations:"])
            lines.extend(f"  • {op}" for op in error.payload.completed)
        if error.payload.failed:
            lines.extend(["", "❌ Failed operations:"])
            for failed in error.payload.failed:
                lines.append(f"  • {failed.operation}: {failed.error}")
                recovery = format_recovery_suggestions(get_recovery_suggestions(failed.error))
                lines.extend(f"    {line}" for line in recovery)

    if error.suggestions:
        lines.extend(["", "Suggested actions:"])
        lines.extend(_numbered(error.suggestions))

    if verbose:
        if error.original_error is not None:
            lines.extend(["", "Original error:", repr(error.original_error)])
    else:
        lines.extend(["", "For more details, run with --verbose flag."])

    return "\n".join(lines)


# =============================================================================
# Classification
# =============================================================================

_CONFIG_FILE_PATTERNS = (
    "configuration file not found",
    "failed to load",
    "yaml",
    "expected schema",
)
_NETWORK_PATTERNS = (
    "fetch failed",
    "econnrefused",
    "etimedout",
    "enotfound",
    "econnreset",
    "network",
    "connection refused",
    "connection aborted",
    "max retries exceeded",
    "name or service not known",
)
_AUTH_PATTERNS = ("unauthorized", "authentication", "permission", "forbidden", "invalid token")
_VALIDATION_PATTERNS = ("validation", "invalid", "required")


def _matches(message: str, patterns: Sequence[str]) -> bool:
    return any(p in message for p in patterns)


def classify_error(error: BaseException, operation: str = "deployment") -> DeploymentError:
    """Classify any exception into a ``DeploymentError``.

    Typed errors from the loader, diff engine and transport are mapped
    directly; anything else is classified by message heuristics, falling back
    to an unexpected error.
    """
    if isinstance(error, DeploymentError):
        return error

    if isinstance(error, StageExecutionError) and error.__cause__ is not None:
        classified = classify_error(error.__cause__, operation)
        classified.context.setdefault("stage", error.stage_name)
        return classified

    context = {"operation": operation}
    message = str(error)
    lowered = message.lower()

    match error:
        case ConfigLoadError():
            return validation_error(
                "Configuration file error",
                error.validation_errors or [message],
                context,
                error,
                kind=ErrorKind.LOCAL_CONFIG_LOAD,
            )
        case ConfigurationLoadError():
            cause = error.__cause__
            errors = cause.validation_errors if isinstance(cause, ConfigLoadError) else []
            return validation_error(
                "Configuration file error",
                errors or [message],
                context,
                error,
                kind=ErrorKind.LOCAL_CONFIG_LOAD,
            )
        case EntityValidationError() | ConfigurationError():
            return validation_error("Configuration validation failed", [message], context, error)
        case RemoteConfigurationError():
            if _matches(lowered, _AUTH_PATTERNS):
                return authentication_error("Authentication failed", context, error)
            return DeploymentError(
                ErrorKind.REMOTE_CONFIG_RETRIEVAL,
                "Unable to retrieve remote configuration",
                {**context, "timedOut": error.timed_out, "reason": message},
                original_error=error,
            )
        case TransportError() if error.status_code in (401, 403):
            return authentication_error("Authentication failed", context, error)
        case TransportError():
            return network_error("Unable to connect to Saleor instance", context, error)
        case DiffComparisonError():
            return unexpected_error(f"Unexpected error during {operation}: {message}", error)
        case GraphQLError() if error.is_permission_error:
            return authentication_error("Authentication failed", context, error)

    if _matches(lowered, _CONFIG_FILE_PATTERNS) or ("config" in lowered and "not found" in lowered):
        return validation_error("Configuration file error", [message], context, error)
    if _matches(lowered, _NETWORK_PATTERNS):
        return network_error("Unable to connect to Saleor instance", context, error)
    if _matches(lowered, _AUTH_PATTERNS):
        return authentication_error("Authentication failed", context, error)
    if _matches(lowered, _VALIDATION_PATTERNS):
        return validation_error("Configuration validation failed", [message], context, error)

    return unexpected_error(f"Unexpected error during {operation}", error)
