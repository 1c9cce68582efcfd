"""GraphQL transport for the Saleor API.

Blocking ``requests`` calls run in the default executor; the retry loop runs
on the event loop. Rate-limited responses (HTTP 429 or a "too many requests"
GraphQL error) and network failures are retried with exponential backoff and
jitter, honouring ``Retry-After`` when the server sends one. Every retry,
rate-limit hit, GraphQL error and network failure is recorded against the
active resilience scope.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

import requests

from .config import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    MAX_RETRY_ATTEMPTS,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
)
from .resilience import (
    current_stage_name,
    record_graphql_error,
    record_network_error,
    record_rate_limit,
    record_retry,
)

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The request could not be completed (network, HTTP status, bad body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GraphQLError(Exception):
    """The API answered with a GraphQL ``errors`` list."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @property
    def is_permission_error(self) -> bool:
        for error in self.errors:
            code = str((error.get("extensions") or {}).get("exception", {}).get("code", ""))
            if code == "PermissionDenied" or "permission" in str(error.get("message", "")).lower():
                return True
        return False


# =============================================================================
# Classification Helpers
# =============================================================================

_NETWORK_MARKERS = (
    "econnrefused",
    "econnreset",
    "etimedout",
    "enotfound",
    "fetch failed",
    "network",
    "connection refused",
    "connection reset",
    "connection aborted",
    "timed out",
    "name or service not known",
    "max retries exceeded",
)

_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests", "throttl")


def is_network_error_message(message: str) -> bool:
    """True when an error message describes a connectivity failure."""
    lowered = message.lower()
    return any(marker in lowered for marker in _NETWORK_MARKERS)


def is_rate_limit_error(message: str | None = None, status_code: int | None = None) -> bool:
    """True for HTTP 429 or a message that reports throttling."""
    if status_code == 429:
        return True
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds.

    Returns:
        Delay in seconds, or None when absent or not a non-negative number.
    """
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds


def compute_backoff(
    attempt: int,
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS,
    max_delay: float = RETRY_MAX_DELAY_SECONDS,
) -> float:
    """Exponential backoff for ``attempt`` (1-based) with up to 20% jitter."""
    backoff = min(initial_delay * (2 ** (attempt - 1)), max_delay)
    jitter = random.uniform(0, backoff * 0.2)
    return min(backoff + jitter, max_delay)


# =============================================================================
# Client
# =============================================================================


class GraphQLClient:
    """Authenticated GraphQL client.

    Args:
        url: GraphQL endpoint (``.../graphql/``).
        token: Bearer token.
        timeout_seconds: Per-request timeout.
        max_attempts: Attempts per request, including the first.
        session: Pre-configured ``requests.Session`` (tests pass a fake).
        sleep: Awaitable sleep used between attempts.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_attempts: int = MAX_RETRY_ATTEMPTS,
        initial_delay_seconds: float = RETRY_INITIAL_DELAY_SECONDS,
        max_delay_seconds: float = RETRY_MAX_DELAY_SECONDS,
        session: requests.Session | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._url = url
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay_seconds
        self._max_delay = max_delay_seconds
        self._sleep = sleep
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
        )

    @property
    def url(self) -> str:
        return self._url

    def close(self) -> None:
        self._session.close()

    def _post(self, payload: dict[str, Any]) -> requests.Response:
        return self._session.post(self._url, json=payload, timeout=self._timeout)

    async def _send(self, payload: dict[str, Any]) -> requests.Response:
        loop = asyncio.get_running_loop()
        ctx = contextvars.copy_context()
        return await loop.run_in_executor(None, functools.partial(ctx.run, self._post, payload))

    async def _wait_before_retry(
        self, attempt: int, reason: str, delay: float | None = None
    ) -> None:
        record_retry()
        wait_time = delay if delay is not None else compute_backoff(
            attempt, self._initial_delay, self._max_delay
        )
        logger.warning(
            "GraphQL request failed, retrying",
            extra={
                "attempt": attempt,
                "max_attempts": self._max_attempts,
                "wait_seconds": round(wait_time, 3),
                "reason": reason,
                "stage": current_stage_name(),
            },
        )
        await self._sleep(wait_time)

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a query or mutation and return its ``data``.

        Raises:
            TransportError: Network failure, HTTP error or unreadable body
                (after retries where applicable).
            GraphQLError: The response carried GraphQL errors.
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        for attempt in range(1, self._max_attempts + 1):
            last_attempt = attempt == self._max_attempts

            try:
                response = await self._send(payload)
            except requests.RequestException as e:
                record_network_error()
                if last_attempt:
                    raise TransportError(f"Network error contacting {self._url}: {e}") from e
                await self._wait_before_retry(attempt, f"network: {e}")
                continue

            status = response.status_code
            if is_rate_limit_error(status_code=status):
                record_rate_limit()
                if last_attempt:
                    raise TransportError(
                        "Rate limit exceeded (429 Too Many Requests)", status_code=status
                    )
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if retry_after is not None:
                    retry_after = min(retry_after, self._max_delay)
                await self._wait_before_retry(attempt, "rate limited", retry_after)
                continue

            if status in (401, 403):
                raise TransportError(
                    f"Unauthorized: HTTP {status} from {self._url} (check your token permissions)",
                    status_code=status,
                )

            if status >= 500:
                record_network_error()
                if last_attempt:
                    raise TransportError(f"Server error: HTTP {status}", status_code=status)
                await self._wait_before_retry(attempt, f"HTTP {status}")
                continue

            if status >= 400:
                raise TransportError(
                    f"HTTP {status}: {response.text[:200]}", status_code=status
                )

            try:
                body = response.json()
            except ValueError as e:
                raise TransportError(f"Invalid JSON response from {self._url}") from e

            errors = body.get("errors") or []
            if errors:
                record_graphql_error()
                message = "; ".join(str(err.get("message", err)) for err in errors)
                if is_rate_limit_error(message):
                    record_rate_limit()
                    if not last_attempt:
                        await self._wait_before_retry(attempt, "rate limited")
                        continue
                raise GraphQLError(f"GraphQL errors: {message}", errors)

            return body.get("data") or {}

        # Unreachable: the last attempt either returns or raises
        raise TransportError(f"Request to {self._url} failed after {self._max_attempts} attempts")
