"""GraphQL client fake routing documents by operation name."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

_OPERATION_RE = re.compile(r"\b(?:query|mutation)\s+(\w+)")

Handler = dict[str, Any] | Callable[[dict[str, Any]], dict[str, Any]] | BaseException


def operation_name(document: str) -> str:
    match = _OPERATION_RE.search(document)
    if match is None:
        raise ValueError("document has no named operation")
    return match.group(1)


class FakeGraphQLClient:
    """Answers ``execute`` from per-operation handlers.

    A handler is canned ``data``, a callable taking the variables, or an
    exception to raise. Unrouted mutations succeed with an empty payload;
    unrouted queries raise ``KeyError`` so missing fixtures are obvious.
    """

    def __init__(self, handlers: dict[str, Handler] | None = None) -> None:
        self.handlers: dict[str, Handler] = dict(handlers or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.url = "https://fake.saleor.test/graphql/"

    def route(self, operation: str, handler: Handler) -> None:
        self.handlers[operation] = handler

    def called(self, operation: str) -> list[dict[str, Any]]:
        return [variables for name, variables in self.calls if name == operation]

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        name = operation_name(query)
        variables = variables or {}
        self.calls.append((name, variables))

        handler = self.handlers.get(name)
        if handler is None:
            if query.lstrip().startswith("mutation"):
                return {}
            raise KeyError(f"No fake response for {name}")
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(variables)
        return handler


def connection(*node_list: dict[str, Any]) -> dict[str, Any]:
    """Wrap nodes as a Relay connection."""
    return {"edges": [{"node": node} for node in node_list]}
