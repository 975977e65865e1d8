"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Xray Cloud API harness for tests.

Routes requests made through an ``httpx.MockTransport`` to configured
responses. REST endpoints are keyed by method and path; GraphQL documents are
keyed by their operation name. Every request is recorded for assertions.
"""

import json
import re
from collections.abc import Callable
from typing import Any

import httpx

from xraylink.transport import XrayTransport

BASE_URL = "https://xray.mock-server.example.com"

_OPERATION_NAME = re.compile(r"(?:query|mutation)\s+(\w+)")

GraphQLHandler = Callable[[dict[str, Any]], dict[str, Any]]


class XrayApiHarness:
    """
    Configurable fake of the Xray Cloud REST and GraphQL endpoints.

    Responses registered for the same key are served in order; the last one
    keeps being served once the queue is down to it.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.reset()

    def reset(self) -> None:
        self.responses: dict[str, list[tuple[int, Any]]] = {}
        self.graphql_handlers: dict[str, GraphQLHandler] = {}
        self.request_history: list[dict[str, Any]] = []

    # Configuration

    def add_response(self, method: str, path: str, response: Any, status_code: int = 200) -> None:
        key = f"{method.upper()}:{path}"
        self.responses.setdefault(key, []).append((status_code, response))

    def add_error_response(self, method: str, path: str, error: str, status_code: int = 400) -> None:
        self.add_response(method, path, {"error": error}, status_code=status_code)

    def add_token(self, token: str = "mock-token") -> None:
        """Make the authenticate endpoint hand out ``token`` as a bare JSON string."""
        self.add_response("POST", "/api/v2/authenticate", token)

    def add_graphql_response(
        self,
        operation_name: str,
        data: dict[str, Any] | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        envelope: dict[str, Any] = {"data": data}
        if errors is not None:
            envelope["errors"] = errors
        self.graphql_handlers[operation_name] = lambda variables: envelope

    def add_graphql_handler(self, operation_name: str, handler: GraphQLHandler) -> None:
        """Register a handler that builds the GraphQL envelope from the request variables."""
        self.graphql_handlers[operation_name] = handler

    # Inspection

    def requests_for(self, method: str, path: str) -> list[dict[str, Any]]:
        return [
            r for r in self.request_history if r["method"] == method.upper() and r["path"] == path
        ]

    def graphql_requests(self, operation_name: str | None = None) -> list[dict[str, Any]]:
        return [
            r
            for r in self.request_history
            if r.get("operation") and (operation_name is None or r["operation"] == operation_name)
        ]

    # Transport

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        record = {
            "method": request.method,
            "path": request.url.path,
            "headers": {k.lower(): v for k, v in request.headers.items()},
            "json": body,
        }
        self.request_history.append(record)

        if request.url.path == "/api/v2/graphql" and isinstance(body, dict):
            match = _OPERATION_NAME.search(body.get("query", ""))
            operation = match.group(1) if match else None
            record["operation"] = operation
            record["variables"] = body.get("variables") or {}
            handler = self.graphql_handlers.get(operation)
            if handler is None:
                return httpx.Response(
                    200, json={"errors": [{"message": f"Unmocked operation {operation}"}]}
                )
            return httpx.Response(200, json=handler(record["variables"]))

        key = f"{request.method}:{request.url.path}"
        queue = self.responses.get(key)
        if not queue:
            return httpx.Response(404, json={"error": f"No mock for {key}"})
        status_code, payload = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status_code, json=payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def transport(self) -> XrayTransport:
        return XrayTransport(self.base_url, client=self.client())
