"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""GraphQL gateway for the Xray Cloud API."""

import logging
from typing import Any

from xraylink.errors import RemoteProtocolError
from xraylink.transport import GRAPHQL_PATH, XrayTransport

logger = logging.getLogger(__name__)


class GraphQLGateway:
    """
    Posts a query or mutation with bearer auth and unwraps the ``data`` envelope.

    The gateway is stateless and never retries: relationship mutations are not
    guaranteed to be idempotent, so retrying is left to the caller.
    """

    def __init__(self, transport: XrayTransport, timeout: float = 30.0):
        self.transport = transport
        self.timeout = timeout

    async def execute(
        self, token: str, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        Execute a GraphQL document.

        Raises:
            TransportError: the HTTP exchange failed
            RemoteProtocolError: the response carried a non-empty ``errors`` array
        """
        envelope = await self.transport.request(
            "POST",
            GRAPHQL_PATH,
            token=token,
            json_body={"query": query, "variables": variables or {}},
            timeout=self.timeout,
        )

        if not isinstance(envelope, dict):
            raise RemoteProtocolError("GraphQL response was not a JSON object")

        errors = envelope.get("errors")
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {}
            message = first.get("message") or "GraphQL error"
            logger.warning(f"GraphQL error response: {message}")
            raise RemoteProtocolError(message, errors=errors)

        return envelope.get("data") or {}
