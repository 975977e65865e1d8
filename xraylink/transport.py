"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Async HTTP transport for the Xray Cloud API.

Every component that talks to Xray goes through ``XrayTransport.request``. It
owns the shared ``httpx.AsyncClient``, applies per-call timeouts, logs request
metrics, and turns every failure into a ``TransportError`` carrying the most
specific remote message it can find.
"""

import json
import logging
import time
from typing import Any

import httpx

from xraylink.core.logging import correlation_manager
from xraylink.errors import TransportError

logger = logging.getLogger(__name__)

AUTHENTICATE_PATH = "/api/v2/authenticate"
BULK_IMPORT_PATH = "/api/v1/import/test/bulk"
GRAPHQL_PATH = "/api/v2/graphql"

SENSITIVE_FIELDS = ("secret", "token", "password", "credential", "authorization")


def job_status_path(job_id: str) -> str:
    return f"{BULK_IMPORT_PATH}/{job_id}/status"


def extract_remote_message(response: httpx.Response | None, fallback: str) -> str:
    """
    Pull the most specific error message out of a failed response.

    Xray reports failures as ``{"error": "..."}``; anything else falls back to
    the response text and finally to the client-side description.
    """
    if response is None:
        return fallback
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    text = response.text.strip() if response.text else ""
    return text or fallback


def mask_sensitive_data(data: Any) -> Any:
    """Mask sensitive fields in request bodies before logging."""
    if isinstance(data, dict):
        return {
            key: "********"
            if any(sensitive in key.lower() for sensitive in SENSITIVE_FIELDS)
            else mask_sensitive_data(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    return data


class XrayTransport:
    """Thin async wrapper around one shared httpx client for a given Xray base URL."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        default_timeout: float = 30.0,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Xray Cloud base URL, e.g. https://xray.cloud.getxray.app
            client: Optional pre-built client (tests pass one with a MockTransport)
            default_timeout: Timeout in seconds for calls that do not pass their own
        """
        self.base_url = base_url.rstrip("/")
        self.default_timeout = default_timeout
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._owns_client = client is None

        # Request metrics for logging and monitoring
        self.request_count = 0
        self.error_count = 0
        self.total_request_time = 0.0

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "XrayTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json_body: Any = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: API path below the base URL
            token: Bearer token; omitted for the authenticate call
            json_body: JSON-serializable request body
            timeout: Timeout in seconds for this call

        Returns:
            The decoded JSON body, the raw text when the body is not JSON, or
            None for empty responses

        Raises:
            TransportError: on timeouts, connection failures and non-2xx statuses
        """
        self.request_count += 1
        request_number = self.request_count
        url = self.url_for(path)

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        current_id = correlation_manager.current_correlation_id()
        if current_id:
            headers["X-Correlation-ID"] = current_id
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"API Request #{request_number}: {method} {path}")
        if logger.isEnabledFor(logging.DEBUG) and json_body is not None:
            logger.debug(f"Request Body: {json.dumps(mask_sensitive_data(json_body))}")

        start_time = time.monotonic()
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                json=json_body,
                timeout=timeout if timeout is not None else self.default_timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.error_count += 1
            message = extract_remote_message(e.response, str(e))
            logger.error(
                f"HTTP Error #{request_number}: {e.response.status_code} - {method} {path} - "
                f"Duration: {time.monotonic() - start_time:.2f}s - {message}"
            )
            raise TransportError(message, status_code=e.response.status_code, url=url) from e
        except httpx.TimeoutException as e:
            self.error_count += 1
            logger.error(
                f"Timeout Error #{request_number}: Request to {url} timed out - "
                f"Duration: {time.monotonic() - start_time:.2f}s"
            )
            raise TransportError(f"Request to {path} timed out", url=url) from e
        except httpx.HTTPError as e:
            self.error_count += 1
            logger.error(f"Request Error #{request_number}: {e!r} - {method} {path}")
            raise TransportError(str(e) or type(e).__name__, url=url) from e

        duration = time.monotonic() - start_time
        self.total_request_time += duration
        logger.info(
            f"Response #{request_number} received in {duration:.2f}s - "
            f"Status: {response.status_code} - {method} {path}"
        )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
