"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Polling of bulk import jobs.

A job moves through ``pending`` and ``working`` to either ``successful`` or
``failed``. The poller only retries after successfully observing a non-terminal
status; a transport failure on any single request ends the whole poll.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from xraylink.auth import AuthTokenManager
from xraylink.errors import JobStatusError, PollingTimedOutError, TransportError
from xraylink.models import CachedToken, CreatedIssue, Credentials, ImportJob, ImportStatus
from xraylink.transport import XrayTransport, job_status_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_INTERVAL = 2.0
FAILED_JOB_FALLBACK_MESSAGE = "Import job failed"


def extract_created_issues(result: Any) -> list[CreatedIssue]:
    """
    Read created issues from a successful job result.

    Xray reports them under ``issues``; ``createdIssues`` is the older name.
    """
    if not isinstance(result, dict):
        return []
    issues = result.get("issues")
    if issues is None:
        issues = result.get("createdIssues")
    return [
        CreatedIssue(id=issue.get("id"), key=issue.get("key"))
        for issue in issues or []
        if isinstance(issue, dict) and issue.get("id") is not None
    ]


def extract_failure_message(result: Any) -> str:
    """Pick the most specific message out of a failed job result."""
    if isinstance(result, dict):
        if result.get("error"):
            return str(result["error"])
        if result.get("message"):
            return str(result["message"])
        errors = result.get("errors")
        if errors:
            if isinstance(errors, list):
                return ", ".join(
                    e.get("message", json.dumps(e)) if isinstance(e, dict) else str(e)
                    for e in errors
                )
            return str(errors)
    if isinstance(result, str) and result:
        return result
    if result is None:
        return FAILED_JOB_FALLBACK_MESSAGE
    return json.dumps(result, default=str) or FAILED_JOB_FALLBACK_MESSAGE


def parse_status(raw: Any) -> ImportStatus | None:
    try:
        return ImportStatus(raw)
    except ValueError:
        return None


class JobStatusPoller:
    """Follows a bulk import job handle until it reaches a terminal state."""

    def __init__(
        self,
        transport: XrayTransport,
        auth: AuthTokenManager,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.transport = transport
        self.auth = auth
        self.timeout = timeout
        self._sleep = sleep

    async def poll(
        self,
        job_id: str,
        credentials: Credentials,
        cached_token: CachedToken | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL,
    ) -> ImportJob:
        """
        Poll the job until it is ``successful`` or ``failed``.

        Args:
            job_id: Handle returned by the bulk import submission
            credentials: Xray API key pair
            cached_token: Token to reuse when still valid
            max_attempts: Upper bound on status requests
            interval: Seconds to wait after each non-terminal status

        Returns:
            The terminal job state; a ``failed`` job is returned, not raised

        Raises:
            AuthenticationFailedError: no token could be obtained
            JobStatusError: a status request failed in transport
            PollingTimedOutError: no terminal state within ``max_attempts``
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        token = await self.auth.get_token(credentials, cached_token)
        path = job_status_path(job_id)
        last_status: str | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                body = await self.transport.request(
                    "GET", path, token=token.token, timeout=self.timeout
                )
            except TransportError as e:
                raise JobStatusError(job_id, e.remote_message) from e

            body = body if isinstance(body, dict) else {}
            last_status = body.get("status")
            result = body.get("result")
            status = parse_status(last_status)

            if status == ImportStatus.SUCCESSFUL:
                created = extract_created_issues(result)
                logger.info(
                    f"Import job {job_id} succeeded after {attempt} status request(s), "
                    f"{len(created)} issue(s) created"
                )
                return ImportJob(
                    job_id=job_id,
                    status=status,
                    created_issues=created,
                    attempts=attempt,
                )

            if status == ImportStatus.FAILED:
                message = extract_failure_message(result)
                logger.error(f"Import job {job_id} failed: {message}")
                return ImportJob(
                    job_id=job_id,
                    status=status,
                    error=message,
                    details=result,
                    attempts=attempt,
                )

            logger.debug(
                f"Import job {job_id} is {last_status!r} (attempt {attempt}/{max_attempts})"
            )
            if attempt < max_attempts:
                await self._sleep(interval)

        logger.warning(f"Import job {job_id} still {last_status!r} after {max_attempts} attempts")
        raise PollingTimedOutError(job_id, max_attempts, last_status)
