"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Bulk import of test case records into Xray Cloud.

Submission is asynchronous on the remote side: a successful POST only returns a
job handle, which the JobStatusPoller then follows to completion.
"""

import logging
from collections.abc import Sequence
from typing import Any

from xraylink.auth import AuthTokenManager
from xraylink.core.logging import log_operation
from xraylink.errors import (
    ImportAcceptedWithoutJobIdError,
    ImportFailedError,
    TransportError,
)
from xraylink.models import CachedToken, Credentials, ImportSubmission, TestCaseRecord
from xraylink.transport import BULK_IMPORT_PATH, XrayTransport

logger = logging.getLogger(__name__)

DEFAULT_TEST_TYPE = "Manual"


def to_bulk_import_format(record: TestCaseRecord, project_key: str) -> dict[str, Any]:
    """Convert one record to the Xray bulk import wire shape."""
    return {
        "testtype": record.test_type or DEFAULT_TEST_TYPE,
        "fields": {
            "summary": record.summary,
            "project": {"key": project_key},
            "description": record.description or "",
            "labels": list(record.labels),
        },
        "steps": [
            {
                "action": step.action or "",
                "data": step.data or "",
                "result": step.result or "",
            }
            for step in record.steps
        ],
    }


class BulkImportSubmitter:
    """Maps records to the bulk import payload and submits them for creation."""

    def __init__(
        self,
        transport: XrayTransport,
        auth: AuthTokenManager,
        timeout: float = 60.0,
        default_project_key: str | None = None,
    ):
        self.transport = transport
        self.auth = auth
        self.timeout = timeout
        self.default_project_key = default_project_key

    def resolve_project_key(
        self, records: Sequence[TestCaseRecord], project_key: str | None = None
    ) -> str:
        """Explicit key first, then the first record's own key, then the configured default."""
        resolved = project_key or (records[0].project_key if records else None)
        resolved = resolved or self.default_project_key
        if not resolved:
            raise ImportFailedError("No project key specified")
        return resolved

    def build_payload(
        self, records: Sequence[TestCaseRecord], project_key: str
    ) -> list[dict[str, Any]]:
        # A record that names its own project keeps it; the rest use the resolved key
        return [to_bulk_import_format(r, r.project_key or project_key) for r in records]

    async def submit(
        self,
        records: Sequence[TestCaseRecord],
        credentials: Credentials,
        cached_token: CachedToken | None = None,
        project_key: str | None = None,
    ) -> ImportSubmission:
        """
        Submit records for asynchronous creation.

        Raises:
            InvalidCredentialsError, AuthenticationFailedError: before any import attempt
            ImportFailedError: the remote API rejected the import, or no project key
            ImportAcceptedWithoutJobIdError: the request succeeded without a job handle
        """
        if not records:
            raise ImportFailedError("No test cases to import")
        target_project = self.resolve_project_key(records, project_key)

        token = await self.auth.get_token(credentials, cached_token)
        payload = self.build_payload(records, target_project)

        async with log_operation(
            logger,
            "bulk import submission",
            context={"project_key": target_project, "records": len(records)},
        ) as context:
            try:
                response = await self.transport.request(
                    "POST",
                    BULK_IMPORT_PATH,
                    token=token.token,
                    json_body=payload,
                    timeout=self.timeout,
                )
            except TransportError as e:
                raise ImportFailedError(e.remote_message) from e

            job_id = response.get("jobId") if isinstance(response, dict) else None
            if not job_id:
                raise ImportAcceptedWithoutJobIdError(response)
            context["job_id"] = job_id

        return ImportSubmission(
            job_id=str(job_id), project_key=target_project, record_count=len(records)
        )
