"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Typed exception hierarchy for the Xray integration engine.

Remote failures are classified once, where they enter the process, into the
closed set of kinds in ``ErrorKind``. Downstream code dispatches on the
exception class (or its ``kind``) instead of matching on message text.
"""

from enum import Enum

INVALID_CREDENTIALS_MARKER = "Invalid client credentials"


class ErrorKind(str, Enum):
    """Every failure the engine can report."""

    TRANSPORT = "transport"
    INVALID_CREDENTIALS = "invalid_credentials"
    AUTHENTICATION_FAILED = "authentication_failed"
    IMPORT_WITHOUT_JOB_ID = "import_without_job_id"
    IMPORT_FAILED = "import_failed"
    JOB_STATUS_FAILED = "job_status_failed"
    POLLING_TIMED_OUT = "polling_timed_out"
    REMOTE_PROTOCOL = "remote_protocol"
    PROJECT_ID_UNRESOLVED = "project_id_unresolved"
    CONFIG_NOT_FOUND = "config_not_found"
    CONFIG_INVALID = "config_invalid"
    LINK_OPERATION_FAILED = "link_operation_failed"


class XrayLinkError(Exception):
    """Base exception for all xraylink errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(XrayLinkError):
    """Raised when an HTTP exchange with the remote API fails.

    ``remote_message`` holds the most specific message available: the ``error``
    field of a JSON error body, the raw response text, or the client exception.
    Timeouts and connection failures are reported here too, with no status code.
    """

    kind = ErrorKind.TRANSPORT

    def __init__(self, remote_message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(remote_message)
        self.remote_message = remote_message
        self.status_code = status_code
        self.url = url


class AuthenticationFailedError(XrayLinkError):
    """Raised when the credential exchange does not yield a token."""

    kind = ErrorKind.AUTHENTICATION_FAILED

    def __init__(self, remote_message: str):
        super().__init__(f"Authentication failed: {remote_message}")
        self.remote_message = remote_message


class InvalidCredentialsError(AuthenticationFailedError):
    """Raised when the remote API rejects the client ID/secret pair."""

    kind = ErrorKind.INVALID_CREDENTIALS

    def __init__(self, remote_message: str):
        XrayLinkError.__init__(self, f"Authentication failed: {INVALID_CREDENTIALS_MARKER}")
        self.remote_message = remote_message


class ImportFailedError(XrayLinkError):
    """Raised when a bulk import submission fails on the remote side."""

    kind = ErrorKind.IMPORT_FAILED

    def __init__(self, remote_message: str):
        super().__init__(f"Import failed: {remote_message}")
        self.remote_message = remote_message


class ImportAcceptedWithoutJobIdError(XrayLinkError):
    """Raised when the import request succeeded but no job ID came back."""

    kind = ErrorKind.IMPORT_WITHOUT_JOB_ID

    def __init__(self, response: object = None):
        super().__init__("Import completed but no jobId returned")
        self.response = response


class JobStatusError(XrayLinkError):
    """Raised when a single job status request fails in transport."""

    kind = ErrorKind.JOB_STATUS_FAILED

    def __init__(self, job_id: str, remote_message: str):
        super().__init__(f"Failed to get job status: {remote_message}")
        self.job_id = job_id
        self.remote_message = remote_message


class PollingTimedOutError(XrayLinkError):
    """Raised when a job never reaches a terminal state within the attempt budget.

    The job may still complete remotely; callers are free to poll again.
    """

    kind = ErrorKind.POLLING_TIMED_OUT

    def __init__(self, job_id: str, attempts: int, last_status: str | None = None):
        super().__init__("Job status polling timed out")
        self.job_id = job_id
        self.attempts = attempts
        self.last_status = last_status


class RemoteProtocolError(XrayLinkError):
    """Raised when a GraphQL response carries an ``errors`` array."""

    kind = ErrorKind.REMOTE_PROTOCOL

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class ProjectIdUnresolvedError(XrayLinkError):
    """Raised when a project key cannot be mapped to a project ID."""

    kind = ErrorKind.PROJECT_ID_UNRESOLVED

    def __init__(self, project_key: str, reason: str | None = None):
        message = f"Could not resolve project ID for {project_key}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.project_key = project_key


class ConfigNotFoundError(XrayLinkError):
    """Raised when no persisted Xray configuration exists."""

    kind = ErrorKind.CONFIG_NOT_FOUND

    def __init__(self, path: object = None):
        super().__init__("Config not found")
        self.path = path


class ConfigInvalidError(XrayLinkError):
    """Raised when the persisted Xray configuration cannot be read."""

    kind = ErrorKind.CONFIG_INVALID

    def __init__(self, path: object, reason: str):
        super().__init__(f"Config at {path} is invalid: {reason}")
        self.path = path
        self.reason = reason


def classify_authentication_error(remote_message: str) -> AuthenticationFailedError:
    """Map a remote authentication failure onto the error taxonomy."""
    if INVALID_CREDENTIALS_MARKER in remote_message:
        return InvalidCredentialsError(remote_message)
    return AuthenticationFailedError(remote_message)
