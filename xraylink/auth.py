"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Token lifecycle for the Xray Cloud API.

Xray exchanges a client ID/secret pair for a bearer token that the remote API
honours for 24 hours. Tokens are refreshed proactively, 30 minutes before that
deadline, so a request never starts with a token about to expire mid-flight.

The manager holds no token state of its own: the cached token is passed in and
the fresh one handed back, leaving persistence to the caller.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from xraylink.errors import (
    AuthenticationFailedError,
    InvalidCredentialsError,
    TransportError,
    classify_authentication_error,
)
from xraylink.models import CachedToken, Credentials, CredentialCheck
from xraylink.transport import AUTHENTICATE_PATH, XrayTransport

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_MINUTES = 24 * 60
DEFAULT_REFRESH_BUFFER_MINUTES = 30


def utc_now() -> datetime:
    return datetime.now(UTC)


class AuthTokenManager:
    """Exchanges credentials for tokens and decides when a cached token is stale."""

    def __init__(
        self,
        transport: XrayTransport,
        validity_minutes: int = DEFAULT_VALIDITY_MINUTES,
        refresh_buffer_minutes: int = DEFAULT_REFRESH_BUFFER_MINUTES,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
        on_token_refreshed: Callable[[CachedToken], None] | None = None,
    ):
        """
        Args:
            transport: HTTP transport bound to the Xray base URL
            validity_minutes: How long the remote API honours a token
            refresh_buffer_minutes: Refresh this long before the remote deadline
            timeout: Timeout in seconds for the credential exchange
            clock: Returns the current UTC time; injectable for tests
            on_token_refreshed: Persistence hook called with every freshly fetched token
        """
        if refresh_buffer_minutes >= validity_minutes:
            raise ValueError("refresh buffer must be shorter than the validity window")
        self.transport = transport
        self.validity = timedelta(minutes=validity_minutes)
        self.usable_for = timedelta(minutes=validity_minutes - refresh_buffer_minutes)
        self.timeout = timeout
        self.clock = clock
        self.on_token_refreshed = on_token_refreshed

    def is_token_valid(self, cached_token: CachedToken | None) -> bool:
        """A token is usable while its age is below the validity window minus the buffer."""
        if cached_token is None:
            return False
        return cached_token.age(self.clock()) < self.usable_for

    async def get_token(
        self, credentials: Credentials, cached_token: CachedToken | None = None
    ) -> CachedToken:
        """
        Return a usable token, fetching a new one when the cached token is stale.

        Raises:
            InvalidCredentialsError: the remote API rejected the client ID/secret
            AuthenticationFailedError: any other authentication failure
        """
        if self.is_token_valid(cached_token):
            return cached_token

        if cached_token is not None:
            logger.info("Cached Xray token is past its refresh point; requesting a new one")

        fresh = await self.fetch_token(credentials)
        if self.on_token_refreshed is not None:
            self.on_token_refreshed(fresh)
        return fresh

    async def fetch_token(self, credentials: Credentials) -> CachedToken:
        """
        Perform the credential exchange unconditionally.

        The authenticate endpoint answers with a bare JSON string, not an object.
        """
        try:
            body = await self.transport.request(
                "POST",
                AUTHENTICATE_PATH,
                json_body={
                    "client_id": credentials.client_id,
                    "client_secret": credentials.client_secret,
                },
                timeout=self.timeout,
            )
        except TransportError as e:
            error = classify_authentication_error(e.remote_message)
            logger.error(f"Xray authentication failed: {error.remote_message}")
            raise error from e

        token = body.strip().strip('"') if isinstance(body, str) else None
        if not token:
            raise AuthenticationFailedError("No token received")

        logger.info("Obtained a new Xray token")
        return CachedToken.issue(token, issued_at=self.clock(), validity=self.validity)

    async def validate_credentials(self, credentials: Credentials) -> CredentialCheck:
        """Check a credential pair against the remote API without keeping the token."""
        try:
            await self.fetch_token(credentials)
        except InvalidCredentialsError:
            return CredentialCheck(success=False, error="Invalid Client ID or Client Secret")
        except AuthenticationFailedError as e:
            return CredentialCheck(success=False, error=str(e))
        return CredentialCheck(success=True)
