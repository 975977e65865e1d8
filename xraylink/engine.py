"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Facade over the Xray integration components.

The engine reads the stored configuration on every call, so credentials and
tokens written by another process are picked up without a restart. Tokens
refreshed along the way are written back through the config store.
"""

import logging
from collections.abc import Sequence

from xraylink.auth import AuthTokenManager
from xraylink.bulk_import import BulkImportSubmitter
from xraylink.config_store import StoredConfig, XrayConfigStore
from xraylink.core.config import XrayConfig, get_app_config
from xraylink.core.logging import correlation_id
from xraylink.errors import ConfigNotFoundError, ProjectIdUnresolvedError
from xraylink.graphql_gateway import GraphQLGateway
from xraylink.job_poller import JobStatusPoller
from xraylink.link_diff import compute_diff
from xraylink.link_reconciler import LinkReconciler
from xraylink.models import (
    CredentialCheck,
    Credentials,
    ImportJob,
    ImportSubmission,
    LinkCategory,
    LinkDiff,
    LinkSelection,
    LinkTarget,
    ReconciliationResult,
    TestCaseRecord,
    TestFolder,
)
from xraylink.transport import XrayTransport
from xraylink.xray_api import XrayRelationshipApi

logger = logging.getLogger(__name__)


class XrayIntegrationEngine:
    """
    Entry point for importing tests into Xray Cloud and managing their links.

    Usage:
        async with XrayIntegrationEngine(XrayConfigStore(path)) as engine:
            job = await engine.submit_and_await(records)
            result = await engine.link(job.test_issue_ids[0], selection)
    """

    def __init__(
        self,
        store: XrayConfigStore,
        settings: XrayConfig | None = None,
        transport: XrayTransport | None = None,
    ):
        self.store = store
        self.settings = settings or get_app_config().xray
        self.transport = transport or XrayTransport(
            self.settings.base_url, default_timeout=self.settings.graphql_timeout
        )
        self.auth = AuthTokenManager(
            self.transport,
            validity_minutes=self.settings.token_validity_minutes,
            refresh_buffer_minutes=self.settings.token_refresh_buffer_minutes,
            timeout=self.settings.auth_timeout,
            on_token_refreshed=self.store.save_token,
        )
        self.gateway = GraphQLGateway(self.transport, timeout=self.settings.graphql_timeout)
        self.submitter = BulkImportSubmitter(
            self.transport, self.auth, timeout=self.settings.import_timeout
        )
        self.poller = JobStatusPoller(
            self.transport, self.auth, timeout=self.settings.status_timeout
        )

    @classmethod
    def from_settings(cls, settings: XrayConfig | None = None) -> "XrayIntegrationEngine":
        """Build an engine whose config store lives at ``settings.config_path``."""
        settings = settings or get_app_config().xray
        return cls(XrayConfigStore(settings.config_path), settings=settings)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "XrayIntegrationEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _load_config(self) -> StoredConfig:
        config = self.store.read_config()
        if config is None:
            raise ConfigNotFoundError(self.store.path)
        return config

    async def _bearer_token(self) -> str:
        config = self._load_config()
        token = await self.auth.get_token(config.credentials(), config.cached_token())
        return token.token

    async def _relationship_api(self) -> XrayRelationshipApi:
        """An API bound to one token for the duration of a single operation."""
        token = await self._bearer_token()

        async def token_source() -> str:
            return token

        return XrayRelationshipApi(self.gateway, token_source)

    # Credentials

    async def validate_credentials(
        self, client_id: str | None = None, client_secret: str | None = None
    ) -> CredentialCheck:
        """
        Check a credential pair, defaulting to the stored one.

        The token obtained during the check is discarded.
        """
        if client_id and client_secret:
            credentials = Credentials(client_id=client_id, client_secret=client_secret)
        else:
            credentials = self._load_config().credentials()
        return await self.auth.validate_credentials(credentials)

    # Import

    async def submit_import(
        self, records: Sequence[TestCaseRecord], project_key: str | None = None
    ) -> ImportSubmission:
        config = self._load_config()
        return await self.submitter.submit(
            records,
            config.credentials(),
            config.cached_token(),
            project_key=project_key or self._default_project_key(records, config),
        )

    async def await_import(
        self,
        job_id: str,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> ImportJob:
        config = self._load_config()
        return await self.poller.poll(
            job_id,
            config.credentials(),
            config.cached_token(),
            max_attempts=max_attempts or self.settings.poll_max_attempts,
            interval=self.settings.poll_interval if interval is None else interval,
        )

    async def submit_and_await(
        self,
        records: Sequence[TestCaseRecord],
        project_key: str | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> ImportJob:
        """Submit records and poll the resulting job until it finishes."""
        with correlation_id():
            submission = await self.submit_import(records, project_key=project_key)
            return await self.await_import(
                submission.job_id, max_attempts=max_attempts, interval=interval
            )

    @staticmethod
    def _default_project_key(records: Sequence[TestCaseRecord], config: StoredConfig) -> str | None:
        if records and records[0].project_key:
            return records[0].project_key
        return config.project_key

    # Links

    def compute_diff(self, original: LinkSelection, current: LinkSelection) -> LinkDiff:
        return compute_diff(original, current)

    async def reconcile(
        self,
        test_issue_id: str,
        diff: LinkDiff,
        project_id: str | None = None,
        project_key: str | None = None,
    ) -> ReconciliationResult:
        """Apply a diff; link failures come back as warnings, never as exceptions."""
        with correlation_id():
            api = await self._relationship_api()
            return await LinkReconciler(api).reconcile(
                test_issue_id,
                diff,
                project_id=project_id,
                project_key=project_key or self._load_config().project_key,
            )

    async def link(
        self,
        test_issue_id: str,
        selection: LinkSelection,
        project_key: str | None = None,
    ) -> ReconciliationResult:
        with correlation_id():
            api = await self._relationship_api()
            return await LinkReconciler(api).link(
                test_issue_id,
                selection,
                project_key=project_key or self._load_config().project_key,
            )

    # Lookups

    async def resolve_project_id(self, project_key: str | None = None) -> str:
        project_key = project_key or self._load_config().project_key
        if not project_key:
            raise ProjectIdUnresolvedError("<none>", "no project key configured")
        api = await self._relationship_api()
        return await api.resolve_project_id(project_key)

    async def list_targets(self, category: LinkCategory, project_key: str | None = None) -> list[LinkTarget]:
        project_key = project_key or self._load_config().project_key
        if not project_key:
            raise ValueError("A project key is required to list link targets")
        api = await self._relationship_api()
        return await api.list_targets(category, project_key)

    async def get_test_plans(self, project_key: str | None = None) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.TEST_PLANS, project_key)

    async def get_test_executions(self, project_key: str | None = None) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.TEST_EXECUTIONS, project_key)

    async def get_test_sets(self, project_key: str | None = None) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.TEST_SETS, project_key)

    async def get_preconditions(self, project_key: str | None = None) -> list[LinkTarget]:
        return await self.list_targets(LinkCategory.PRECONDITIONS, project_key)

    async def get_folder(self, project_id: str, path: str = "/") -> TestFolder:
        api = await self._relationship_api()
        return await api.get_folder(project_id, path)
