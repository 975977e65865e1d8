"""
Test configuration and fixtures for the xraylink project.

This file is the root pytest configuration file that sets up pytest
markers and shared fixtures for all tests.
"""

import logging
from datetime import timedelta
from pathlib import Path

import pytest

from tests.fixtures.clock import NOW, FrozenClock
from tests.fixtures.mock_xray import BASE_URL, XrayApiHarness
from xraylink.auth import AuthTokenManager
from xraylink.config_store import StoredConfig, XrayConfigStore
from xraylink.core.config import XrayConfig
from xraylink.models import CachedToken, Credentials


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
    config.addinivalue_line("markers", "cli: mark a test that tests CLI functionality")


@pytest.fixture(autouse=True)
def reset_xraylink_logger():
    """Undo handler changes made by configure_logging or the CLI callback."""
    yield
    logger = logging.getLogger("xraylink")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def harness() -> XrayApiHarness:
    """Fake Xray Cloud API."""
    return XrayApiHarness()


@pytest.fixture()
def transport(harness):
    """XrayTransport whose requests are served by the harness."""
    return harness.transport()


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials(client_id="client-id", client_secret="client-secret")


@pytest.fixture()
def auth(transport, clock) -> AuthTokenManager:
    return AuthTokenManager(transport, clock=clock)


@pytest.fixture()
def fresh_token() -> CachedToken:
    """A token issued one hour before NOW."""
    return CachedToken.issue(
        "cached-token", issued_at=NOW - timedelta(hours=1), validity=timedelta(hours=24)
    )


@pytest.fixture()
def xray_settings(tmp_path: Path) -> XrayConfig:
    return XrayConfig(
        base_url=BASE_URL,
        poll_interval=0,
        poll_max_attempts=5,
        config_path=tmp_path / "config" / "xray-config.json",
    )


@pytest.fixture()
def config_store(xray_settings) -> XrayConfigStore:
    """Config store pre-populated with credentials and no token."""
    store = XrayConfigStore(xray_settings.config_path)
    store.write_config(
        StoredConfig(
            client_id="client-id",
            client_secret="client-secret",
            jira_base_url="https://example.atlassian.net",
            project_key="PROJ",
        )
    )
    return store
