"""
Fixtures package for the XRAYLINK testing framework.

This package provides the fake Xray Cloud API and deterministic clock
shared by unit and integration tests.
"""

from tests.fixtures.clock import NOW, FrozenClock
from tests.fixtures.mock_xray import BASE_URL, XrayApiHarness
