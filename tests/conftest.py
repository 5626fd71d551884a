"""Pytest configuration and shared fixtures.

Usage Guide:
- For routing tests: use the `backend` and `registry` fixtures, and
  tests.fixtures.installations.register_installation to seed an
  installation with a given quota
- For probe/schema tests: import response fixtures from tests.fixtures
"""

from datetime import UTC, datetime

import pytest

from github_installation_pool.config import RoutingConfig
from github_installation_pool.github.routing import InstallationRegistry
from tests.fixtures.installations import MINIMUM_REMAINING, FakeInstallationBackend


# -----------------------------------------------------------------------------
# Routing Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def backend() -> FakeInstallationBackend:
    """Fake installation backend with no installations."""
    return FakeInstallationBackend()


@pytest.fixture
def routing_config() -> RoutingConfig:
    """Routing configuration with a small threshold for readable tests."""
    return RoutingConfig(minimum_remaining=MINIMUM_REMAINING)


@pytest.fixture
def registry(
    backend: FakeInstallationBackend, routing_config: RoutingConfig
) -> InstallationRegistry:
    """Empty registry wired to the fake backend."""
    return InstallationRegistry(backend.factory, backend.probe, config=routing_config)


# -----------------------------------------------------------------------------
# Utility Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def utc_now() -> datetime:
    """Current UTC datetime for tests."""
    return datetime.now(UTC)
