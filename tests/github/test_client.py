"""Tests for InstallationClient.

Tests cover:
- Registration (direct and from settings)
- Status export
- Unregistration closing the installation transport
- githubkit requests routed across installations
- Rate limited responses retried on another installation without waiting
- Transport ownership on close
"""

import asyncio
from pathlib import Path

import httpx
import pytest

from github_installation_pool.config import InstallationConfig, RoutingConfig, Settings
from github_installation_pool.github.client import InstallationClient
from github_installation_pool.github.exceptions import (
    DuplicateInstallationError,
    InstallationNotFoundError,
    NoCapacityAvailableError,
)
from tests.fixtures.installations import (
    APP_ID,
    MINIMUM_REMAINING,
    OTHER_APP_ID,
    PRIVATE_KEY,
    FakeInstallationBackend,
)
from tests.fixtures.rate_limit_responses import make_core_rate_limit, make_rate_limit_headers


class ClosingMockTransport(httpx.MockTransport):
    """MockTransport that counts aclose() calls."""

    closed = 0

    async def aclose(self) -> None:
        self.closed += 1


def assert_no_capacity(error: BaseException) -> None:
    """Assert error is NoCapacityAvailableError, directly or as githubkit's cause."""
    if not isinstance(error, NoCapacityAvailableError):
        error = error.__cause__
    assert isinstance(error, NoCapacityAvailableError)


# -----------------------------------------------------------------------------
# Test Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and .env files."""
    return Settings(_env_file=None, routing=RoutingConfig(minimum_remaining=MINIMUM_REMAINING))


@pytest.fixture
def base_transport() -> ClosingMockTransport:
    return ClosingMockTransport(lambda request: httpx.Response(200))


@pytest.fixture
def client(
    settings: Settings,
    backend: FakeInstallationBackend,
    base_transport: ClosingMockTransport,
) -> InstallationClient:
    """Client wired to the fake installation backend."""
    return InstallationClient(
        settings,
        base_transport=base_transport,
        transport_factory=backend.factory,
        probe=backend.probe,
    )


# -----------------------------------------------------------------------------
# Test: Registration
# -----------------------------------------------------------------------------
class TestRegister:
    """Tests for InstallationClient.register()."""

    @pytest.mark.asyncio
    async def test_register_adds_installation(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        """Registered installations appear in status with probed quota."""
        backend.initial_limits[42] = make_core_rate_limit(remaining=3000)

        entry = await client.register(app_id=APP_ID, installation_id=42, private_key=PRIVATE_KEY)

        assert entry.installation_id == 42
        assert entry.app_id == APP_ID
        [status] = await client.status()
        assert status.remaining == 3000
        assert status.available is True

    @pytest.mark.asyncio
    async def test_register_duplicate_raises(self, client: InstallationClient) -> None:
        await client.register(APP_ID, 42, PRIVATE_KEY)

        with pytest.raises(DuplicateInstallationError):
            await client.register(OTHER_APP_ID, 42, PRIVATE_KEY)

    @pytest.mark.asyncio
    async def test_register_configured_reads_keys(
        self,
        backend: FakeInstallationBackend,
        base_transport: ClosingMockTransport,
        tmp_path: Path,
    ) -> None:
        """Installations from settings register in order with keys read from disk."""
        key_file = tmp_path / "app.pem"
        key_file.write_text(PRIVATE_KEY)
        keys: list[str] = []

        def factory(app_id: int, installation_id: int, private_key: str) -> httpx.AsyncBaseTransport:
            keys.append(private_key)
            return backend.factory(app_id, installation_id, private_key)

        settings = Settings(
            _env_file=None,
            installations=[
                InstallationConfig(app_id=APP_ID, installation_id=1, private_key_path=key_file),
                InstallationConfig(app_id=OTHER_APP_ID, installation_id=2, private_key_path=key_file),
            ],
        )
        client = InstallationClient(
            settings, base_transport=base_transport, transport_factory=factory, probe=backend.probe
        )

        entries = await client.register_configured()

        assert [e.installation_id for e in entries] == [1, 2]
        assert [e.app_id for e in entries] == [APP_ID, OTHER_APP_ID]
        assert keys == [PRIVATE_KEY, PRIVATE_KEY]

    @pytest.mark.asyncio
    async def test_register_configured_missing_key_file(
        self, backend: FakeInstallationBackend, tmp_path: Path
    ) -> None:
        settings = Settings(
            _env_file=None,
            installations=[
                InstallationConfig(
                    app_id=APP_ID, installation_id=1, private_key_path=tmp_path / "missing.pem"
                ),
            ],
        )
        client = InstallationClient(
            settings,
            base_transport=httpx.MockTransport(lambda r: httpx.Response(200)),
            transport_factory=backend.factory,
            probe=backend.probe,
        )

        with pytest.raises(FileNotFoundError):
            await client.register_configured()

        assert await client.status() == []


# -----------------------------------------------------------------------------
# Test: Unregistration
# -----------------------------------------------------------------------------
class TestUnregister:
    """Tests for InstallationClient.unregister()."""

    @pytest.mark.asyncio
    async def test_unregister_closes_transport(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        await client.register(APP_ID, 1, PRIVATE_KEY)
        await client.register(APP_ID, 2, PRIVATE_KEY)

        await client.unregister(1)

        assert backend.closed == [1]
        assert [s.installation_id for s in await client.status()] == [2]

    @pytest.mark.asyncio
    async def test_unregister_unknown_raises(self, client: InstallationClient) -> None:
        with pytest.raises(InstallationNotFoundError):
            await client.unregister(99)


# -----------------------------------------------------------------------------
# Test: Status
# -----------------------------------------------------------------------------
class TestStatusDict:
    """Tests for InstallationClient.status_dict()."""

    @pytest.mark.asyncio
    async def test_status_dict_structure(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        backend.initial_limits[1] = make_core_rate_limit(remaining=5)
        backend.initial_limits[2] = make_core_rate_limit(remaining=2000)
        await client.register(APP_ID, 1, PRIVATE_KEY)
        await client.register(OTHER_APP_ID, 2, PRIVATE_KEY)
        await client.registry.select()

        result = await client.status_dict()

        assert result["minimum_remaining"] == MINIMUM_REMAINING
        assert result["sticky_installation_id"] == 2
        first, second = result["installations"]
        assert first["installation_id"] == 1
        assert first["available"] is False
        assert second["app_id"] == OTHER_APP_ID
        assert second["remaining"] == 2000
        assert second["available"] is True
        assert isinstance(second["reset_at"], str)
        assert 0 < second["seconds_until_reset"] <= 3600

    @pytest.mark.asyncio
    async def test_status_dict_empty(self, client: InstallationClient) -> None:
        result = await client.status_dict()

        assert result["installations"] == []
        assert result["sticky_installation_id"] is None


# -----------------------------------------------------------------------------
# Test: Request Routing
# -----------------------------------------------------------------------------
class TestGitHubRouting:
    """Tests for requests made through client.github."""

    def test_github_uses_routing_transport(self, client: InstallationClient) -> None:
        assert client.transport.registry is client.registry

    @pytest.mark.asyncio
    async def test_request_routed_to_installation(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        """githubkit requests reach the selected installation's transport."""
        await client.register(APP_ID, 1, PRIVATE_KEY)
        backend.response_headers[1] = make_rate_limit_headers(remaining=1234)

        resp = await client.github.arequest("GET", "/repos/octo/repo")

        assert resp.status_code == 200
        [request] = backend.requests_for(1)
        assert request.url.path == "/repos/octo/repo"
        [status] = await client.status()
        assert status.remaining == 1234

    @pytest.mark.asyncio
    async def test_request_switches_after_exhaustion(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        await client.register(APP_ID, 1, PRIVATE_KEY)
        await client.register(APP_ID, 2, PRIVATE_KEY)
        backend.response_headers[1] = make_rate_limit_headers(remaining=0)

        await client.github.arequest("GET", "/user")
        await client.github.arequest("GET", "/user")

        assert len(backend.requests_for(1)) == 1
        assert len(backend.requests_for(2)) == 1

    @pytest.mark.asyncio
    async def test_request_without_installations(self, client: InstallationClient) -> None:
        """The capacity error reaches the caller, possibly wrapped by githubkit."""
        with pytest.raises(Exception) as exc_info:
            await client.github.arequest("GET", "/user")

        assert_no_capacity(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limited_response_retried_on_next_installation(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        """A 403 with no quota left is re-sent at once through another installation."""
        await client.register(APP_ID, 1, PRIVATE_KEY)
        await client.register(APP_ID, 2, PRIVATE_KEY)
        backend.response_status[1] = 403
        backend.response_headers[1] = make_rate_limit_headers(remaining=0, reset_in_seconds=3600)
        backend.response_headers[2] = make_rate_limit_headers(remaining=4400)

        resp = await asyncio.wait_for(client.github.arequest("GET", "/user"), timeout=2)

        assert resp.status_code == 200
        assert len(backend.requests_for(1)) == 1
        assert len(backend.requests_for(2)) == 1
        first, second = await client.status()
        assert (first.remaining, first.available) == (0, False)
        assert second.remaining == 4400

    @pytest.mark.asyncio
    async def test_all_installations_rate_limited_fails_fast(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        """Once every installation answered 403, the capacity error surfaces without waiting."""
        for installation_id in (1, 2):
            await client.register(APP_ID, installation_id, PRIVATE_KEY)
            backend.response_status[installation_id] = 403
            backend.response_headers[installation_id] = make_rate_limit_headers(
                remaining=0, reset_in_seconds=3600
            )

        with pytest.raises(Exception) as exc_info:
            await asyncio.wait_for(client.github.arequest("GET", "/user"), timeout=2)

        assert_no_capacity(exc_info.value)
        assert len(backend.requests_for(1)) == 1
        assert len(backend.requests_for(2)) == 1


# -----------------------------------------------------------------------------
# Test: Lifecycle
# -----------------------------------------------------------------------------
class TestLifecycle:
    """Tests for closing the client."""

    @pytest.mark.asyncio
    async def test_close_keeps_caller_base_transport(
        self,
        client: InstallationClient,
        backend: FakeInstallationBackend,
        base_transport: ClosingMockTransport,
    ) -> None:
        """A caller-provided base transport is left open; installations are closed."""
        await client.register(APP_ID, 1, PRIVATE_KEY)

        await client.close()

        assert backend.closed == [1]
        assert base_transport.closed == 0

    @pytest.mark.asyncio
    async def test_request_after_close_not_routed(
        self, client: InstallationClient, backend: FakeInstallationBackend
    ) -> None:
        """Closed installation transports are never selected again."""
        await client.register(APP_ID, 1, PRIVATE_KEY)
        await client.close()

        with pytest.raises(Exception) as exc_info:
            await client.github.arequest("GET", "/user")

        assert_no_capacity(exc_info.value)
        assert backend.requests_for(1) == []
        assert await client.status() == []

    @pytest.mark.asyncio
    async def test_context_manager_closes(
        self, settings: Settings, backend: FakeInstallationBackend
    ) -> None:
        async with InstallationClient(
            settings, transport_factory=backend.factory, probe=backend.probe
        ) as client:
            await client.register(APP_ID, 1, PRIVATE_KEY)

        assert backend.closed == [1]
