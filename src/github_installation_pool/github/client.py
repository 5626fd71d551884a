"""GitHub API client pooling the rate limits of several App installations.

The githubkit client returned by ``InstallationClient.github`` sends every
request through a RoutingTransport, which picks an installation with
quota left and tracks each installation's rate limit from the responses.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx
from githubkit import GitHub, UnauthAuthStrategy
from githubkit.exception import PrimaryRateLimitExceeded
from githubkit.retry import RETRY_SERVER_ERROR
from githubkit.typing import RetryOption

from github_installation_pool.config import Settings, get_settings
from github_installation_pool.logging import get_logger

from .auth import installation_transport_factory
from .rate_limit.probe import RateLimitProbe, rate_limit_probe
from .routing import (
    InstallationEntry,
    InstallationRegistry,
    InstallationStatus,
    RoutingTransport,
    TransportFactory,
)

logger = get_logger(__name__)


class RetryOnNextInstallation:
    """githubkit retry decision for a pooled client.

    A primary rate limit response has already marked its installation
    exhausted in the registry, so the request is re-sent at once and routed
    to another installation. At most one retry per registered installation
    is made; after that select() raises NoCapacityAvailableError.

    Secondary rate limits are not retried: waiting on them is the caller's
    decision. Server errors keep githubkit's RETRY_SERVER_ERROR policy.
    """

    def __init__(self, registry: InstallationRegistry) -> None:
        self._registry = registry

    def __call__(self, exc: Exception, retry_count: int) -> RetryOption:
        if isinstance(exc, PrimaryRateLimitExceeded):
            if retry_count < len(self._registry):
                logger.debug("Rate limited, retrying on next installation ({})", retry_count + 1)
                return RetryOption(True, timedelta(0))
            return RetryOption(False)
        return RETRY_SERVER_ERROR(exc, retry_count)


class InstallationClient:
    """GitHub API client backed by a pool of App installations.

    Usage:
        async with InstallationClient() as client:
            await client.register(app_id=1, installation_id=42, private_key=pem)
            await client.register(app_id=2, installation_id=43, private_key=other_pem)

            resp = await client.github.rest.repos.async_get("octo", "repo")
            for status in await client.status():
                print(status.installation_id, status.remaining)

    The client exposes registration and status itself; every GitHub API call
    goes through the wrapped githubkit client at ``client.github``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        base_transport: httpx.AsyncBaseTransport | None = None,
        transport_factory: TransportFactory | None = None,
        probe: RateLimitProbe | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Application settings (uses get_settings() if not provided)
            base_transport: Transport installation requests are sent over.
                Defaults to a new httpx.AsyncHTTPTransport owned by this client.
            transport_factory: Builds installation transports. Defaults to
                githubkit App installation auth over base_transport.
            probe: Registration-time rate limit probe. Defaults to GET /rate_limit.
        """
        self._settings = settings or get_settings()
        base_url = self._settings.github_base_url

        self._owns_base_transport = base_transport is None
        self._base_transport = base_transport or httpx.AsyncHTTPTransport()

        self._registry = InstallationRegistry(
            transport_factory or installation_transport_factory(self._base_transport, base_url),
            probe or rate_limit_probe(base_url),
            config=self._settings.routing,
        )
        self._transport = RoutingTransport(self._registry)
        self._github: GitHub[Any] = GitHub(
            UnauthAuthStrategy(),
            base_url=base_url,
            async_transport=self._transport,
            auto_retry=RetryOnNextInstallation(self._registry),
        )

    @property
    def github(self) -> GitHub[Any]:
        """The githubkit client whose requests are routed across installations."""
        return self._github

    @property
    def registry(self) -> InstallationRegistry:
        return self._registry

    @property
    def transport(self) -> RoutingTransport:
        return self._transport

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------
    async def register(
        self,
        app_id: int,
        installation_id: int,
        private_key: str,
    ) -> InstallationEntry:
        """Register a GitHub App installation with the pool.

        Raises:
            DuplicateInstallationError: If installation_id is already registered
            RateLimitProbeError: If the initial rate limit probe fails
        """
        return await self._registry.register(installation_id, app_id, private_key)

    async def register_configured(self) -> list[InstallationEntry]:
        """Register every installation listed in settings.

        Private keys are read from each installation's private_key_path.
        Stops at the first failure; installations registered before it stay
        registered.
        """
        entries: list[InstallationEntry] = []
        for installation in self._settings.installations:
            entries.append(
                await self.register(
                    installation.app_id,
                    installation.installation_id,
                    installation.read_private_key(),
                )
            )
        logger.info("Registered {} configured installations", len(entries))
        return entries

    async def unregister(self, installation_id: int) -> None:
        """Remove an installation from the pool and close its transport.

        Raises:
            InstallationNotFoundError: If installation_id is not registered
        """
        entry = await self._registry.unregister(installation_id)
        await entry.transport.aclose()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------
    async def status(self) -> list[InstallationStatus]:
        """Rate limit state of every installation in registration order."""
        return await self._registry.status()

    async def status_dict(self) -> dict[str, Any]:
        """Export current state as dictionary (for logging/metrics)."""
        statuses = await self.status()
        return {
            "minimum_remaining": self._registry.minimum_remaining,
            "sticky_installation_id": self._registry.sticky_installation_id,
            "installations": [
                {
                    "app_id": s.app_id,
                    "installation_id": s.installation_id,
                    "remaining": s.remaining,
                    "reset_at": s.reset_at.isoformat(),
                    "seconds_until_reset": s.seconds_until_reset,
                    "available": s.available,
                }
                for s in statuses
            ],
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def close(self) -> None:
        """Close installation transports and, if owned, the base transport."""
        await self._registry.aclose()
        if self._owns_base_transport:
            await self._base_transport.aclose()

    async def __aenter__(self) -> InstallationClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.close()
