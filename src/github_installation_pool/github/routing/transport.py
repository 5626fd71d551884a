"""httpx transport that routes each request through a registered installation."""

from __future__ import annotations

import httpx

from github_installation_pool.github.exceptions import MalformedRateLimitHeaderError
from github_installation_pool.logging import get_logger

from .registry import InstallationRegistry

logger = get_logger(__name__)


class RoutingTransport(httpx.AsyncBaseTransport):
    """Distributes requests across the installations of an InstallationRegistry.

    Each request is sent unmodified through the transport of the installation
    returned by ``registry.select()``. The rate limit headers of the response
    are then fed back with ``registry.record_response()``.

    Errors:
        - NoCapacityAvailableError from select() propagates unchanged.
        - Transport errors propagate unchanged and leave rate limit state alone.
        - Malformed rate limit headers are logged; the response is still returned.

    Usage:
        transport = RoutingTransport(registry)
        async with httpx.AsyncClient(transport=transport) as client:
            resp = await client.get("https://api.github.com/repos/octo/repo")
    """

    def __init__(self, registry: InstallationRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> InstallationRegistry:
        return self._registry

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        entry = await self._registry.select()

        response = await entry.transport.handle_async_request(request)

        config = self._registry.config
        try:
            await self._registry.record_response(
                entry.installation_id,
                response.headers.get(config.remaining_header),
                response.headers.get(config.reset_header),
            )
        except MalformedRateLimitHeaderError as e:
            logger.warning(
                "Failed to update rate limit for installation {}: {}",
                entry.installation_id,
                e,
            )

        return response

    async def aclose(self) -> None:
        # Installation transports belong to the registry. githubkit closes its
        # httpx client (and so this transport) after every standalone request.
        pass
