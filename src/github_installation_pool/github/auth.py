"""Installation-authenticated httpx transport.

Token minting and caching are delegated to githubkit's
AppInstallationAuthStrategy. This module applies its auth flow to
requests sent through a shared base transport, and sends the token
exchange through the same transport.
"""

from __future__ import annotations

from typing import Any

import httpx
from githubkit import AppInstallationAuthStrategy, GitHub

from .routing.registry import TransportFactory


class SharedTransport(httpx.AsyncBaseTransport):
    """Forwards requests to a transport owned elsewhere.

    githubkit closes its httpx client, and with it the client transport,
    after every standalone request. aclose() here leaves the wrapped
    transport open.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport) -> None:
        self._transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        pass


class InstallationTransport(httpx.AsyncBaseTransport):
    """Signs requests as one GitHub App installation.

    Usage:
        base = httpx.AsyncHTTPTransport()
        transport = InstallationTransport(app_id, installation_id, pem, base_transport=base)
        async with httpx.AsyncClient(transport=transport) as client:
            ...

    The base transport is shared between installations and is not closed
    by aclose(); its owner closes it.
    """

    def __init__(
        self,
        app_id: int,
        installation_id: int,
        private_key: str,
        *,
        base_transport: httpx.AsyncBaseTransport,
        base_url: str = "https://api.github.com",
    ) -> None:
        self.app_id = app_id
        self.installation_id = installation_id
        self._transport = base_transport

        strategy = AppInstallationAuthStrategy(
            app_id=app_id,
            private_key=private_key,
            installation_id=installation_id,
        )
        # Used by the auth flow to exchange the App JWT for installation tokens
        self._github: GitHub[Any] = GitHub(
            strategy,
            base_url=base_url,
            async_transport=SharedTransport(base_transport),
        )
        self._auth: httpx.Auth = strategy.get_auth_flow(self._github)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self._auth.requires_request_body:
            await request.aread()

        auth_flow = self._auth.async_auth_flow(request)
        try:
            request = await auth_flow.__anext__()
            while True:
                response = await self._transport.handle_async_request(request)
                if self._auth.requires_response_body:
                    await response.aread()
                try:
                    next_request = await auth_flow.asend(response)
                except StopAsyncIteration:
                    return response
                await response.aclose()
                request = next_request
        finally:
            await auth_flow.aclose()

    async def aclose(self) -> None:
        pass


def installation_transport_factory(
    base_transport: httpx.AsyncBaseTransport,
    base_url: str = "https://api.github.com",
) -> TransportFactory:
    """Build a TransportFactory producing InstallationTransports over a shared base."""

    def factory(app_id: int, installation_id: int, private_key: str) -> InstallationTransport:
        return InstallationTransport(
            app_id,
            installation_id,
            private_key,
            base_transport=base_transport,
            base_url=base_url,
        )

    return factory
