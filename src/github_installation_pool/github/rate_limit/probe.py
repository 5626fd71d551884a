"""Registration-time rate limit probe.

Issues a single GET /rate_limit through an installation's transport
to seed its quota state. The endpoint does not count against the
rate limit.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx

from github_installation_pool.logging import get_logger

from .schemas import CoreRateLimit

logger = get_logger(__name__)

RateLimitProbe = Callable[[httpx.AsyncBaseTransport], Awaitable[CoreRateLimit]]

GITHUB_JSON_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
    "User-Agent": "github-installation-pool",
}


async def probe_rate_limit(
    transport: httpx.AsyncBaseTransport,
    *,
    base_url: str = "https://api.github.com",
) -> CoreRateLimit:
    """Fetch the core rate limit for the credentials bound to a transport.

    Args:
        transport: Authenticated installation transport
        base_url: GitHub REST API base URL

    Returns:
        The core pool rate limit

    Raises:
        httpx.HTTPStatusError: If the endpoint returns a non-2xx status
        ValueError: If the response has no core pool
    """
    request = httpx.Request(
        "GET",
        f"{base_url.rstrip('/')}/rate_limit",
        headers=GITHUB_JSON_HEADERS,
    )
    response = await transport.handle_async_request(request)
    try:
        await response.aread()
    finally:
        await response.aclose()

    if not response.is_success:
        raise httpx.HTTPStatusError(
            f"Rate limit probe failed with status {response.status_code}",
            request=request,
            response=response,
        )

    core = CoreRateLimit.from_api_response(response.json())

    logger.debug("Probed rate limit (remaining={}, reset_at={})", core.remaining, core.reset_at)
    return core


def rate_limit_probe(base_url: str) -> RateLimitProbe:
    """Build a RateLimitProbe bound to a GitHub API base URL."""

    async def probe(transport: httpx.AsyncBaseTransport) -> CoreRateLimit:
        return await probe_rate_limit(transport, base_url=base_url)

    return probe
