"""Registry of GitHub App installation transports and their rate limit state.

The registry picks which installation serves each outgoing request:

    1. The most recently selected installation is reused while it has
       capacity (sticky selection).
    2. Otherwise installations are scanned in registration order and the
       first with capacity wins.
    3. If none has capacity, NoCapacityAvailableError is raised at once.

An installation has capacity when its remaining count is above
``minimum_remaining`` or its reset time has passed. The second rule is
optimistic: the quota is assumed refreshed before a response confirms it.

State is updated from response headers with a monotonic guard, so a
reordered response cannot raise the remaining count within a window.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx

from github_installation_pool.config import RoutingConfig, get_settings
from github_installation_pool.github.exceptions import (
    DuplicateInstallationError,
    InstallationNotFoundError,
    InstallationRegistrationError,
    MalformedRateLimitHeaderError,
    NoCapacityAvailableError,
    RateLimitProbeError,
)
from github_installation_pool.logging import bind_installation, get_logger

from .schemas import InstallationStatus

if TYPE_CHECKING:
    from github_installation_pool.github.rate_limit.probe import RateLimitProbe

logger = get_logger(__name__)

# Builds an authenticated transport from (app_id, installation_id, private_key)
TransportFactory = Callable[[int, int, str], httpx.AsyncBaseTransport]


@dataclass
class InstallationEntry:
    """One registered installation and its last known rate limit state."""

    installation_id: int
    app_id: int
    transport: httpx.AsyncBaseTransport
    remaining: int
    reset_at: datetime

    def has_capacity(self, minimum_remaining: int, now: datetime) -> bool:
        return self.remaining > minimum_remaining or now >= self.reset_at

    def to_status(self, minimum_remaining: int, now: datetime) -> InstallationStatus:
        return InstallationStatus(
            app_id=self.app_id,
            installation_id=self.installation_id,
            remaining=self.remaining,
            reset_at=self.reset_at,
            available=self.has_capacity(minimum_remaining, now),
        )


def parse_rate_limit_headers(
    remaining_header: str,
    remaining: str | None,
    reset_header: str,
    reset: str | None,
) -> tuple[int, datetime]:
    """Parse remaining count and reset time from raw header values.

    Raises:
        MalformedRateLimitHeaderError: If either value is missing or not an integer
    """
    try:
        remaining_count = int(remaining)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise MalformedRateLimitHeaderError(remaining_header, remaining) from e

    try:
        reset_at = datetime.fromtimestamp(int(reset), tz=UTC)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise MalformedRateLimitHeaderError(reset_header, reset) from e

    return remaining_count, reset_at


class InstallationRegistry:
    """Holds installation transports and selects one per request.

    Usage:
        registry = InstallationRegistry(transport_factory, probe)
        await registry.register(installation_id=42, app_id=7, private_key=pem)

        entry = await registry.select()
        response = await entry.transport.handle_async_request(request)
        await registry.record_response(
            entry.installation_id,
            response.headers.get("x-ratelimit-remaining"),
            response.headers.get("x-ratelimit-reset"),
        )

    All reads and writes of shared state go through a single asyncio.Lock.
    No network I/O happens while the lock is held.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        probe: RateLimitProbe,
        config: RoutingConfig | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            transport_factory: Builds an authenticated transport for an installation
            probe: Fetches the initial rate limit through a new transport
            config: Routing configuration (uses settings if not provided)
        """
        self._transport_factory = transport_factory
        self._probe = probe
        self._config = config or get_settings().routing

        self._entries: list[InstallationEntry] = []
        self._index: dict[int, InstallationEntry] = {}
        self._sticky_installation_id: int | None = None

        self._lock = asyncio.Lock()

    @property
    def config(self) -> RoutingConfig:
        return self._config

    @property
    def minimum_remaining(self) -> int:
        return self._config.minimum_remaining

    @property
    def sticky_installation_id(self) -> int | None:
        """ID of the installation reused by the next select() (None if unset)."""
        return self._sticky_installation_id

    @property
    def installation_ids(self) -> list[int]:
        """Registered installation IDs in registration order."""
        return [entry.installation_id for entry in self._entries]

    def __contains__(self, installation_id: object) -> bool:
        return installation_id in self._index

    def __len__(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------
    async def register(
        self,
        installation_id: int,
        app_id: int,
        private_key: str,
    ) -> InstallationEntry:
        """Register an installation and seed its rate limit state.

        The probe runs without holding the lock; the duplicate check is
        repeated under the lock before the entry is appended.

        Args:
            installation_id: GitHub App installation ID (unique key)
            app_id: GitHub App ID owning the installation
            private_key: PEM private key of the App

        Returns:
            The new InstallationEntry

        Raises:
            DuplicateInstallationError: If installation_id is already registered
            InstallationRegistrationError: If the transport cannot be built
            RateLimitProbeError: If the initial rate limit probe fails
        """
        log = bind_installation(app_id, installation_id)

        if installation_id in self._index:
            raise DuplicateInstallationError(
                f"Installation {installation_id} is already registered", installation_id
            )

        try:
            transport = self._transport_factory(app_id, installation_id, private_key)
        except Exception as e:
            raise InstallationRegistrationError(
                f"Failed to build transport for installation {installation_id}: {e}",
                installation_id,
            ) from e

        try:
            rate_limit = await self._probe(transport)
        except Exception as e:
            log.error("Rate limit probe failed: {}", e)
            await transport.aclose()
            raise RateLimitProbeError(
                f"Failed to get rate limit for installation {installation_id}: {e}",
                installation_id,
                cause=e,
            ) from e

        entry = InstallationEntry(
            installation_id=installation_id,
            app_id=app_id,
            transport=transport,
            remaining=rate_limit.remaining,
            reset_at=rate_limit.reset_at,
        )

        async with self._lock:
            duplicate = installation_id in self._index
            if not duplicate:
                self._entries.append(entry)
                self._index[installation_id] = entry

        if duplicate:
            await transport.aclose()
            raise DuplicateInstallationError(
                f"Installation {installation_id} is already registered", installation_id
            )

        log.info(
            "Registered installation (remaining={}, reset_at={})",
            entry.remaining,
            entry.reset_at.isoformat(),
        )
        return entry

    async def unregister(self, installation_id: int) -> InstallationEntry:
        """Remove an installation from the registry.

        Clears the sticky selection if it referenced the removed installation.
        The caller owns the returned entry's transport and should close it.

        Raises:
            InstallationNotFoundError: If installation_id is not registered
        """
        async with self._lock:
            entry = self._index.pop(installation_id, None)
            if entry is None:
                raise InstallationNotFoundError(installation_id)
            self._entries.remove(entry)
            if self._sticky_installation_id == installation_id:
                self._sticky_installation_id = None

        bind_installation(entry.app_id, installation_id).info("Unregistered installation")
        return entry

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------
    async def select(self) -> InstallationEntry:
        """Pick the installation to serve the next request.

        Returns:
            The sticky installation if it has capacity, otherwise the first
            installation with capacity in registration order

        Raises:
            NoCapacityAvailableError: If no installation has capacity
        """
        async with self._lock:
            now = datetime.now(UTC)
            minimum = self._config.minimum_remaining

            if self._sticky_installation_id is not None:
                sticky = self._index.get(self._sticky_installation_id)
                if sticky is not None and sticky.has_capacity(minimum, now):
                    return sticky

            for entry in self._entries:
                if entry.has_capacity(minimum, now):
                    if entry.installation_id != self._sticky_installation_id:
                        logger.debug(
                            "Switching to installation {} (remaining={})",
                            entry.installation_id,
                            entry.remaining,
                        )
                    self._sticky_installation_id = entry.installation_id
                    return entry

            reset_at = min((entry.reset_at for entry in self._entries), default=None)

        logger.warning(
            "No installation has rate limit remaining (installations={}, next_reset={})",
            len(self._entries),
            reset_at.isoformat() if reset_at else None,
        )
        raise NoCapacityAvailableError(
            "No remaining installations with rate limit remaining",
            reset_at=reset_at,
        )

    # -------------------------------------------------------------------------
    # State Updates
    # -------------------------------------------------------------------------
    async def record_response(
        self,
        installation_id: int,
        remaining_header: str | None,
        reset_header: str | None,
    ) -> bool:
        """Update an installation's rate limit state from response headers.

        The update is applied only if the reset time moved forward, or the
        reset time did not move forward and the remaining count dropped.

        Args:
            installation_id: Installation that served the request
            remaining_header: Raw remaining count header value
            reset_header: Raw reset time header value (Unix epoch seconds)

        Returns:
            True if the stored state was updated

        Raises:
            MalformedRateLimitHeaderError: If a header is missing or unparsable;
                stored state is left unchanged
        """
        remaining, reset_at = parse_rate_limit_headers(
            self._config.remaining_header,
            remaining_header,
            self._config.reset_header,
            reset_header,
        )

        async with self._lock:
            entry = self._index.get(installation_id)
            if entry is None:
                logger.debug(
                    "Ignoring rate limit update for unregistered installation {}",
                    installation_id,
                )
                return False

            if reset_at > entry.reset_at or remaining < entry.remaining:
                entry.remaining = remaining
                entry.reset_at = reset_at
                return True
            return False

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------
    async def status(self) -> list[InstallationStatus]:
        """Snapshot every installation's rate limit state in registration order."""
        async with self._lock:
            now = datetime.now(UTC)
            minimum = self._config.minimum_remaining
            return [entry.to_status(minimum, now) for entry in self._entries]

    async def aclose(self) -> None:
        """Remove every installation and close its transport.

        Later select() calls raise NoCapacityAvailableError.
        """
        async with self._lock:
            entries = self._entries
            self._entries = []
            self._index = {}
            self._sticky_installation_id = None
        for entry in entries:
            await entry.transport.aclose()
