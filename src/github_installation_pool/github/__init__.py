"""GitHub client module.

This module provides:
- InstallationClient: githubkit client pooling several App installations
- Installation routing: InstallationRegistry, RoutingTransport, InstallationStatus
- InstallationTransport: App installation authentication over httpx
- Rate limit probing: probe_rate_limit, CoreRateLimit
"""

from .auth import InstallationTransport, SharedTransport, installation_transport_factory
from .client import InstallationClient, RetryOnNextInstallation
from .exceptions import (
    DuplicateInstallationError,
    InstallationNotFoundError,
    InstallationPoolError,
    InstallationPoolRetryableError,
    InstallationRegistrationError,
    MalformedRateLimitHeaderError,
    NoCapacityAvailableError,
    RateLimitProbeError,
)
from .rate_limit import (
    CoreRateLimit,
    RateLimitProbe,
    probe_rate_limit,
    rate_limit_probe,
)
from .routing import (
    InstallationEntry,
    InstallationRegistry,
    InstallationStatus,
    RoutingTransport,
    TransportFactory,
)

__all__ = [
    # Client
    "InstallationClient",
    "RetryOnNextInstallation",
    # Exceptions
    "DuplicateInstallationError",
    "InstallationNotFoundError",
    "InstallationPoolError",
    "InstallationPoolRetryableError",
    "InstallationRegistrationError",
    "MalformedRateLimitHeaderError",
    "NoCapacityAvailableError",
    "RateLimitProbeError",
    # Routing
    "InstallationEntry",
    "InstallationRegistry",
    "InstallationStatus",
    "RoutingTransport",
    "TransportFactory",
    # Authentication
    "InstallationTransport",
    "SharedTransport",
    "installation_transport_factory",
    # Rate limit probing
    "CoreRateLimit",
    "RateLimitProbe",
    "probe_rate_limit",
    "rate_limit_probe",
]
