"""Installation routing for pooled GitHub App rate limits.

This module provides:
- InstallationRegistry: registered installations and their rate limit state
- RoutingTransport: httpx transport selecting an installation per request
"""

from .registry import (
    InstallationEntry,
    InstallationRegistry,
    TransportFactory,
    parse_rate_limit_headers,
)
from .schemas import InstallationStatus
from .transport import RoutingTransport

__all__ = [
    "InstallationEntry",
    "InstallationRegistry",
    "InstallationStatus",
    "RoutingTransport",
    "TransportFactory",
    "parse_rate_limit_headers",
]
