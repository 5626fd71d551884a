"""Test fixtures for the GitHub installation pool."""

from .rate_limit_responses import (
    HEADERS_EXHAUSTED,
    HEADERS_GARBLED,
    HEADERS_HEALTHY,
    HEADERS_PARTIAL,
    RATE_LIMIT_RESPONSE_EXHAUSTED,
    RATE_LIMIT_RESPONSE_HEALTHY,
    RATE_LIMIT_RESPONSE_NO_CORE,
    future_reset_timestamp,
    make_core_rate_limit,
    make_json_transport,
    make_rate_limit_headers,
    make_rate_limit_response,
    past_reset_timestamp,
)

__all__ = [
    # Rate limit API responses
    "RATE_LIMIT_RESPONSE_EXHAUSTED",
    "RATE_LIMIT_RESPONSE_HEALTHY",
    "RATE_LIMIT_RESPONSE_NO_CORE",
    "make_rate_limit_response",
    # Response headers
    "HEADERS_EXHAUSTED",
    "HEADERS_GARBLED",
    "HEADERS_HEALTHY",
    "HEADERS_PARTIAL",
    "make_rate_limit_headers",
    # Helpers
    "future_reset_timestamp",
    "make_core_rate_limit",
    "make_json_transport",
    "past_reset_timestamp",
]
