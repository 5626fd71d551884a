"""Pydantic schema for the GET /rate_limit response.

Only the core REST quota is read; it seeds an installation's state at
registration time.
See: https://docs.github.com/en/rest/rate-limit/rate-limit
"""

from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field


class CoreRateLimit(BaseModel):
    """Core REST API quota of one set of credentials."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(ge=0, description="Maximum requests allowed per window")
    remaining: int = Field(ge=0, description="Requests remaining in current window")
    used: int = Field(ge=0, description="Requests used in current window")
    reset_at: datetime = Field(description="UTC datetime when the window resets")

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Self:
        """Parse the core pool from a GitHub /rate_limit response body.

        Raises:
            ValueError: If the body has no core pool
        """
        core = data.get("resources", {}).get("core")
        if core is None:
            raise ValueError("Rate limit response has no core pool")

        return cls(
            limit=core["limit"],
            remaining=core["remaining"],
            used=core.get("used", core["limit"] - core["remaining"]),
            reset_at=datetime.fromtimestamp(core["reset"], tz=UTC),
        )
