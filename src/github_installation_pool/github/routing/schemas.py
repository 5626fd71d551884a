"""Pydantic schemas for installation status reporting."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class InstallationStatus(BaseModel):
    """Point-in-time rate limit state of one registered installation.

    Produced by InstallationRegistry.status() for health and metrics
    endpoints. Instances are read-only copies; changing them has no
    effect on the registry.
    """

    model_config = ConfigDict(frozen=True)

    app_id: int = Field(description="GitHub App ID owning the installation")
    installation_id: int = Field(description="GitHub App installation ID")
    remaining: int = Field(description="Requests remaining as last observed")
    reset_at: datetime = Field(description="UTC datetime when the quota resets")
    available: bool = Field(description="Whether the installation can be selected now")

    @property
    def seconds_until_reset(self) -> int:
        """Seconds until rate limit resets (0 if already past)."""
        delta = self.reset_at - datetime.now(UTC)
        return max(0, int(delta.total_seconds()))
