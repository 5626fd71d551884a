"""Configuration settings for the GitHub installation pool."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RoutingConfig(BaseModel):
    """Configuration for installation selection and rate limit tracking.

    Controls when an installation is considered exhausted and which
    response headers carry its rate limit state.
    """

    minimum_remaining: int = Field(
        default=100,
        ge=0,
        description="Installations at or below this remaining count are skipped until reset",
    )
    remaining_header: str = Field(
        default="x-ratelimit-remaining",
        description="Response header carrying the remaining request count",
    )
    reset_header: str = Field(
        default="x-ratelimit-reset",
        description="Response header carrying the reset time (Unix epoch seconds)",
    )


class InstallationConfig(BaseModel):
    """A GitHub App installation to register at startup."""

    app_id: int = Field(ge=1, description="GitHub App ID owning the installation")
    installation_id: int = Field(ge=1, description="GitHub App installation ID")
    private_key_path: Path = Field(description="Path to the App's PEM private key")

    def read_private_key(self) -> str:
        """Load the PEM private key from disk."""
        return self.private_key_path.read_text(encoding="utf-8")


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # GitHub API
    # --------------------------------------------------------------------------
    github_base_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL (override for GitHub Enterprise)",
    )

    # --------------------------------------------------------------------------
    # Installation Routing
    # --------------------------------------------------------------------------
    routing: RoutingConfig = Field(
        default_factory=RoutingConfig,
        description="Installation selection configuration",
    )
    installations: list[InstallationConfig] = Field(
        default_factory=list,
        description="Installations registered by InstallationClient.register_configured()",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Console log level used by setup_logging()",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="File logging used by setup_logging()",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
