"""Installation pool exceptions."""

from datetime import datetime


class InstallationPoolError(Exception):
    """Base exception for installation pool errors."""

    pass


class InstallationRegistrationError(InstallationPoolError):
    """Raised when an installation cannot be registered."""

    def __init__(self, message: str, installation_id: int) -> None:
        super().__init__(message)
        self.installation_id = installation_id


class DuplicateInstallationError(InstallationRegistrationError):
    """Raised when an installation ID is already registered."""

    pass


class RateLimitProbeError(InstallationRegistrationError):
    """Raised when the registration-time rate limit probe fails.

    The installation is not added to the registry.
    """

    def __init__(self, message: str, installation_id: int, cause: BaseException) -> None:
        super().__init__(message, installation_id)
        self.cause = cause


class InstallationNotFoundError(InstallationPoolError):
    """Raised when an installation ID is not registered."""

    def __init__(self, installation_id: int) -> None:
        super().__init__(f"Installation {installation_id} is not registered")
        self.installation_id = installation_id


class InstallationPoolRetryableError(InstallationPoolError):
    """Base class for transient errors the caller may retry.

    The pool never waits or retries on its own; backoff policy is left
    to the caller.
    """

    pass


class NoCapacityAvailableError(InstallationPoolRetryableError):
    """Raised when every registered installation is below its rate limit threshold."""

    def __init__(self, message: str, reset_at: datetime | None = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class MalformedRateLimitHeaderError(InstallationPoolError):
    """Raised when a rate limit response header is missing or unparsable."""

    def __init__(self, header: str, value: str | None) -> None:
        super().__init__(f"Malformed rate limit header {header}: {value!r}")
        self.header = header
        self.value = value
