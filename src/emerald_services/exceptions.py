"""Emerald services exceptions."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class EmeraldServicesError(Exception):
    """Base exception for emerald services errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(EmeraldServicesError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: "Path | None" = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class InvalidConfigError(ConfigError):
    """Raised when a settings value cannot be mapped to a launch setup."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected


# =============================================================================
# Download Exceptions
# =============================================================================


class DownloadError(EmeraldServicesError):
    """Raised when a service binary cannot be found or downloaded.

    Attributes:
        url: The download URL, if one was configured.
    """

    def __init__(self, message: str, *, url: str | None = None) -> None:
        """Initialize with error message and download context.

        Args:
            message: Human-readable error message.
            url: The download URL, if one was configured.
        """
        super().__init__(message)
        self.url: str | None = url


# =============================================================================
# Service Exceptions
# =============================================================================


class ServiceError(EmeraldServicesError):
    """Base exception for service lifecycle errors.

    Attributes:
        service_name: Name of the service that caused the error.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_name: Name of the service that caused the error.
            cause: The underlying exception, if any.
        """
        super().__init__(message)
        self.service_name: str = service_name
        self.cause: Exception | None = cause


class ServiceNotFoundError(ServiceError, KeyError):
    """Raised when a service name is not managed by the orchestrator."""


class DependencyUnavailableError(ServiceError):
    """Raised when a service binary required for launch is unavailable."""


class LaunchFailureError(ServiceError):
    """Raised when a service process fails to spawn or start."""


class LaunchTimeoutError(LaunchFailureError):
    """Raised when a service does not become ready in time.

    Attributes:
        timeout: Seconds waited for the readiness signal.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str,
        timeout: float,
    ) -> None:
        """Initialize with error message and timeout context.

        Args:
            message: Human-readable error message.
            service_name: Name of the service that timed out.
            timeout: Seconds waited for the readiness signal.
        """
        super().__init__(message, service_name=service_name)
        self.timeout: float = timeout


class ShutdownFailureError(ServiceError):
    """Raised when a service fails to stop cleanly."""
