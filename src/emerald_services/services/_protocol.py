"""Protocol definitions for the service orchestrator.

This module defines the interfaces that decouple the orchestrator from
its collaborators:
- StatusNotifier: Receives status updates for display
- SettingsSource: Read/write access to user settings
- Downloader: Makes sure the geth binary is present
- ServiceHandle: A running (or degenerate) backend instance
- Launcher / LauncherFactory: Spawn service processes
"""

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from anyio.streams.memory import MemoryObjectSendStream

    from ._models import ServiceEvent


@runtime_checkable
class StatusNotifier(Protocol):
    """Protocol for receiving service status updates.

    Calls are fire-and-forget: return values are ignored and
    implementations must not block.
    """

    def status(self, service_name: str, status: Literal["ready", "not ready"]) -> None:
        """Report the coarse status of a service."""
        ...

    def info(self, message: str) -> None:
        """Report an informational message."""
        ...

    def error(self, message: str) -> None:
        """Report an error message."""
        ...

    def chain(self, rpc_type: str, chain: str, chain_id: int) -> None:
        """Report the configured chain.

        Args:
            rpc_type: RPC type label ("none", "local" or "remote").
            chain: Human-readable chain name.
            chain_id: Numeric chain id.
        """
        ...

    def rpc_url(self, url: str) -> None:
        """Report the RPC endpoint clients should use."""
        ...


@runtime_checkable
class SettingsSource(Protocol):
    """Protocol for the user settings store."""

    def get(self, key: str) -> object | None:
        """Return the value stored under key, or None."""
        ...

    def set(self, key: str, value: object) -> None:
        """Store value under key."""
        ...


@runtime_checkable
class Downloader(Protocol):
    """Protocol for making a service binary available."""

    async def download_if_not_exists(self) -> None:
        """Download the binary unless it is already installed.

        Raises:
            DownloadError: If the binary cannot be obtained.
        """
        ...


@runtime_checkable
class ServiceHandle(Protocol):
    """Protocol for a backend instance owned by the orchestrator."""

    @property
    def name(self) -> str:
        """Return the name of the service."""
        ...

    @property
    def pid(self) -> int | None:
        """Return the process ID, or None if no process is managed."""
        ...

    async def shutdown(self) -> None:
        """Stop the backend.

        Raises:
            ShutdownFailureError: If the backend fails to stop cleanly.
        """
        ...


@runtime_checkable
class ProcessServiceHandle(ServiceHandle, Protocol):
    """Protocol for a handle backed by a local process."""

    async def pump(
        self,
        send_stream: "MemoryObjectSendStream[ServiceEvent]",  # noqa: UP037
    ) -> None:
        """Push output, fault and exit events until the process exits.

        The send stream is closed when the process has exited.
        """
        ...


class Launcher(Protocol):
    """Protocol for spawning a service process."""

    async def launch(self) -> ProcessServiceHandle:
        """Spawn the process.

        Raises:
            LaunchFailureError: If the process cannot be spawned.
        """
        ...


class LauncherFactory(Protocol):
    """Protocol for creating launchers for the managed services."""

    def geth(self, chain: str) -> Launcher:
        """Return a launcher for geth on the given chain."""
        ...

    def connector(self, chain_id: int) -> Launcher:
        """Return a launcher for the connector on the given chain id."""
        ...
