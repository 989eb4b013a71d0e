"""Data models for the service orchestrator.

This module defines the core data types for service management:
- LaunchMode: How a backend is obtained (spawned, reused, remote, none)
- ServiceName: The two managed services
- ServiceStatus: Lifecycle states for managed services
- ServiceEventType / ServiceEvent: Messages pushed by launched processes
- ServiceSetup: The resolved launch configuration
- ServiceState: Mutable runtime state of one service
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

import pendulum

DEFAULT_CHAIN = "morden"
DEFAULT_CHAIN_ID = 62

REMOTE_CHAIN = "mainnet"
REMOTE_CHAIN_ID = 61


def get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    return pendulum.now("UTC").to_iso8601_string()


class LaunchMode(StrEnum):
    """Strategies for obtaining a backend service.

    - DISABLED: No backend is used
    - LOCAL_RUN: Spawn and manage a local process
    - LOCAL_EXISTING: Use a process already running on this machine
    - REMOTE_URL: Use a remote endpoint, no process
    """

    DISABLED = "disabled"
    LOCAL_RUN = "local-run"
    LOCAL_EXISTING = "local-existing"
    REMOTE_URL = "remote-url"

    @property
    def rpc_type_label(self) -> str:
        """Return the short label shown to users for this mode."""
        if self is LaunchMode.DISABLED:
            return "none"
        if self is LaunchMode.REMOTE_URL:
            return "remote"
        return "local"


class ServiceName(StrEnum):
    """Names of the managed services."""

    GETH = "geth"
    CONNECTOR = "connector"


class ServiceStatus(StrEnum):
    """Service lifecycle states.

    Transitions: NOT_STARTED -> STARTING -> READY or ERROR, and
    READY -> STOPPING -> NOT_STARTED. An unexpected process exit resets
    STARTING or READY to NOT_STARTED. No state is terminal.
    """

    NOT_STARTED = "not-started"
    STARTING = "starting"
    STOPPING = "stopping"
    READY = "ready"
    ERROR = "error"

    @property
    def display(self) -> Literal["ready", "not ready"]:
        """Collapse the lifecycle state to the ready/not ready display form."""
        return "ready" if self is ServiceStatus.READY else "not ready"


class ServiceEventType(StrEnum):
    """Types of events pushed by a launched process.

    - OUTPUT: A chunk was read from stdout or stderr
    - EXITED: The process terminated
    - FAULT: Reading the process failed; the process may still be alive
    """

    OUTPUT = "output"
    EXITED = "exited"
    FAULT = "fault"


@dataclass(frozen=True, slots=True)
class ServiceEvent:
    """Immutable event emitted by a launched process.

    Attributes:
        service_name: Name of the service that generated the event.
        event_type: Type of event.
        pid: Process ID if applicable.
        exit_code: Exit code if the process terminated.
        stream: Which output stream a chunk came from.
        data: The output chunk, as delivered by the stream.
        message: Optional human-readable message.
        timestamp: ISO 8601 formatted timestamp.
    """

    service_name: str
    event_type: ServiceEventType
    pid: int | None = None
    exit_code: int | None = None
    stream: Literal["stdout", "stderr"] | None = None
    data: str | None = None
    message: str | None = None
    timestamp: str = field(default_factory=get_timestamp)


@dataclass(frozen=True, slots=True)
class ServiceSetup:
    """Resolved launch configuration for both services.

    Attributes:
        connector_mode: Launch mode of the connector (always spawned locally).
        rpc_mode: Launch mode of the geth RPC backend.
        chain: Chain name passed to geth.
        chain_id: Chain id passed to the connector.
    """

    connector_mode: LaunchMode = LaunchMode.LOCAL_RUN
    rpc_mode: LaunchMode = LaunchMode.LOCAL_RUN
    chain: str = DEFAULT_CHAIN
    chain_id: int = DEFAULT_CHAIN_ID


@dataclass(slots=True)
class ServiceState:
    """Mutable runtime state of a service.

    Attributes:
        status: Current lifecycle state.
        pid: Process ID of the running service, if any.
        last_exit_code: Exit code from the last process termination.
        started_at: ISO 8601 timestamp of the last readiness.
        stopped_at: ISO 8601 timestamp of the last stop or exit.
    """

    status: ServiceStatus = ServiceStatus.NOT_STARTED
    pid: int | None = None
    last_exit_code: int | None = None
    started_at: str | None = None
    stopped_at: str | None = None
