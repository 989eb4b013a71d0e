"""Service orchestration for the geth backend and the emerald connector.

This package brings the two backend services a wallet needs from cold
start to a ready state, tracks their health from the events their
processes push, and shuts them down again.

Key Components:
    - ServiceSetup: Resolved launch configuration
    - LaunchMode: How the RPC backend is obtained
    - ServiceStatus / ServiceState: Lifecycle tracking
    - ServiceEvent: Events pushed by launched processes
    - StatusNotifier: Protocol for status display
    - ConsoleNotifier: Console notifier implementation
    - ProcessLauncher / ProcessHandle: Process spawning and control
    - GethDownloader: Fetches geth when it is missing
    - ServiceOrchestrator: The orchestration state machine
    - create_control_router: FastAPI endpoint factory

Example:
    >>> from emerald_services.services import (
    ...     ConsoleNotifier,
    ...     ServiceOrchestrator,
    ...     TomlSettings,
    ... )
    >>> async with ServiceOrchestrator(ConsoleNotifier()) as services:
    ...     services.apply_configuration(TomlSettings(path))
    ...     await services.start()
"""

from ._api import create_control_router
from ._download import GethDownloader
from ._launcher import (
    EndpointHandle,
    NullHandle,
    ProcessHandle,
    ProcessLauncher,
    ProcessLauncherFactory,
    create_connector_launcher,
    create_geth_launcher,
)
from ._models import (
    REMOTE_CHAIN,
    REMOTE_CHAIN_ID,
    LaunchMode,
    ServiceEvent,
    ServiceEventType,
    ServiceName,
    ServiceSetup,
    ServiceState,
    ServiceStatus,
)
from ._notify import ConsoleNotifier
from ._orchestrator import RPC_TYPES, ServiceOrchestrator
from ._protocol import (
    Downloader,
    Launcher,
    LauncherFactory,
    ProcessServiceHandle,
    ServiceHandle,
    SettingsSource,
    StatusNotifier,
)
from ._readiness import CONNECTOR_READY_PATTERN, matches
from ._settings import InMemorySettings, TomlSettings

__all__ = [
    "CONNECTOR_READY_PATTERN",
    "REMOTE_CHAIN",
    "REMOTE_CHAIN_ID",
    "RPC_TYPES",
    "ConsoleNotifier",
    "Downloader",
    "EndpointHandle",
    "GethDownloader",
    "InMemorySettings",
    "LaunchMode",
    "Launcher",
    "LauncherFactory",
    "NullHandle",
    "ProcessHandle",
    "ProcessLauncher",
    "ProcessLauncherFactory",
    "ProcessServiceHandle",
    "ServiceEvent",
    "ServiceEventType",
    "ServiceHandle",
    "ServiceName",
    "ServiceOrchestrator",
    "ServiceSetup",
    "ServiceState",
    "ServiceStatus",
    "SettingsSource",
    "StatusNotifier",
    "TomlSettings",
    "create_connector_launcher",
    "create_control_router",
    "create_geth_launcher",
    "matches",
]
