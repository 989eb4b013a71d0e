"""Service orchestrator for the geth backend and the emerald connector.

This module provides the ServiceOrchestrator class that resolves the
launch setup from user settings, starts both services concurrently,
tracks their lifecycle state from the events their processes push, and
shuts them down again.
"""

import re
from contextlib import AsyncExitStack
from dataclasses import replace
from types import TracebackType
from typing import Final, Self, final

import anyio
import anyio.abc
import structlog
from anyio.streams.memory import MemoryObjectReceiveStream
from structlog.typing import FilteringBoundLogger

from emerald_services.config import LauncherConfig
from emerald_services.exceptions import (
    DependencyUnavailableError,
    DownloadError,
    InvalidConfigError,
    LaunchFailureError,
    LaunchTimeoutError,
    ShutdownFailureError,
)

from ._download import GethDownloader
from ._launcher import EndpointHandle, NullHandle, ProcessLauncherFactory
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
    get_timestamp,
)
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
from ._settings import CHAIN_ID_KEY, CHAIN_KEY, RPC_TYPE_KEY

RPC_TYPES: Final[dict[str, LaunchMode]] = {
    "none": LaunchMode.DISABLED,
    "remote": LaunchMode.REMOTE_URL,
    "remote-auto": LaunchMode.REMOTE_URL,
    "local": LaunchMode.LOCAL_RUN,
}

EVENT_BUFFER_SIZE: Final = 100


@final
class ServiceOrchestrator:
    """Brings the geth backend and the emerald connector up and down.

    Owns the launch setup, one ServiceState and at most one handle per
    service. Every start or stop of a service runs under that service's
    lock, so a shutdown requested during a pending start waits for the
    start to settle.

    Must be used as an async context manager: the context owns the task
    group that pumps process events. Leaving the context shuts down any
    running service.

    Example:
        >>> async with ServiceOrchestrator(ConsoleNotifier()) as services:
        ...     services.apply_configuration(settings)
        ...     await services.start()
        ...     services.report_status()
    """

    __slots__ = (
        "_downloader",
        "_exit_stack",
        "_handles",
        "_launchers",
        "_locks",
        "_logger",
        "_notifier",
        "_setup",
        "_states",
        "_task_group",
        "config",
    )

    def __init__(  # noqa: PLR0913
        self,
        notifier: StatusNotifier,
        *,
        config: LauncherConfig | None = None,
        launchers: LauncherFactory | None = None,
        downloader: Downloader | None = None,
        logger: FilteringBoundLogger | None = None,
        setup: ServiceSetup | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            notifier: Receives status updates for display.
            config: Launcher configuration. Uses defaults if None.
            launchers: Creates service launchers. Spawns real processes if None.
            downloader: Provides the geth binary. Uses GethDownloader if None.
            logger: Structured logger. Uses structlog.get_logger() if None.
            setup: Initial launch setup. Uses ServiceSetup defaults if None.
        """
        self.config = config or LauncherConfig()
        self._notifier = notifier
        self._launchers: LauncherFactory = launchers or ProcessLauncherFactory(
            self.config
        )
        self._downloader: Downloader = downloader or GethDownloader.from_config(
            self.config, notifier
        )
        self._logger: FilteringBoundLogger = logger or structlog.get_logger(
            "emerald_services"
        )
        self._setup = setup or ServiceSetup()
        self._states: dict[ServiceName, ServiceState] = {
            name: ServiceState() for name in ServiceName
        }
        self._handles: dict[ServiceName, ServiceHandle | None] = dict.fromkeys(
            ServiceName
        )
        self._locks: dict[ServiceName, anyio.Lock] = {
            name: anyio.Lock() for name in ServiceName
        }
        self._exit_stack: AsyncExitStack | None = None
        self._task_group: anyio.abc.TaskGroup | None = None

    async def __aenter__(self) -> Self:
        stack = AsyncExitStack()
        self._task_group = await stack.enter_async_context(
            anyio.create_task_group()
        )
        self._exit_stack = stack
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        stack, self._exit_stack = self._exit_stack, None
        task_group, self._task_group = self._task_group, None
        try:
            with anyio.CancelScope(shield=True):
                await self.shutdown()
        finally:
            if task_group is not None:
                task_group.cancel_scope.cancel()
            if stack is not None:
                _ = await stack.__aexit__(exc_type, exc_val, exc_tb)
        return None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def setup(self) -> ServiceSetup:
        """Return the current launch setup."""
        return self._setup

    @property
    def rpc_url(self) -> str | None:
        """Return the RPC endpoint for the current setup, None if disabled."""
        mode = self._setup.rpc_mode
        if mode is LaunchMode.REMOTE_URL:
            return self.config.remote_rpc_url
        if mode in (LaunchMode.LOCAL_RUN, LaunchMode.LOCAL_EXISTING):
            return self.config.local_rpc_url
        return None

    def state(self, name: ServiceName) -> ServiceState:
        """Return the runtime state of a service."""
        return self._states[name]

    def status(self, name: ServiceName) -> ServiceStatus:
        """Return the lifecycle status of a service."""
        return self._states[name].status

    def handle(self, name: ServiceName) -> ServiceHandle | None:
        """Return the active handle of a service, if any."""
        return self._handles[name]

    def _set_status(self, name: ServiceName, status: ServiceStatus) -> None:
        state = self._states[name]
        previous = state.status
        state.status = status
        self._logger.info(
            "service_status",
            service=name.value,
            previous=previous.value,
            status=status.value,
        )

    def _notify_status(self, name: ServiceName) -> None:
        self._notifier.status(name.value, self._states[name].status.display)

    def _require_task_group(self) -> anyio.abc.TaskGroup:
        if self._task_group is None:
            msg = (
                "ServiceOrchestrator must be entered with 'async with' "
                "before starting services"
            )
            raise RuntimeError(msg)
        return self._task_group

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def apply_configuration(self, settings: SettingsSource) -> ServiceSetup:
        """Resolve the launch setup from user settings.

        Maps the ``rpc_type`` setting to a launch mode. Selecting a remote
        backend writes the public chain back to the settings. The chain
        name and id are read after the mode is resolved.

        Args:
            settings: The user settings store.

        Returns:
            The resolved setup, also stored on the orchestrator.

        Raises:
            InvalidConfigError: If rpc_type is unknown (the RPC backend is
                then disabled) or chain_id is not an integer.
        """
        rpc_type = settings.get(RPC_TYPE_KEY)
        mode = RPC_TYPES.get(rpc_type) if isinstance(rpc_type, str) else None
        if mode is None:
            self._setup = replace(self._setup, rpc_mode=LaunchMode.DISABLED)
            self._logger.error("invalid_rpc_type", rpc_type=rpc_type)
            self._notifier.error(f"Invalid chain type: {rpc_type}")
            msg = f"Invalid chain type: {rpc_type}"
            raise InvalidConfigError(
                msg,
                key=RPC_TYPE_KEY,
                value=rpc_type,
                expected=" | ".join(RPC_TYPES),
            )

        if mode is LaunchMode.REMOTE_URL:
            settings.set(CHAIN_KEY, REMOTE_CHAIN)
            settings.set(CHAIN_ID_KEY, REMOTE_CHAIN_ID)

        chain = settings.get(CHAIN_KEY)
        raw_chain_id = settings.get(CHAIN_ID_KEY)
        try:
            chain_id = (
                int(raw_chain_id)  # pyright: ignore[reportArgumentType]
                if raw_chain_id is not None
                else self._setup.chain_id
            )
        except (TypeError, ValueError) as e:
            self._notifier.error(f"Invalid chain id: {raw_chain_id}")
            msg = f"Invalid chain id: {raw_chain_id}"
            raise InvalidConfigError(
                msg, key=CHAIN_ID_KEY, value=raw_chain_id, expected="integer"
            ) from e

        self._setup = ServiceSetup(
            connector_mode=self._setup.connector_mode,
            rpc_mode=mode,
            chain=str(chain) if chain is not None else self._setup.chain,
            chain_id=chain_id,
        )
        self._logger.debug(
            "setup_applied",
            rpc_mode=mode.value,
            chain=self._setup.chain,
            chain_id=self._setup.chain_id,
        )
        return self._setup

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def start(self) -> tuple[ServiceHandle, ServiceHandle]:
        """Start geth and the connector concurrently.

        A failure of one service does not cancel the start of the other.

        Returns:
            The (geth, connector) handles.

        Raises:
            ServiceError: The failure of the one service that failed.
            ExceptionGroup: If both services failed.
        """
        handles: dict[ServiceName, ServiceHandle] = {}
        errors: list[Exception] = []

        async def run(name: ServiceName) -> None:
            starter = (
                self.start_rpc if name is ServiceName.GETH else self.start_connector
            )
            try:
                handles[name] = await starter()
            except Exception as e:  # noqa: BLE001
                # Already logged and notified by the starter
                errors.append(e)

        async with anyio.create_task_group() as tg:
            tg.start_soon(run, ServiceName.GETH)
            tg.start_soon(run, ServiceName.CONNECTOR)

        if len(errors) == 1:
            raise errors[0]
        if errors:
            msg = "Failed to start services"
            raise ExceptionGroup(msg, errors)
        return handles[ServiceName.GETH], handles[ServiceName.CONNECTOR]

    async def start_rpc(self) -> ServiceHandle:
        """Start the geth RPC backend according to the setup.

        A disabled backend is not an error: a NullHandle is returned and
        the status stays not started. Remote and existing local backends
        are ready immediately. A local backend is downloaded if missing,
        then spawned; it is ready once it has a process id.

        Returns:
            The geth handle.

        Raises:
            DependencyUnavailableError: If geth cannot be downloaded.
            LaunchFailureError: If geth cannot be spawned.
        """
        name = ServiceName.GETH
        async with self._locks[name]:
            active = self._handles[name]
            if active is not None:
                return active

            self._set_status(name, ServiceStatus.NOT_STARTED)
            self._notify_status(name)

            mode = self._setup.rpc_mode
            if mode is LaunchMode.DISABLED:
                self._logger.info("rpc_disabled")
                self._notifier.error("Ethereum connection type is not configured")
                return NullHandle(name)

            if mode is LaunchMode.LOCAL_RUN:
                return await self._launch_geth()

            url = (
                self.config.remote_rpc_url
                if mode is LaunchMode.REMOTE_URL
                else self.config.local_rpc_url
            )
            self._logger.info("rpc_endpoint", mode=mode.value, url=url)
            self._set_status(name, ServiceStatus.READY)
            self._states[name].started_at = get_timestamp()
            if mode is LaunchMode.REMOTE_URL:
                self._notifier.info("Use Remote RPC API")
            else:
                self._notifier.info("Use existing local RPC API")
            self._notifier.rpc_url(url)
            self._notify_status(name)
            return EndpointHandle(name, url)

    async def _launch_geth(self) -> ServiceHandle:
        name = ServiceName.GETH
        try:
            await self._downloader.download_if_not_exists()
        except DownloadError as e:
            self._logger.error("geth_download_failed", error=str(e), url=e.url)
            self._notifier.error(f"Unable to download Geth: {e}")
            msg = f"Geth is unavailable: {e}"
            raise DependencyUnavailableError(msg, service_name=name, cause=e) from e

        self._notifier.info("Launching Geth backend")
        self._set_status(name, ServiceStatus.STARTING)
        handle = await self._spawn(name, self._launchers.geth(self._setup.chain))

        if handle.pid is None or handle.pid <= 0:
            await self._abandon(name, handle)
            self._notifier.error("Geth did not report a process id")
            msg = f"Service '{name}' did not report a process id"
            raise LaunchFailureError(msg, service_name=name)

        self._set_status(name, ServiceStatus.READY)
        self._states[name].started_at = get_timestamp()
        self._logger.info("service_ready", service=name.value, pid=handle.pid)
        self._notifier.info("Geth RPC API is ready")
        self._notify_status(name)
        return handle

    async def start_connector(self) -> ServiceHandle:
        """Start the emerald connector and wait for its startup banner.

        The connector is always spawned locally. It is ready when its
        stderr output contains the startup banner. The wait is bounded by
        ``connector_ready_timeout``.

        Returns:
            The connector handle.

        Raises:
            LaunchFailureError: If the connector cannot be spawned or exits
                before it is ready.
            LaunchTimeoutError: If the banner does not appear in time.
        """
        name = ServiceName.CONNECTOR
        async with self._locks[name]:
            active = self._handles[name]
            if active is not None:
                return active

            self._set_status(name, ServiceStatus.NOT_STARTED)
            self._notify_status(name)

            self._set_status(name, ServiceStatus.STARTING)
            settled = anyio.Event()
            handle = await self._spawn(
                name,
                self._launchers.connector(self._setup.chain_id),
                ready_pattern=CONNECTOR_READY_PATTERN,
                settled=settled,
            )

            timeout = self.config.connector_ready_timeout
            with anyio.move_on_after(timeout) as scope:
                await settled.wait()

            state = self._states[name]
            if state.status is ServiceStatus.READY and self._handles[name] is handle:
                return handle

            if scope.cancelled_caught and timeout is not None:
                self._logger.error("service_ready_timeout", service=name.value)
                await self._abandon(name, handle)
                self._notifier.error(
                    f"Emerald Connector did not start within {timeout:g} seconds"
                )
                msg = f"Service '{name}' was not ready after {timeout:g} seconds"
                raise LaunchTimeoutError(msg, service_name=name, timeout=timeout)

            # The exit has already been logged and notified by the monitor
            exit_code = state.last_exit_code
            self._set_status(name, ServiceStatus.ERROR)
            msg = f"Service '{name}' exited with code {exit_code} before becoming ready"
            raise LaunchFailureError(msg, service_name=name)

    async def _abandon(self, name: ServiceName, handle: ServiceHandle) -> None:
        """Release a handle that never became ready and stop its process.

        The handle is released first so the exit is not reported as
        unexpected.
        """
        self._handles[name] = None
        self._set_status(name, ServiceStatus.ERROR)
        try:
            await handle.shutdown()
        except ShutdownFailureError as e:
            self._logger.error("service_stop_failed", service=name.value, error=str(e))
            self._notifier.error(f"Failed to stop {name}: {e}")

    async def _spawn(
        self,
        name: ServiceName,
        launcher: Launcher,
        *,
        ready_pattern: re.Pattern[str] | None = None,
        settled: anyio.Event | None = None,
    ) -> ProcessServiceHandle:
        """Launch a process and start pumping and monitoring its events.

        Args:
            name: The service being launched.
            launcher: Spawns the process.
            ready_pattern: Readiness banner to look for on stderr.
            settled: Set when the service becomes ready or exits.

        Returns:
            The process handle, registered as the active handle.

        Raises:
            LaunchFailureError: If the process cannot be spawned.
        """
        task_group = self._require_task_group()
        try:
            handle = await launcher.launch()
        except LaunchFailureError as e:
            self._set_status(name, ServiceStatus.ERROR)
            self._logger.error(
                "service_launch_failed", service=name.value, error=str(e)
            )
            self._notifier.error(f"Failed to launch {name}: {e}")
            raise

        self._handles[name] = handle
        state = self._states[name]
        state.pid = handle.pid
        state.last_exit_code = None
        self._logger.info("service_spawned", service=name.value, pid=handle.pid)

        send_stream, receive_stream = anyio.create_memory_object_stream[ServiceEvent](
            EVENT_BUFFER_SIZE
        )
        task_group.start_soon(handle.pump, send_stream)
        task_group.start_soon(
            self._monitor, name, handle, receive_stream, ready_pattern, settled
        )
        return handle

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    async def _monitor(  # noqa: PLR0913
        self,
        name: ServiceName,
        handle: ServiceHandle,
        receive_stream: MemoryObjectReceiveStream[ServiceEvent],
        ready_pattern: re.Pattern[str] | None,
        settled: anyio.Event | None,
    ) -> None:
        """Consume the events of one process until it exits."""
        async with receive_stream:
            async for event in receive_stream:
                if event.event_type is ServiceEventType.OUTPUT:
                    # All output is logged, matching or not
                    self._logger.debug(
                        "service_output",
                        service=name.value,
                        stream=event.stream,
                        data=event.data,
                    )
                    if (
                        ready_pattern is not None
                        and event.stream == "stderr"
                        and event.data is not None
                        and matches(event.data, ready_pattern)
                    ):
                        self._mark_ready(name, handle)
                        if settled is not None:
                            settled.set()

                elif event.event_type is ServiceEventType.FAULT:
                    self._logger.error(
                        "service_fault", service=name.value, message=event.message
                    )

                elif event.event_type is ServiceEventType.EXITED:
                    self._handle_exit(name, handle, event.exit_code)
                    if settled is not None:
                        settled.set()

    def _mark_ready(self, name: ServiceName, handle: ServiceHandle) -> None:
        state = self._states[name]
        if self._handles[name] is not handle:
            return
        if state.status is not ServiceStatus.STARTING:
            return
        self._set_status(name, ServiceStatus.READY)
        state.started_at = get_timestamp()
        self._logger.info("service_ready", service=name.value, pid=handle.pid)
        self._notify_status(name)

    def _handle_exit(
        self, name: ServiceName, handle: ServiceHandle, exit_code: int | None
    ) -> None:
        state = self._states[name]
        if self._handles[name] is not handle or state.status is ServiceStatus.STOPPING:
            self._logger.info(
                "service_exited", service=name.value, exit_code=exit_code, expected=True
            )
            return

        self._handles[name] = None
        state.pid = None
        state.last_exit_code = exit_code
        state.stopped_at = get_timestamp()
        self._set_status(name, ServiceStatus.NOT_STARTED)
        self._logger.error(
            "service_exited", service=name.value, exit_code=exit_code, expected=False
        )
        self._notify_status(name)
        self._notifier.error(f"{name} process exited with code: {exit_code}")

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Stop all services with an active handle, concurrently.

        Services without an active handle are skipped.

        Raises:
            ShutdownFailureError: If the one failing service could not stop.
            ExceptionGroup: If both services failed to stop.
        """
        errors: list[Exception] = []

        async def stop(name: ServiceName) -> None:
            try:
                await self._stop_service(name)
            except ShutdownFailureError as e:
                errors.append(e)

        async with anyio.create_task_group() as tg:
            for name in ServiceName:
                tg.start_soon(stop, name)

        if len(errors) == 1:
            raise errors[0]
        if errors:
            msg = "Failed to stop services"
            raise ExceptionGroup(msg, errors)

    async def _stop_service(self, name: ServiceName) -> None:
        async with self._locks[name]:
            handle = self._handles[name]
            if handle is None:
                return

            self._set_status(name, ServiceStatus.STOPPING)
            try:
                await handle.shutdown()
            except ShutdownFailureError as e:
                self._set_status(name, ServiceStatus.ERROR)
                self._logger.error(
                    "service_stop_failed", service=name.value, error=str(e)
                )
                self._notifier.error(f"Failed to stop {name}: {e}")
                raise

            self._handles[name] = None
            state = self._states[name]
            state.pid = None
            state.stopped_at = get_timestamp()
            self._set_status(name, ServiceStatus.NOT_STARTED)
            self._notify_status(name)

    async def reconfigure(
        self, settings: SettingsSource
    ) -> tuple[ServiceHandle, ServiceHandle]:
        """Stop all services, apply new settings and start again.

        Raises:
            InvalidConfigError: If the new settings are invalid. Services
                stay stopped.
        """
        await self.shutdown()
        _ = self.apply_configuration(settings)
        return await self.start()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def report_status(self) -> None:
        """Send the current status of both services and the chain to the notifier."""
        self._notify_status(ServiceName.CONNECTOR)
        self._notify_status(ServiceName.GETH)
        self._notifier.chain(
            self._setup.rpc_mode.rpc_type_label,
            self._setup.chain,
            self._setup.chain_id,
        )
        url = self.rpc_url
        # An existing local backend announces its URL only when it is started
        if url is not None and self._setup.rpc_mode is not LaunchMode.LOCAL_EXISTING:
            self._notifier.rpc_url(url)

    def get_status(self) -> dict[str, object]:
        """Return a snapshot of the setup and every service's state."""
        return {
            "setup": {
                "connector_mode": self._setup.connector_mode.value,
                "rpc_mode": self._setup.rpc_mode.value,
                "chain": self._setup.chain,
                "chain_id": self._setup.chain_id,
            },
            "rpc_url": self.rpc_url,
            "services": {
                name.value: {
                    "status": state.status.value,
                    "pid": state.pid,
                    "last_exit_code": state.last_exit_code,
                    "started_at": state.started_at,
                    "stopped_at": state.stopped_at,
                }
                for name, state in self._states.items()
            },
        }
