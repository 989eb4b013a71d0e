"""Launcher adapters for the managed services.

This module provides the handles the orchestrator owns:
- ProcessHandle: A spawned local process that pushes ServiceEvents
- NullHandle: Stands in for a disabled backend
- EndpointHandle: Stands in for a backend reached by URL only

and the launchers that create process handles.
"""

import os
import signal
import subprocess
from collections.abc import Mapping, Sequence  # noqa: TC003 - Used in runtime type annotations
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from typing import Literal, final

import anyio
import anyio.abc
from anyio.streams.memory import MemoryObjectSendStream
from anyio.streams.text import TextReceiveStream

from emerald_services.config import LauncherConfig
from emerald_services.exceptions import LaunchFailureError, ShutdownFailureError

from ._models import ServiceEvent, ServiceEventType, ServiceName


@final
class NullHandle:
    """Handle for a backend that is not configured. Manages nothing."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    @property
    def pid(self) -> int | None:
        return None

    async def shutdown(self) -> None:
        return None


@final
class EndpointHandle:
    """Handle for a backend reached by URL, without a managed process.

    Attributes:
        name: Service name.
        url: The endpoint of the backend.
    """

    __slots__ = ("name", "url")

    def __init__(self, name: str, url: str) -> None:
        self.name = name
        self.url = url

    @property
    def pid(self) -> int | None:
        return None

    async def shutdown(self) -> None:
        return None


@final
class ProcessHandle:
    """Handle for a spawned service process.

    Output and lifecycle changes are delivered as ServiceEvents through
    pump(). Output is forwarded chunk by chunk, as the stream delivers it.
    """

    __slots__ = ("_process", "_shutdown_timeout", "name")

    def __init__(
        self,
        name: str,
        process: anyio.abc.Process,
        *,
        shutdown_timeout: float = 5.0,
    ) -> None:
        """Initialize the handle.

        Args:
            name: Service name.
            process: The spawned process.
            shutdown_timeout: Seconds to wait after SIGTERM before killing.
        """
        self.name = name
        self._process = process
        self._shutdown_timeout = shutdown_timeout

    @property
    def pid(self) -> int | None:
        """Return the process ID."""
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        """Return the exit code, or None while the process is running."""
        return self._process.returncode

    async def _stream_output(
        self,
        stream: TextReceiveStream,
        stream_name: Literal["stdout", "stderr"],
        send_stream: MemoryObjectSendStream[ServiceEvent],
    ) -> None:
        """Forward chunks from a text stream as OUTPUT events.

        Args:
            stream: The text stream to read from.
            stream_name: Name of the stream ("stdout" or "stderr").
            send_stream: Channel the events are pushed onto.
        """
        try:
            async for chunk in stream:
                await send_stream.send(
                    ServiceEvent(
                        service_name=self.name,
                        event_type=ServiceEventType.OUTPUT,
                        pid=self.pid,
                        stream=stream_name,
                        data=chunk,
                    )
                )
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream or channel closed, which is expected on process exit
            pass
        except OSError as e:
            await send_stream.send(
                ServiceEvent(
                    service_name=self.name,
                    event_type=ServiceEventType.FAULT,
                    pid=self.pid,
                    stream=stream_name,
                    message=f"Failed to read {stream_name}: {e}",
                )
            )

    async def pump(self, send_stream: MemoryObjectSendStream[ServiceEvent]) -> None:
        """Push output events until the process exits, then an EXITED event.

        The send stream is closed on return.

        Args:
            send_stream: Channel the events are pushed onto.
        """
        async with send_stream:
            async with anyio.create_task_group() as tg:
                if self._process.stdout is not None:
                    stdout_stream = TextReceiveStream(
                        self._process.stdout, errors="replace"
                    )
                    tg.start_soon(
                        self._stream_output, stdout_stream, "stdout", send_stream
                    )

                if self._process.stderr is not None:
                    stderr_stream = TextReceiveStream(
                        self._process.stderr, errors="replace"
                    )
                    tg.start_soon(
                        self._stream_output, stderr_stream, "stderr", send_stream
                    )

                exit_code = await self._process.wait()

            await send_stream.send(
                ServiceEvent(
                    service_name=self.name,
                    event_type=ServiceEventType.EXITED,
                    pid=self.pid,
                    exit_code=exit_code,
                    message=f"Exited with code {exit_code}",
                )
            )

    async def shutdown(self) -> None:
        """Stop the process gracefully.

        Sends SIGTERM and waits for the process to exit. If it does not
        exit within the shutdown timeout, sends SIGKILL.

        Raises:
            ShutdownFailureError: If the process cannot be signalled.
        """
        if self._process.returncode is not None:
            return

        try:
            self._process.send_signal(signal.SIGTERM)

            with anyio.move_on_after(self._shutdown_timeout):
                _ = await self._process.wait()

            if self._process.returncode is None:
                self._process.kill()
                _ = await self._process.wait()

        except ProcessLookupError:
            # Process already exited
            pass

        except OSError as e:
            msg = f"Failed to stop service '{self.name}': {e}"
            raise ShutdownFailureError(msg, service_name=self.name, cause=e) from e


@final
class ProcessLauncher:
    """Spawns a service process and wraps it in a ProcessHandle.

    Attributes:
        name: Service name.
        command: Command and arguments to execute.
    """

    __slots__ = ("_cwd", "_env", "_shutdown_timeout", "command", "name")

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        shutdown_timeout: float = 5.0,
    ) -> None:
        self.name = name
        self.command = tuple(command)
        self._cwd = cwd
        self._env = dict(env) if env else {}
        self._shutdown_timeout = shutdown_timeout

    async def launch(self) -> ProcessHandle:
        """Spawn the process.

        Returns:
            A handle for the running process.

        Raises:
            LaunchFailureError: If the process cannot be spawned.
        """
        env: dict[str, str] | None = None
        if self._env:
            env = {**os.environ, **self._env}

        try:
            process = await anyio.open_process(
                self.command,
                cwd=self._cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            msg = f"Failed to start service '{self.name}': {e}"
            raise LaunchFailureError(msg, service_name=self.name, cause=e) from e

        return ProcessHandle(
            self.name, process, shutdown_timeout=self._shutdown_timeout
        )


def create_geth_launcher(config: LauncherConfig, chain: str) -> ProcessLauncher:
    """Create the launcher for a local geth node.

    Args:
        config: Launcher configuration.
        chain: Chain name geth should join.

    Returns:
        ProcessLauncher for the geth subprocess.
    """
    command = (
        str(config.bin_dir / config.geth_binary),
        "--chain",
        chain,
        "--rpc",
        "--rpcport",
        str(config.rpc_port),
        "--rpccorsdomain",
        "*",
    )
    return ProcessLauncher(
        ServiceName.GETH,
        command,
        cwd=config.bin_dir,
        shutdown_timeout=config.shutdown_timeout,
    )


def create_connector_launcher(config: LauncherConfig, chain_id: int) -> ProcessLauncher:
    """Create the launcher for the emerald connector.

    The connector logs to stderr; RUST_LOG makes sure the startup banner
    is written.

    Args:
        config: Launcher configuration.
        chain_id: Chain id the connector serves.

    Returns:
        ProcessLauncher for the connector subprocess.
    """
    command = (
        str(config.bin_dir / config.connector_binary),
        "--chain-id",
        str(chain_id),
        "server",
    )
    return ProcessLauncher(
        ServiceName.CONNECTOR,
        command,
        cwd=config.bin_dir,
        env={"RUST_LOG": "info"},
        shutdown_timeout=config.shutdown_timeout,
    )


@final
class ProcessLauncherFactory:
    """Creates the default process launchers from configuration."""

    __slots__ = ("_config",)

    def __init__(self, config: LauncherConfig) -> None:
        self._config = config

    def geth(self, chain: str) -> ProcessLauncher:
        return create_geth_launcher(self._config, chain)

    def connector(self, chain_id: int) -> ProcessLauncher:
        return create_connector_launcher(self._config, chain_id)
