"""Integration tests that spawn real service processes."""

import os
import signal
import subprocess
import sys
from pathlib import Path

import anyio
import pytest

from emerald_services.config import LauncherConfig
from emerald_services.exceptions import LaunchFailureError, LaunchTimeoutError
from emerald_services.services import (
    InMemorySettings,
    ProcessHandle,
    ProcessLauncher,
    ServiceEvent,
    ServiceEventType,
    ServiceName,
    ServiceOrchestrator,
    ServiceStatus,
)

pytestmark = [
    pytest.mark.anyio,
    pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals required"),
]


class _SilentNotifier:
    def status(self, service_name: str, status: str) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def chain(self, rpc_type: str, chain: str, chain_id: int) -> None:
        pass

    def rpc_url(self, url: str) -> None:
        pass


def python_launcher(script: str, **kwargs: float) -> ProcessLauncher:
    return ProcessLauncher("test", [sys.executable, "-c", script], **kwargs)


async def collect_events(handle: ProcessHandle) -> list[ServiceEvent]:
    send_stream, receive_stream = anyio.create_memory_object_stream[ServiceEvent](100)
    events: list[ServiceEvent] = []
    with anyio.fail_after(10):
        async with anyio.create_task_group() as tg:
            tg.start_soon(handle.pump, send_stream)
            async with receive_stream:
                async for event in receive_stream:
                    events.append(event)
    return events


def write_script(path: Path, body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)


class TestProcessLauncher:
    async def test_pumps_output_then_exit(self) -> None:
        launcher = python_launcher(
            "import sys\n"
            "sys.stdout.write('hello\\n')\n"
            "sys.stderr.write('Connector started on 127.0.0.1:1920\\n')\n"
            "sys.exit(3)\n"
        )

        handle = await launcher.launch()
        events = await collect_events(handle)

        outputs = {
            event.stream: event.data
            for event in events
            if event.event_type is ServiceEventType.OUTPUT
        }
        assert outputs["stdout"] == "hello\n"
        assert outputs["stderr"] == "Connector started on 127.0.0.1:1920\n"
        assert events[-1].event_type is ServiceEventType.EXITED
        assert events[-1].exit_code == 3
        assert handle.pid is not None

    async def test_invalid_utf8_is_replaced(self) -> None:
        launcher = python_launcher(
            "import sys; sys.stderr.buffer.write(b'bad \\xff\\n')"
        )

        handle = await launcher.launch()
        events = await collect_events(handle)

        data = "".join(
            event.data or ""
            for event in events
            if event.event_type is ServiceEventType.OUTPUT
        )
        assert data == "bad \ufffd\n"

    async def test_missing_binary_raises_launch_failure(self, tmp_path: Path) -> None:
        launcher = ProcessLauncher("geth", [str(tmp_path / "missing")])

        with pytest.raises(LaunchFailureError) as exc_info:
            _ = await launcher.launch()

        assert exc_info.value.service_name == "geth"
        assert isinstance(exc_info.value.cause, OSError)

    async def test_shutdown_terminates_process(self) -> None:
        launcher = python_launcher("import time; time.sleep(30)")
        handle = await launcher.launch()

        with anyio.fail_after(10):
            await handle.shutdown()

        assert handle.returncode == -signal.SIGTERM

    async def test_shutdown_kills_process_ignoring_sigterm(self) -> None:
        launcher = python_launcher(
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "sys.stdout.write('armed\\n')\n"
            "sys.stdout.flush()\n"
            "time.sleep(30)\n",
            shutdown_timeout=0.2,
        )
        handle = await launcher.launch()
        send_stream, receive_stream = anyio.create_memory_object_stream[ServiceEvent](
            100
        )

        with anyio.fail_after(10):
            async with anyio.create_task_group() as tg:
                tg.start_soon(handle.pump, send_stream)
                async with receive_stream:
                    async for event in receive_stream:
                        if event.event_type is ServiceEventType.OUTPUT:
                            await handle.shutdown()

        assert handle.returncode == -signal.SIGKILL

    async def test_shutdown_after_exit_is_noop(self) -> None:
        handle = await python_launcher("pass").launch()
        _ = await collect_events(handle)

        await handle.shutdown()

        assert handle.returncode == 0


class TestOrchestratorWithProcesses:
    @pytest.fixture
    def config(self, tmp_path: Path) -> LauncherConfig:
        return LauncherConfig(
            bin_dir=tmp_path / "bin",
            connector_ready_timeout=5.0,
            shutdown_timeout=2.0,
        )

    async def test_starts_and_stops_both_services(self, config: LauncherConfig) -> None:
        write_script(config.bin_dir / "geth", "exec sleep 30")
        write_script(
            config.bin_dir / "emerald",
            'echo "Connector started on 127.0.0.1:1920" >&2\nexec sleep 30',
        )
        settings = InMemorySettings({"rpc_type": "local", "chain": "morden"})

        async with ServiceOrchestrator(_SilentNotifier(), config=config) as services:
            _ = services.apply_configuration(settings)
            with anyio.fail_after(10):
                geth, connector = await services.start()

            assert geth.pid is not None
            assert connector.pid is not None
            assert services.status(ServiceName.GETH) is ServiceStatus.READY
            assert services.status(ServiceName.CONNECTOR) is ServiceStatus.READY

            await services.shutdown()

            assert services.status(ServiceName.GETH) is ServiceStatus.NOT_STARTED
            assert services.status(ServiceName.CONNECTOR) is ServiceStatus.NOT_STARTED

    async def test_silent_connector_times_out(self, config: LauncherConfig) -> None:
        write_script(config.bin_dir / "emerald", "exec sleep 30")
        config = config.model_copy(update={"connector_ready_timeout": 0.5})

        async with ServiceOrchestrator(_SilentNotifier(), config=config) as services:
            with pytest.raises(LaunchTimeoutError):
                _ = await services.start_connector()

            assert services.status(ServiceName.CONNECTOR) is ServiceStatus.ERROR


def is_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


def recorded_pids(pid_dir: Path) -> list[int]:
    contents = [path.read_text() for path in sorted(pid_dir.iterdir())]
    return [int(text) for text in contents if text.endswith("\n")]


class TestRunCommand:
    async def test_sigterm_during_startup_stops_spawned_services(
        self, tmp_path: Path
    ) -> None:
        bin_dir = tmp_path / "bin"
        pid_dir = tmp_path / "pids"
        pid_dir.mkdir()
        for binary in ("geth", "emerald"):
            # Neither ever prints the connector banner
            write_script(
                bin_dir / binary,
                f'echo $$ > "{(pid_dir / binary).as_posix()}"\nexec sleep 300',
            )
        settings_file = tmp_path / "settings.toml"
        _ = settings_file.write_text('rpc_type = "local"\n')
        config_file = tmp_path / "emerald-services.toml"
        _ = config_file.write_text(
            f'settings_file = "{settings_file.as_posix()}"\n'
            "[launcher]\n"
            f'bin_dir = "{bin_dir.as_posix()}"\n'
            f'log_dir = "{(tmp_path / "logs").as_posix()}"\n'
            "connector_ready_timeout = 60\n"
        )

        process = await anyio.open_process(
            [
                sys.executable,
                "-c",
                "from emerald_services.cli import main; main()",
                "run",
                "--config",
                str(config_file),
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        pids: list[int] = []
        try:
            with anyio.fail_after(20):
                while len(pids) < 2:
                    await anyio.sleep(0.05)
                    pids = recorded_pids(pid_dir)
                # Let the supervisor register both handles
                await anyio.sleep(0.5)

                process.send_signal(signal.SIGTERM)
                returncode = await process.wait()

            assert returncode == 0
            assert [pid for pid in pids if is_running(pid)] == []
        finally:
            for pid in pids:
                if is_running(pid):
                    os.kill(pid, signal.SIGKILL)
            if process.returncode is None:
                process.kill()
                _ = await process.wait()
