import signal
from collections.abc import AsyncIterator
from pathlib import Path

import anyio
import pytest

from emerald_services.cli import check, run
from emerald_services.cli._runner import watch_shutdown_signals
from emerald_services.config import EmeraldServicesConfig
from emerald_services.exceptions import LaunchFailureError


def write_config(tmp_path: Path, settings: str) -> Path:
    settings_file = tmp_path / "settings.toml"
    _ = settings_file.write_text(settings)
    config_file = tmp_path / "emerald-services.toml"
    _ = config_file.write_text(
        f'settings_file = "{settings_file.as_posix()}"\n'
        "[launcher]\n"
        f'log_dir = "{(tmp_path / "logs").as_posix()}"\n'
    )
    return config_file


class TestCheckCommand:
    def test_reports_remote_setup(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config_file = write_config(tmp_path, 'rpc_type = "remote"\n')

        check(config=config_file)

        out = capsys.readouterr().out
        assert "[connector] not ready" in out
        assert "[chain] mainnet (id=61, rpc=remote)" in out
        assert "[rpc] https://mewapi.epool.io" in out
        # The remote chain is written back to the settings file
        assert 'chain = "mainnet"' in (tmp_path / "settings.toml").read_text()

    def test_invalid_rpc_type_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config_file = write_config(tmp_path, 'rpc_type = "carrier-pigeon"\n')

        with pytest.raises(SystemExit) as exc_info:
            check(config=config_file)

        assert exc_info.value.code == 1
        assert "Invalid chain type: carrier-pigeon" in capsys.readouterr().out

    def test_missing_config_file_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            check(config=tmp_path / "missing.toml")

        assert exc_info.value.code == 1
        assert "Config file not found" in capsys.readouterr().err


class TestRunCommand:
    def test_service_error_exits(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        async def failing_run_services(
            config: EmeraldServicesConfig, *args: object
        ) -> None:
            msg = "Failed to start service 'geth'"
            raise LaunchFailureError(msg, service_name="geth")

        monkeypatch.setattr(
            "emerald_services.cli._runner.run_services", failing_run_services
        )
        config_file = write_config(tmp_path, 'rpc_type = "local"\n')

        with pytest.raises(SystemExit) as exc_info:
            run(config=config_file)

        assert exc_info.value.code == 1
        assert "Failed to start service 'geth'" in capsys.readouterr().err

    def test_exception_group_reports_each_error(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        async def failing_run_services(
            config: EmeraldServicesConfig, *args: object
        ) -> None:
            msg = "Failed to start services"
            raise ExceptionGroup(
                msg,
                [
                    LaunchFailureError("geth failed", service_name="geth"),
                    LaunchFailureError("connector failed", service_name="connector"),
                ],
            )

        monkeypatch.setattr(
            "emerald_services.cli._runner.run_services", failing_run_services
        )
        config_file = write_config(tmp_path, 'rpc_type = "local"\n')

        with pytest.raises(SystemExit):
            run(config=config_file)

        err = capsys.readouterr().err
        assert "geth failed" in err
        assert "connector failed" in err


@pytest.mark.anyio
class TestWatchShutdownSignals:
    async def test_first_signal_cancels_pending_start(self) -> None:
        async def signals() -> AsyncIterator[signal.Signals]:
            yield signal.SIGTERM
            yield signal.SIGINT

        stop = anyio.Event()
        with anyio.CancelScope() as startup:
            await watch_shutdown_signals(signals(), stop, startup)
            await anyio.sleep(10)

        assert stop.is_set()
        assert startup.cancelled_caught

