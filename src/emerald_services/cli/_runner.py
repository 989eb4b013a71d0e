"""Async runner for the run command.

This module provides the async entry point that starts the services,
optionally serves the control API, and shuts everything down on
SIGINT or SIGTERM.
"""

import signal
from collections.abc import AsyncIterator
from typing import cast

import anyio
import uvicorn
from rich.console import Console  # noqa: TC002 - Used in runtime type annotations

from emerald_services.config import EmeraldServicesConfig  # noqa: TC001 - Used in runtime type annotations
from emerald_services.services import ConsoleNotifier, ServiceOrchestrator, TomlSettings
from emerald_services.utils import LogFormatType, create_services_logger

from ._app import create_control_app


async def watch_shutdown_signals(
    signals: AsyncIterator[signal.Signals],
    stop: anyio.Event,
    startup: anyio.CancelScope,
) -> None:
    """Set ``stop`` on the first signal and cancel a start still in progress."""
    async for _ in signals:
        stop.set()
        startup.cancel()
        return


async def run_services(
    config: EmeraldServicesConfig,
    control_port: int | None = None,
    console: Console | None = None,
) -> None:
    """Run the services until a shutdown signal arrives.

    The signal receiver is installed before anything is spawned. A signal
    that arrives while the connector is still starting cancels the start,
    and whatever was already spawned is stopped.

    Args:
        config: Loaded configuration.
        control_port: Port for the control API, or None to disable it.
        console: Console for status output.

    Raises:
        ConfigLoadError: If the settings file cannot be parsed.
        InvalidConfigError: If the settings are invalid.
        ServiceError: If a service fails to start.
    """
    notifier = ConsoleNotifier(console)
    logger = create_services_logger(
        config.launcher.log_dir,
        level=config.logging.level.value,
        log_format=cast("LogFormatType", config.logging.format.value),
        log_file=config.logging.file,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
    )
    settings = TomlSettings(config.settings_file)
    stop = anyio.Event()

    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async with ServiceOrchestrator(
            notifier, config=config.launcher, logger=logger
        ) as services:
            _ = services.apply_configuration(settings)

            async with anyio.create_task_group() as tg:
                control_server: uvicorn.Server | None = None
                if control_port is not None:
                    control_server = uvicorn.Server(
                        uvicorn.Config(
                            app=create_control_app(services),
                            host="127.0.0.1",
                            port=control_port,
                            log_level="warning",
                            access_log=False,
                        )
                    )
                    tg.start_soon(control_server.serve)

                with anyio.CancelScope() as startup:
                    tg.start_soon(watch_shutdown_signals, signals, stop, startup)
                    _ = await services.start()
                    services.report_status()

                await stop.wait()
                logger.info(
                    "shutdown_requested", during_startup=startup.cancelled_caught
                )

                await services.shutdown()
                if control_server is not None:
                    control_server.should_exit = True
