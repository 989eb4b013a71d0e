# pyright: reportUnusedCallResult=false
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing
"""The command-line interface for emerald services."""

import sys
from pathlib import Path
from typing import Annotated, cast

import anyio
from cyclopts import App, Parameter
from rich.console import Console

from emerald_services.config import EmeraldServicesConfig, safe_load_config
from emerald_services.exceptions import ConfigError, ServiceError

app = App(
    name="emerald-services",
    help="Run the geth RPC backend and the emerald connector.",
    help_on_error=True,
)

ConfigOption = Annotated[
    Path | None,
    Parameter(name="--config", help="Path to config file"),
]


def _load_config_or_exit(
    config: Path | None, console: Console
) -> EmeraldServicesConfig:
    loaded_config, config_error = safe_load_config(config)
    if config_error is not None:
        console.print(f"[red]Error:[/red] {config_error}")
        sys.exit(1)
    return loaded_config


@app.command(name="run")
def run(
    *,
    config: ConfigOption = None,
    control_port: Annotated[
        int | None,
        Parameter(help="Port for the control API. Disabled if omitted."),
    ] = None,
) -> None:
    """Start both services and supervise them until interrupted.

    Reads the chain settings, starts the geth backend and the emerald
    connector, and keeps them running until SIGINT or SIGTERM.
    """
    from ._runner import run_services

    console = Console()
    error_console = Console(stderr=True)
    loaded_config = _load_config_or_exit(config, error_console)

    try:
        anyio.run(run_services, loaded_config, control_port, console)
    except (ConfigError, ServiceError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except ExceptionGroup as eg:
        for error in eg.exceptions:
            error_console.print(f"[red]Error:[/red] {error}")
        sys.exit(1)


@app.command(name="check")
def check(*, config: ConfigOption = None) -> None:
    """Validate the chain settings and print the resolved setup.

    No process is started.
    """
    from emerald_services.services import (
        ConsoleNotifier,
        ServiceOrchestrator,
        TomlSettings,
    )
    from emerald_services.utils import LogFormatType, create_services_logger

    console = Console()
    error_console = Console(stderr=True)
    loaded_config = _load_config_or_exit(config, error_console)

    try:
        settings = TomlSettings(loaded_config.settings_file)
    except ConfigError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    logger = create_services_logger(
        loaded_config.launcher.log_dir,
        level=loaded_config.logging.level.value,
        log_format=cast("LogFormatType", loaded_config.logging.format.value),
        log_file=loaded_config.logging.file,
    )
    services = ServiceOrchestrator(
        ConsoleNotifier(console), config=loaded_config.launcher, logger=logger
    )
    try:
        services.apply_configuration(settings)
    except ConfigError:
        # Already reported through the notifier
        sys.exit(1)

    services.report_status()


def main() -> None:
    """Entry point for the emerald-services command."""
    app()
