"""Configuration models.

This module provides the Pydantic models for the emerald services
configuration file: logging settings and launcher settings.
"""

from enum import StrEnum
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty uses ``<log_dir>/services.log``).
        max_bytes: Maximum log file size before rotation (None disables).
        backup_count: Number of rotated files to keep (None disables).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""
    max_bytes: int | None = Field(default=None, ge=1)
    backup_count: int | None = Field(default=None, ge=1)


class LauncherConfig(BaseModel):
    """Launcher configuration section.

    Attributes:
        bin_dir: Directory holding the geth and emerald binaries.
        log_dir: Directory for service logs.
        geth_binary: File name of the geth binary inside ``bin_dir``.
        connector_binary: File name of the connector binary inside ``bin_dir``.
        rpc_port: Port the local geth RPC API listens on.
        remote_rpc_url: Endpoint used when the RPC backend is remote.
        geth_download_url: Where to fetch geth from when it is missing.
        connector_ready_timeout: Seconds to wait for the connector banner,
            or None to wait forever.
        shutdown_timeout: Seconds to wait for graceful process exit.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    bin_dir: Path = Path("bin")
    log_dir: Path = Path("logs")
    geth_binary: str = "geth"
    connector_binary: str = "emerald"
    rpc_port: int = Field(default=8545, ge=1, le=65535)
    remote_rpc_url: str = "https://mewapi.epool.io"
    geth_download_url: str | None = None
    connector_ready_timeout: float | None = Field(default=60.0, gt=0)
    shutdown_timeout: float = Field(default=5.0, gt=0)

    @property
    def local_rpc_url(self) -> str:
        """Return the endpoint of a geth instance running on this machine."""
        return f"http://localhost:{self.rpc_port}"


class EmeraldServicesConfig(BaseModel):
    """Top-level configuration.

    Attributes:
        logging: Logging settings.
        launcher: Binary locations, ports and timeouts.
        settings_file: TOML file holding the user's chain settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    launcher: LauncherConfig = Field(default_factory=LauncherConfig)
    settings_file: Path = Path("settings.toml")
