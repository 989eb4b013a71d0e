"""Configuration for emerald services.

Configuration is read from a TOML file (``emerald-services.toml`` by
default) and validated with Pydantic models.
"""

from ._loader import (
    CONFIG_FILE_ENV,
    DEFAULT_CONFIG_FILE,
    load_config,
    read_toml_file,
    resolve_config_path,
    safe_load_config,
)
from ._models import (
    EmeraldServicesConfig,
    LauncherConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
)

__all__ = [
    "CONFIG_FILE_ENV",
    "DEFAULT_CONFIG_FILE",
    "EmeraldServicesConfig",
    "LauncherConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "load_config",
    "read_toml_file",
    "resolve_config_path",
    "safe_load_config",
]
