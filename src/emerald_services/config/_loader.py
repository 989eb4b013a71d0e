# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file loading."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from emerald_services.exceptions import ConfigLoadError

from ._models import EmeraldServicesConfig

CONFIG_FILE_ENV = "EMERALD_SERVICES_CONFIG"
DEFAULT_CONFIG_FILE = Path("emerald-services.toml")


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(
            msg,
            path=path,
            line=e.lineno,
            column=e.colno,
        ) from e


def resolve_config_path(config_path: Path | None = None) -> Path:
    """Return the configuration file to load.

    Precedence: explicit path, then EMERALD_SERVICES_CONFIG, then
    ``emerald-services.toml`` in the working directory.
    """
    if config_path is not None:
        return config_path
    env_path = os.environ.get(CONFIG_FILE_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> EmeraldServicesConfig:
    """Load and validate the configuration.

    A missing configuration file is not an error: defaults are used.

    Args:
        config_path: Explicit path to the config file.

    Returns:
        The validated configuration.

    Raises:
        ConfigLoadError: If the file cannot be parsed or fails validation.
    """
    path = resolve_config_path(config_path)
    try:
        data = read_toml_file(path)
    except FileNotFoundError:
        if config_path is not None:
            msg = f"Config file not found: {path}"
            raise ConfigLoadError(msg, path=path) from None
        return EmeraldServicesConfig()

    try:
        return EmeraldServicesConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid configuration in {path}: {e}"
        raise ConfigLoadError(msg, path=path) from e


def safe_load_config(
    config_path: Path | None = None,
) -> tuple[EmeraldServicesConfig, ConfigLoadError | None]:
    """Load configuration, falling back to defaults on error.

    Returns:
        Tuple of (config, error). The error is None when loading succeeded.
    """
    try:
        return load_config(config_path), None
    except ConfigLoadError as e:
        return EmeraldServicesConfig(), e
