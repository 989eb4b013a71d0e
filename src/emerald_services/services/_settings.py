# pyright: reportAny=false
"""Settings sources for the service orchestrator.

The orchestrator reads ``rpc_type``, ``chain`` and ``chain_id`` from a
settings source and writes back ``chain`` and ``chain_id`` when the
remote RPC backend is selected.
"""

from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from typing import Any, final

import tomli_w

from emerald_services.config import read_toml_file

RPC_TYPE_KEY = "rpc_type"
CHAIN_KEY = "chain"
CHAIN_ID_KEY = "chain_id"


@final
class InMemorySettings:
    """Settings source backed by a dictionary."""

    __slots__ = ("_values",)

    def __init__(self, values: dict[str, Any] | None = None) -> None:  # pyright: ignore[reportExplicitAny]
        self._values: dict[str, Any] = dict(values or {})  # pyright: ignore[reportExplicitAny]

    def get(self, key: str) -> object | None:
        return self._values.get(key)

    def set(self, key: str, value: object) -> None:
        self._values[key] = value

    def as_dict(self) -> dict[str, object]:
        """Return a copy of the stored values."""
        return dict(self._values)


@final
class TomlSettings:
    """Settings source persisted to a TOML file.

    The file is read once on creation and rewritten on every set().
    A missing file starts out empty and is created on the first write.
    """

    __slots__ = ("_values", "path")

    def __init__(self, path: Path) -> None:
        """Initialize the settings source.

        Args:
            path: Location of the settings file.

        Raises:
            ConfigLoadError: If the file exists but cannot be parsed.
        """
        self.path = path
        try:
            self._values: dict[str, Any] = read_toml_file(path)  # pyright: ignore[reportExplicitAny]
        except FileNotFoundError:
            self._values = {}

    def get(self, key: str) -> object | None:
        return self._values.get(key)

    def set(self, key: str, value: object) -> None:
        self._values[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("wb") as f:
            tomli_w.dump(self._values, f)
