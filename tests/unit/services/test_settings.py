"""Unit tests for settings sources."""

from pathlib import Path

import pytest

from emerald_services.exceptions import ConfigLoadError
from emerald_services.services import InMemorySettings, TomlSettings


class TestInMemorySettings:
    def test_get_returns_none_for_missing_key(self) -> None:
        assert InMemorySettings().get("rpc_type") is None

    def test_set_then_get(self) -> None:
        settings = InMemorySettings({"rpc_type": "local"})

        settings.set("chain", "mainnet")

        assert settings.as_dict() == {"rpc_type": "local", "chain": "mainnet"}

    def test_does_not_alias_initial_values(self) -> None:
        values: dict[str, object] = {"chain": "morden"}
        settings = InMemorySettings(values)

        settings.set("chain", "mainnet")

        assert values == {"chain": "morden"}


class TestTomlSettings:
    def test_reads_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.toml"
        _ = path.write_text('rpc_type = "remote"\nchain = "mainnet"\nchain_id = 61\n')

        settings = TomlSettings(path)

        assert settings.get("rpc_type") == "remote"
        assert settings.get("chain_id") == 61

    def test_missing_file_starts_empty(self, tmp_path: Path) -> None:
        settings = TomlSettings(tmp_path / "settings.toml")

        assert settings.get("rpc_type") is None
        assert not settings.path.exists()

    def test_set_persists_to_disk(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "settings.toml"
        settings = TomlSettings(path)

        settings.set("chain", "mainnet")
        settings.set("chain_id", 61)

        reloaded = TomlSettings(path)
        assert reloaded.get("chain") == "mainnet"
        assert reloaded.get("chain_id") == 61

    def test_set_keeps_other_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.toml"
        _ = path.write_text('rpc_type = "local"\n')
        settings = TomlSettings(path)

        settings.set("chain", "morden")

        assert TomlSettings(path).get("rpc_type") == "local"

    def test_unparseable_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.toml"
        _ = path.write_text("rpc_type = \n")

        with pytest.raises(ConfigLoadError):
            _ = TomlSettings(path)
