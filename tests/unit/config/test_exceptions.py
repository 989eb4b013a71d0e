# pyright: reportAny=false
"""Unit tests for emerald services exceptions.

These tests verify that exception constructors correctly store context
attributes. We don't test Python built-in behaviors (inheritance, str()).
"""

from pathlib import Path

import pytest

from emerald_services.exceptions import (
    ConfigLoadError,
    DownloadError,
    InvalidConfigError,
    LaunchTimeoutError,
    ServiceError,
    ServiceNotFoundError,
)


class TestConfigLoadError:
    def test_stores_location_context(self) -> None:
        error = ConfigLoadError(
            "Parse error",
            path=Path("/etc/emerald/settings.toml"),
            line=15,
            column=8,
        )

        assert error.path == Path("/etc/emerald/settings.toml")
        assert error.line == 15
        assert error.column == 8

    def test_context_fields_default_to_none(self) -> None:
        error = ConfigLoadError("Simple error")

        assert error.path is None
        assert error.line is None
        assert error.column is None


class TestInvalidConfigError:
    def test_stores_validation_context(self) -> None:
        error = InvalidConfigError(
            "Invalid chain type: foo",
            key="rpc_type",
            value="foo",
            expected="none | remote | remote-auto | local",
        )

        assert error.key == "rpc_type"
        assert error.value == "foo"
        assert error.expected == "none | remote | remote-auto | local"


class TestDownloadError:
    def test_url_defaults_to_none(self) -> None:
        assert DownloadError("missing").url is None


class TestServiceError:
    def test_stores_service_context(self) -> None:
        cause = OSError("boom")

        error = ServiceError("Failed", service_name="geth", cause=cause)

        assert error.service_name == "geth"
        assert error.cause is cause

    def test_timeout_error_stores_timeout(self) -> None:
        error = LaunchTimeoutError("Too slow", service_name="connector", timeout=60.0)

        assert error.timeout == 60.0
        assert error.service_name == "connector"

    def test_not_found_is_a_key_error(self) -> None:
        # Lookups may catch KeyError without knowing the service API
        with pytest.raises(KeyError):
            raise ServiceNotFoundError("Unknown", service_name="ipfs")
