"""Pytest fixtures for service orchestrator tests.

The orchestrator is wired to fakes: no process is spawned and nothing
is downloaded. Tests script process events through the fake handles.
"""

import pytest

from emerald_services.config import LauncherConfig
from emerald_services.services import (
    InMemorySettings,
    LaunchMode,
    ServiceOrchestrator,
    ServiceSetup,
)

from ._fakes import (
    FakeDownloader,
    FakeLauncherFactory,
    OrchestratorFactory,
    RecordingNotifier,
)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def launchers() -> FakeLauncherFactory:
    return FakeLauncherFactory()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def launcher_config() -> LauncherConfig:
    return LauncherConfig(
        remote_rpc_url="https://rpc.example.test",
        connector_ready_timeout=2.0,
    )


@pytest.fixture
def make_orchestrator(
    notifier: RecordingNotifier,
    launchers: FakeLauncherFactory,
    downloader: FakeDownloader,
    launcher_config: LauncherConfig,
) -> OrchestratorFactory:
    """Return a factory for orchestrators wired to the fakes."""

    def _make(
        rpc_mode: LaunchMode = LaunchMode.LOCAL_RUN,
        *,
        config: LauncherConfig | None = None,
    ) -> ServiceOrchestrator:
        return ServiceOrchestrator(
            notifier,
            config=config or launcher_config,
            launchers=launchers,
            downloader=downloader,
            setup=ServiceSetup(rpc_mode=rpc_mode),
        )

    return _make


@pytest.fixture
def settings() -> InMemorySettings:
    return InMemorySettings({"rpc_type": "local", "chain": "morden", "chain_id": 62})
