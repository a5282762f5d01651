"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.services.event_bus import EventBus
from frida_manager.core.services.frida_install.orchestration.install_manager import (
    InstallManager,
)
from frida_manager.core.services.frida_install.resolver.releases import ReleaseResolver
from frida_manager.core.services.preferences import PreferencesStore
from frida_manager.core.services.process_controller import ProcessController
from frida_manager.core.services.session import Orchestrator
from tests.fakes import (
    INDEX_URL,
    FakeExecutor,
    FakeOpener,
    FakePopen,
    ProcessTable,
    install_fake_binary,
)


@pytest.fixture
def config(tmp_path: Path) -> ManagerConfig:
    """Config rooted in tmp_path with fast process timings."""
    return ManagerConfig(
        data_dir=tmp_path / "data",
        release_index_url=INDEX_URL,
        working_dir=tmp_path / "no-such-working-dir",
        start_timeout=0.5,
        poll_interval=0.01,
        stop_grace_period=0.05,
    )


@pytest.fixture
def table() -> ProcessTable:
    return ProcessTable()


@pytest.fixture
def executor(table: ProcessTable) -> FakeExecutor:
    return FakeExecutor(table=table)


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def popen(table: ProcessTable) -> FakePopen:
    return FakePopen(table)


@pytest.fixture
def resolver(opener: FakeOpener) -> ReleaseResolver:
    return ReleaseResolver(INDEX_URL, urlopen=opener)


@pytest.fixture
def controller(config: ManagerConfig, executor: FakeExecutor, popen: FakePopen) -> ProcessController:
    return ProcessController(config, executor, popen=popen)


@pytest.fixture
def installer(
    config: ManagerConfig,
    executor: FakeExecutor,
    resolver: ReleaseResolver,
    opener: FakeOpener,
    controller: ProcessController,
) -> InstallManager:
    return InstallManager(
        config,
        executor,
        resolver=resolver,
        stop_server=controller.stop,
        arch_detector=lambda: "arm64",
        urlopen=opener,
    )


@pytest.fixture
def preferences(config: ManagerConfig) -> PreferencesStore:
    return PreferencesStore(config.preferences_path)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def orchestrator(
    installer: InstallManager,
    controller: ProcessController,
    preferences: PreferencesStore,
    event_bus: EventBus,
) -> Orchestrator:
    return Orchestrator(installer, controller, preferences, event_bus=event_bus)


@pytest.fixture
def installed(config: ManagerConfig) -> ManagerConfig:
    """An already-installed 16.2.1 arm64 server."""
    install_fake_binary(config)
    return config
