"""
Tests for the session reducer and the Orchestrator state machine.
"""

from __future__ import annotations

import time

import pytest

from frida_manager.core.errors import InvalidTransition
from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.models.events import FlowEvent, FlowEventKind
from frida_manager.core.models.session import SessionState, SessionStatus
from frida_manager.core.services.event_bus import EventBus
from frida_manager.core.services.session import STOPPED_MESSAGE, Orchestrator, reduce
from tests.fakes import (
    INDEX_URL,
    FakeOpener,
    asset_url,
    install_fake_binary,
    release_payload,
    xz_bytes,
)


def event(kind: str, flow: str = "install", **fields) -> FlowEvent:
    return FlowEvent(flow_id="f1", flow=flow, kind=FlowEventKind(kind), **fields)


def settle(orchestrator: Orchestrator, flow, timeout: float = 5.0) -> SessionState:
    """Wait for the flow and for its terminal event to reach the state."""
    terminal = flow.wait(timeout)
    assert terminal is not None
    deadline = time.monotonic() + timeout
    while orchestrator.snapshot().busy and time.monotonic() < deadline:
        time.sleep(0.01)
    return orchestrator.snapshot()


def serve_latest(opener: FakeOpener, tag: str = "16.2.1") -> None:
    opener.add_json(f"{INDEX_URL}/releases/latest", release_payload(tag))
    opener.add_json(f"{INDEX_URL}/releases?per_page=50", [release_payload(tag)])
    opener.add_bytes(asset_url(tag, "arm64"), xz_bytes())


class TestReducer:
    """Tests for the pure reducer."""

    def test_progress_appends(self):
        state = reduce(SessionState(), event("progress", message="hello"))
        assert state.messages == ("hello",)
        assert state.current_message == "hello"
        assert state.status == SessionStatus.IDLE

    def test_download_is_monotonic(self):
        state = SessionState(status=SessionStatus.INSTALLING)
        state = reduce(state, event("download", percent=40, downloaded=40, total=100))
        state = reduce(state, event("download", percent=30, downloaded=50, total=100))
        assert state.download_progress == 40
        assert state.downloaded_bytes == 50

    def test_download_clamped(self):
        state = reduce(SessionState(), event("download", percent=140, downloaded=1, total=1))
        assert state.download_progress == 100

    def test_download_indeterminate(self):
        state = reduce(SessionState(), event("download", percent=None, downloaded=9000, total=0))
        assert state.download_progress is None
        assert state.downloaded_bytes == 9000

    def test_error(self):
        state = reduce(
            SessionState(status=SessionStatus.INSTALLING),
            event("error", message="No matching server binary found for architecture: mips",
                  code="asset_not_found"),
        )
        assert state.status == SessionStatus.ERROR
        assert state.messages[-1] == "ERROR: No matching server binary found for architecture: mips"
        assert state.error_code == "asset_not_found"

    @pytest.mark.parametrize("flow,expected", [
        ("install", SessionStatus.SUCCESS),
        ("uninstall", SessionStatus.IDLE),
        ("stop", SessionStatus.SERVER_STOPPED),
    ])
    def test_success_status(self, flow: str, expected: SessionStatus):
        state = reduce(SessionState(status=SessionStatus.SERVER_RUNNING), event("success", flow, message="ok"))
        assert state.status == expected

    def test_start_success(self):
        state = reduce(
            SessionState(status=SessionStatus.SERVER_STARTING),
            event("success", "start", message="running", data={"pid": 4242, "port": 27042}),
        )
        assert state.status == SessionStatus.SERVER_RUNNING
        assert (state.server_pid, state.server_port) == (4242, 27042)

    def test_stop_with_nothing_running_keeps_status(self):
        state = reduce(
            SessionState(status=SessionStatus.SUCCESS),
            event("success", "stop", message="No Frida server was running", data={"stopped": False}),
        )
        assert state.status == SessionStatus.SUCCESS

    def test_start_error_clears_pid(self):
        state = reduce(
            SessionState(status=SessionStatus.SERVER_STARTING, server_pid=1),
            event("error", "start", message="exited", code="process_start_failure"),
        )
        assert state.server_pid is None

    def test_releases_success_keeps_status(self):
        state = reduce(SessionState(status=SessionStatus.SUCCESS), event("success", "releases", message="Loaded"))
        assert state.status == SessionStatus.SUCCESS


class TestOrchestratorInstall:
    """Tests for install flows through the orchestrator."""

    def test_install_success(self, orchestrator: Orchestrator, opener: FakeOpener):
        serve_latest(opener)
        state = settle(orchestrator, orchestrator.install_latest())

        assert state.status == SessionStatus.SUCCESS
        assert state.installed is True
        assert state.server_info == "16.2.1 (arm64)"
        assert state.server_type == "Downloaded: 16.2.1 (arm64)"
        assert state.messages[-1] == "Frida server 16.2.1 installed successfully!"
        assert state.download_progress == 100

    def test_install_clears_previous_log(self, orchestrator: Orchestrator, opener: FakeOpener):
        serve_latest(opener)
        settle(orchestrator, orchestrator.install_latest())
        first_log = orchestrator.snapshot().messages

        state = settle(orchestrator, orchestrator.install_latest())
        assert state.messages[0] == "🛑 Stopping any running Frida server..."
        assert len(state.messages) < len(first_log)

    def test_install_error_enters_error_state(self, orchestrator: Orchestrator):
        state = settle(orchestrator, orchestrator.install_latest())
        assert state.status == SessionStatus.ERROR
        assert state.error_code == "network_error"
        assert state.messages[-1].startswith("ERROR: ")

    def test_error_blocks_new_flows_until_reset(self, orchestrator: Orchestrator, opener: FakeOpener):
        settle(orchestrator, orchestrator.install_latest())

        with pytest.raises(InvalidTransition):
            orchestrator.install_latest()
        with pytest.raises(InvalidTransition):
            orchestrator.start_server()
        with pytest.raises(InvalidTransition):
            orchestrator.stop_server()

        state = orchestrator.reset()
        assert state.status == SessionStatus.IDLE
        assert state.messages == ()

        serve_latest(opener)
        assert settle(orchestrator, orchestrator.install_latest()).status == SessionStatus.SUCCESS

    def test_error_log_kept_until_reset(self, orchestrator: Orchestrator):
        settle(orchestrator, orchestrator.install_latest())
        messages = orchestrator.snapshot().messages
        orchestrator.refresh()
        assert orchestrator.snapshot().messages == messages

    def test_undecodable_record_reads_as_not_installed(
        self, config: ManagerConfig, installer, controller, preferences,
    ):
        install_fake_binary(config)
        config.record_path.write_bytes(b"\xff\xfe16.2.1 (arm64)\n")

        orchestrator = Orchestrator(installer, controller, preferences)

        assert orchestrator.snapshot().installed is False
        assert orchestrator.reset().server_info is None
        assert installer.server_type() == "Unknown"

    def test_install_and_save_version(self, orchestrator: Orchestrator, opener: FakeOpener):
        serve_latest(opener)
        state = settle(orchestrator, orchestrator.install_and_save_version("16.2.1"))
        assert state.status == SessionStatus.SUCCESS
        assert orchestrator.preferences.saved_versions == ["16.2.1"]

    def test_install_manual(self, orchestrator: Orchestrator, tmp_path):
        source = tmp_path / "custom-build"
        source.write_bytes(b"raw")
        state = settle(orchestrator, orchestrator.install_manual(source))
        assert state.server_info == "Manual Installation (custom-build) (Unknown)"
        assert state.server_type == "Manual Installation (custom-build)"

    def test_uninstall(self, installed: ManagerConfig, orchestrator: Orchestrator):
        assert orchestrator.snapshot().installed is True
        state = settle(orchestrator, orchestrator.uninstall())
        assert state.installed is False
        assert state.server_info is None
        assert state.status == SessionStatus.IDLE

    def test_load_releases_is_allowed_in_error(self, orchestrator: Orchestrator, opener: FakeOpener):
        settle(orchestrator, orchestrator.install_latest())
        serve_latest(opener)
        flow = orchestrator.load_releases()
        flow.wait(5)
        assert [r.tag_name for r in orchestrator.releases] == ["16.2.1"]


class TestOrchestratorServer:
    """Tests for start/stop through the orchestrator."""

    def test_start_uses_preferred_port(self, installed: ManagerConfig, orchestrator: Orchestrator):
        orchestrator.preferences.set_server_port(31337)
        state = settle(orchestrator, orchestrator.start_server())
        assert state.status == SessionStatus.SERVER_RUNNING
        assert state.server_port == 31337
        assert state.server_pid is not None

    def test_stop(self, installed: ManagerConfig, orchestrator: Orchestrator):
        settle(orchestrator, orchestrator.start_server(27042))
        flow = orchestrator.stop_server()
        state = settle(orchestrator, flow)
        assert flow.result.message == STOPPED_MESSAGE
        assert state.status == SessionStatus.SERVER_STOPPED
        assert state.server_pid is None
        assert not orchestrator.controller.is_running()

    def test_stop_with_nothing_running(self, orchestrator: Orchestrator):
        flow = orchestrator.stop_server()
        state = settle(orchestrator, flow)
        assert flow.result.data == {"stopped": False}
        assert state.status == SessionStatus.IDLE

    def test_start_not_installed(self, orchestrator: Orchestrator):
        state = settle(orchestrator, orchestrator.start_server())
        assert state.status == SessionStatus.ERROR
        assert state.error_code == "process_start_failure"

    def test_status(self, installed: ManagerConfig, orchestrator: Orchestrator):
        status = orchestrator.status()
        assert set(status) == {"session", "install", "server", "preferences"}
        assert status["install"]["installed"] is True
        assert status["server"]["running"] is False
        assert status["preferences"]["server_port"] == 27042


class TestOrchestratorEvents:
    """Tests for what the orchestrator publishes on the bus."""

    def test_publishes_flow_and_session_events(self, orchestrator: Orchestrator, event_bus: EventBus):
        events = event_bus.subscribe(since=event_bus.seq, heartbeat_interval=0.1)
        flow = orchestrator.stop_server()
        settle(orchestrator, flow)

        seen = []
        for item in events:
            seen.append(item)
            if item["type"] == "flow:success":
                break
        events.close()

        types = [e["type"] for e in seen]
        assert "session:state" in types
        assert types[-1] == "flow:success"
        assert seen[-1]["key"] == flow.id
        assert event_bus.latest_session()["status"] == "idle"

    def test_clear_logs(self, orchestrator: Orchestrator):
        settle(orchestrator, orchestrator.install_latest())
        state = orchestrator.clear_logs()
        assert state.messages == ()
        assert state.status == SessionStatus.ERROR
