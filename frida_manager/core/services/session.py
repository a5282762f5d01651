"""
Session orchestrator — the state machine behind the CLI and web API.

Holds one SessionState and folds every flow event into it through a
single reducer under one lock. Readers only ever get the immutable
snapshot.

Transitions:
    idle → installing → success | error
    success → server_starting → server_running | error
    server_running → server_stopped (stop)
    server_running → installing | server_starting (switch / restart)
    error → idle (reset only)

Starting any status-changing flow while in ``error`` raises
InvalidTransition; the log is kept until reset() so the operator can
read what went wrong.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable

from frida_manager.core.errors import InvalidTransition
from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.models.events import FlowEvent, FlowEventKind
from frida_manager.core.models.release import ReleaseMetadata
from frida_manager.core.models.session import SessionState, SessionStatus
from frida_manager.core.services.event_bus import SESSION_EVENT, EventBus
from frida_manager.core.services.flow import Flow, FlowReporter
from frida_manager.core.services.frida_install.execution.privileged import PrivilegedExecutor
from frida_manager.core.services.frida_install.orchestration.install_manager import (
    InstallManager,
)
from frida_manager.core.services.preferences import PreferencesStore
from frida_manager.core.services.process_controller import ProcessController

logger = logging.getLogger(__name__)

STOPPED_MESSAGE = "🛑 Frida server stopped"


# ── Reducer ─────────────────────────────────────────────────────


def _append(state: SessionState, message: str) -> tuple[str, ...]:
    return (*state.messages, message)


def reduce(state: SessionState, event: FlowEvent) -> SessionState:
    """Fold one flow event into the session state."""
    if event.kind == FlowEventKind.PROGRESS:
        return replace(
            state,
            messages=_append(state, event.message),
            current_message=event.message,
        )

    if event.kind == FlowEventKind.DOWNLOAD:
        progress = event.percent
        if progress is not None:
            progress = max(state.download_progress or 0, min(100, progress))
        return replace(
            state,
            download_progress=progress,
            downloaded_bytes=event.downloaded,
            total_bytes=event.total,
        )

    if event.kind == FlowEventKind.ERROR:
        return replace(
            state,
            status=SessionStatus.ERROR,
            messages=_append(state, f"ERROR: {event.message}"),
            current_message=event.message,
            error=event.message,
            error_code=event.code,
            server_pid=None if event.flow == "start" else state.server_pid,
        )

    # success
    state = replace(
        state,
        messages=_append(state, event.message),
        current_message=event.message,
    )
    if event.flow == "install":
        return replace(state, status=SessionStatus.SUCCESS)
    if event.flow == "uninstall":
        return replace(state, status=SessionStatus.IDLE)
    if event.flow == "start":
        return replace(
            state,
            status=SessionStatus.SERVER_RUNNING,
            server_pid=event.data.get("pid"),
            server_port=event.data.get("port"),
        )
    if event.flow == "stop":
        if not event.data.get("stopped", True):
            return state
        return replace(
            state,
            status=SessionStatus.SERVER_STOPPED,
            server_pid=None,
            server_port=None,
        )
    return state


# ── Orchestrator ────────────────────────────────────────────────


class Orchestrator:
    """Drives install and process flows and tracks the session state."""

    def __init__(
        self,
        installer: InstallManager,
        controller: ProcessController,
        preferences: PreferencesStore,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self.installer = installer
        self.controller = controller
        self.preferences = preferences
        self._bus = event_bus
        self._lock = threading.RLock()
        self._state = SessionState()
        self._releases: list[ReleaseMetadata] = []
        self.refresh()

    @classmethod
    def from_config(
        cls,
        config: ManagerConfig,
        *,
        event_bus: EventBus | None = None,
        executor: PrivilegedExecutor | None = None,
    ) -> Orchestrator:
        """Wire executor, controller, installer and preferences from config."""
        executor = executor or PrivilegedExecutor(
            config.elevation_command,
            timeout=config.command_timeout,
            root_check=config.root_check,
        )
        controller = ProcessController(config, executor)
        installer = InstallManager(config, executor, stop_server=controller.stop)
        preferences = PreferencesStore(config.preferences_path)
        return cls(installer, controller, preferences, event_bus=event_bus)

    # ── State ───────────────────────────────────────────────────

    def snapshot(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def releases(self) -> list[ReleaseMetadata]:
        with self._lock:
            return list(self._releases)

    def _apply(self, change: Callable[[SessionState], SessionState]) -> SessionState:
        with self._lock:
            self._state = change(self._state)
            state = self._state
        if self._bus is not None:
            self._bus.publish(SESSION_EVENT, data=state.to_dict())
        return state

    def _install_info(self, state: SessionState) -> SessionState:
        record = self.installer.installed_record()
        return replace(
            state,
            installed=record is not None,
            server_info=record.line if record else None,
            server_type=record.server_type if record else "Unknown",
        )

    def _on_event(self, event: FlowEvent) -> None:
        def change(state: SessionState) -> SessionState:
            state = reduce(state, event)
            if event.terminal and event.flow in ("install", "uninstall"):
                state = self._install_info(state)
            return state

        if event.kind == FlowEventKind.SUCCESS and event.flow == "releases":
            with self._lock:
                self._releases = [
                    ReleaseMetadata.model_validate(r) for r in event.data.get("releases", [])
                ]

        self._apply(change)
        if self._bus is not None:
            self._bus.publish(f"flow:{event.kind}", key=event.flow_id, data=event.to_dict())

    def _begin(self, status: SessionStatus | None, *, clear_log: bool) -> None:
        """Guard and enter the status a new flow starts in."""
        with self._lock:
            if self._state.status == SessionStatus.ERROR:
                raise InvalidTransition(
                    "Session is in error state; reset before starting a new operation"
                )

            def change(state: SessionState) -> SessionState:
                if status is None:
                    return state
                return replace(
                    state,
                    status=status,
                    messages=() if clear_log else state.messages,
                    current_message="",
                    error=None,
                    error_code=None,
                    download_progress=0,
                    downloaded_bytes=0,
                    total_bytes=0,
                )

            self._apply(change)

    # ── Install flows ───────────────────────────────────────────

    def install_latest(self, force_redownload: bool = False) -> Flow:
        self._begin(SessionStatus.INSTALLING, clear_log=True)
        return self.installer.install_latest(force_redownload, subscribers=[self._on_event])

    def install_release(self, release: ReleaseMetadata, force_redownload: bool = False) -> Flow:
        self._begin(SessionStatus.INSTALLING, clear_log=True)
        return self.installer.install_from_release(
            release, force_redownload, subscribers=[self._on_event],
        )

    def install_and_save_version(self, release: ReleaseMetadata | str) -> Flow:
        """Remember the version for quick switching, then force-install it."""
        tag = release if isinstance(release, str) else release.tag_name
        self._begin(SessionStatus.INSTALLING, clear_log=True)
        self.preferences.add_saved_version(tag)
        if isinstance(release, str):
            return self.installer.switch_to_version(tag, subscribers=[self._on_event])
        return self.installer.install_from_release(
            release, True, subscribers=[self._on_event],
        )

    def install_manual(self, path: Path | str) -> Flow:
        self._begin(SessionStatus.INSTALLING, clear_log=True)
        return self.installer.install_from_manual_file(path, subscribers=[self._on_event])

    def switch_version(self, tag: str, force_redownload: bool = True) -> Flow:
        self._begin(SessionStatus.INSTALLING, clear_log=True)
        return self.installer.switch_to_version(
            tag, force_redownload=force_redownload, subscribers=[self._on_event],
        )

    def uninstall(self) -> Flow:
        self._begin(None, clear_log=False)
        return self.installer.uninstall(subscribers=[self._on_event])

    def load_releases(self, limit: int | None = None) -> Flow:
        """Fetch the release list; kept on ``releases`` once loaded."""
        return self.installer.load_releases(limit, subscribers=[self._on_event])

    # ── Server flows ────────────────────────────────────────────

    def start_server(self, port: int | None = None) -> Flow:
        port = port or self.preferences.server_port
        self._begin(SessionStatus.SERVER_STARTING, clear_log=False)
        return self.controller.start(port, subscribers=[self._on_event])

    def stop_server(self) -> Flow:
        self._begin(None, clear_log=False)

        def body(reporter: FlowReporter) -> None:
            stopped = self.controller.stop()
            if stopped:
                reporter.success(STOPPED_MESSAGE, stopped=True)
            else:
                reporter.success("No Frida server was running", stopped=False)

        return Flow("stop", body, subscribers=[self._on_event]).start()

    # ── Housekeeping ────────────────────────────────────────────

    def reset(self) -> SessionState:
        """Back to idle; install info is re-read from disk."""
        logger.info("Session reset")
        return self._apply(lambda _state: self._install_info(SessionState()))

    def refresh(self) -> SessionState:
        """Re-read install info from disk without touching the status."""
        return self._apply(self._install_info)

    def clear_logs(self) -> SessionState:
        return self._apply(lambda state: replace(state, messages=(), current_message=""))

    def status(self) -> dict[str, Any]:
        """Session snapshot plus install, server and preference details."""
        return {
            "session": self.snapshot().to_dict(),
            "install": self.installer.info(),
            "server": self.controller.status(),
            "preferences": self.preferences.to_dict(),
        }
