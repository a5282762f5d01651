"""
Session state — the immutable snapshot the orchestrator hands to readers.

States:
    IDLE            → nothing has happened yet (or after reset)
    INSTALLING      → an install / switch flow is running
    SUCCESS         → last install finished
    ERROR           → last flow failed; only reset() leaves this state
    SERVER_STARTING → start flow running
    SERVER_RUNNING  → server process is up
    SERVER_STOPPED  → stop flow finished
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class SessionStatus(StrEnum):
    """Orchestrator status values."""

    IDLE = "idle"
    INSTALLING = "installing"
    SUCCESS = "success"
    ERROR = "error"
    SERVER_STARTING = "server_starting"
    SERVER_RUNNING = "server_running"
    SERVER_STOPPED = "server_stopped"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the orchestrator. Never mutated, only replaced."""

    status: SessionStatus = SessionStatus.IDLE
    messages: tuple[str, ...] = field(default_factory=tuple)
    current_message: str = ""

    # download progress of the running install (None = indeterminate)
    download_progress: int | None = 0
    downloaded_bytes: int = 0
    total_bytes: int = 0

    server_pid: int | None = None
    server_port: int | None = None

    installed: bool = False
    server_info: str | None = None   # install record line
    server_type: str = "Unknown"

    error: str | None = None
    error_code: str | None = None

    @property
    def busy(self) -> bool:
        return self.status in (SessionStatus.INSTALLING, SessionStatus.SERVER_STARTING)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = str(self.status)
        data["messages"] = list(self.messages)
        return data
