"""
Health checker — aggregate manager health from its components.

Components:
    elevation     can we get a root shell?
    installation  is a usable binary + record in place?
    server        is the server process up?
    preferences   is the preferences file readable?

Used by the CLI ``health`` command and ``GET /api/health``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from frida_manager.core.services.frida_install.execution.privileged import PrivilegedExecutor
from frida_manager.core.services.frida_install.orchestration.install_manager import (
    InstallManager,
)
from frida_manager.core.services.preferences import PreferencesStore
from frida_manager.core.services.process_controller import ProcessController

logger = logging.getLogger(__name__)


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = "unknown"  # healthy, degraded, unhealthy, unknown
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Worst-of aggregate over all components."""

    status: str = "healthy"
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        statuses = {c.status for c in self.components}
        if "unhealthy" in statuses:
            self.status = "unhealthy"
        elif "degraded" in statuses:
            self.status = "degraded"
        elif statuses == {"healthy"}:
            self.status = "healthy"
        else:
            self.status = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
        }


def check_elevation(executor: PrivilegedExecutor) -> ComponentHealth:
    if not executor.available():
        return ComponentHealth(
            name="elevation",
            status="unhealthy",
            message=f"'{executor.elevation_command}' not found",
        )
    if not executor.is_root_available():
        return ComponentHealth(
            name="elevation",
            status="unhealthy",
            message="Elevated session is not running as root",
        )
    return ComponentHealth(name="elevation", status="healthy", message="Root access available")


def check_installation(installer: InstallManager) -> ComponentHealth:
    record = installer.installed_record()
    if record is None:
        return ComponentHealth(
            name="installation",
            status="degraded",
            message="Frida server not installed",
            details={"binary": str(installer.binary_path)},
        )
    return ComponentHealth(
        name="installation",
        status="healthy",
        message=record.server_type,
        details=record.to_dict(),
    )


def check_server(controller: ProcessController) -> ComponentHealth:
    pid = controller.current_pid()
    if pid is None:
        return ComponentHealth(name="server", status="degraded", message="Frida server not running")
    return ComponentHealth(
        name="server",
        status="healthy",
        message=f"Running (PID {pid})",
        details={"pid": pid},
    )


def check_preferences(preferences: PreferencesStore) -> ComponentHealth:
    path = preferences.path
    if not path.exists():
        return ComponentHealth(
            name="preferences", status="healthy", message="Using defaults (no file yet)",
        )
    try:
        json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        return ComponentHealth(
            name="preferences",
            status="degraded",
            message=f"Unreadable preferences file: {e}",
            details={"path": str(path)},
        )
    return ComponentHealth(
        name="preferences", status="healthy", message=str(path),
    )


def check_system_health(
    executor: PrivilegedExecutor,
    installer: InstallManager,
    controller: ProcessController,
    preferences: PreferencesStore,
) -> SystemHealth:
    """Run all health checks and return the aggregate."""
    health = SystemHealth()
    health.add(check_elevation(executor))
    health.add(check_installation(installer))
    health.add(check_server(controller))
    health.add(check_preferences(preferences))
    logger.debug("System health: %s", health.status)
    return health
