"""
Wi-Fi ADB toggle — switch adbd between USB and TCP mode.

Reading the state needs no privileges (``getprop``); changing it
restarts adbd through the privileged executor.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Callable

from frida_manager.core.services.frida_install.execution.privileged import (
    CommandResult,
    PrivilegedExecutor,
)

logger = logging.getLogger(__name__)

DEFAULT_ADB_PORT = 5555
TCP_PORT_PROP = "service.adb.tcp.port"

_INET_RE = re.compile(r"\binet (\d+\.\d+\.\d+\.\d+)")


@dataclass
class AdbWifiStatus:
    enabled: bool
    port: int | None = None
    address: str | None = None   # "<ip>:<port>" when enabled and an IP is known

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "port": self.port, "address": self.address}


def _run_quiet(argv: list[str]) -> str:
    """stdout of a non-elevated command, empty on any failure."""
    if shutil.which(argv[0]) is None:
        return ""
    try:
        result = subprocess.run(argv, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("%s failed: %s", argv[0], e)
        return ""
    return result.stdout if result.returncode == 0 else ""


def read_tcp_port() -> int | None:
    raw = _run_quiet(["getprop", TCP_PORT_PROP]).strip()
    try:
        return int(raw)
    except ValueError:
        return None


def first_ipv4_address() -> str | None:
    """First non-loopback IPv4 address reported by ``ip addr``."""
    output = _run_quiet(["ip", "-4", "-o", "addr", "show"])
    for match in _INET_RE.finditer(output):
        addr = match.group(1)
        if not ipaddress.IPv4Address(addr).is_loopback:
            return addr
    return None


class AdbWifi:
    """Status and toggle for adb over TCP."""

    def __init__(
        self,
        executor: PrivilegedExecutor,
        *,
        port_reader: Callable[[], int | None] = read_tcp_port,
        ip_reader: Callable[[], str | None] = first_ipv4_address,
    ) -> None:
        self._executor = executor
        self._read_port = port_reader
        self._read_ip = ip_reader

    def status(self) -> AdbWifiStatus:
        port = self._read_port()
        if port is None or port <= 0:
            return AdbWifiStatus(enabled=False)
        ip = self._read_ip()
        return AdbWifiStatus(
            enabled=True,
            port=port,
            address=f"{ip}:{port}" if ip else None,
        )

    def enable(self, port: int = DEFAULT_ADB_PORT) -> CommandResult:
        logger.info("Enabling adb over TCP on port %d", port)
        return self._restart_adbd(port)

    def disable(self) -> CommandResult:
        logger.info("Disabling adb over TCP")
        return self._restart_adbd(-1)

    def _restart_adbd(self, port: int) -> CommandResult:
        return self._executor.run(
            f"setprop {TCP_PORT_PROP} {port}; stop adbd; start adbd"
        )
