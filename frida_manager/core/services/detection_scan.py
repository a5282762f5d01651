"""
Detection scan — can an app on this device see the running server?

A small, read-only scanner with the checks that need no native code:
open Frida ports on loopback and Frida process names in the process
table. Richer scanners plug in through the ``Scanner`` protocol.
"""

from __future__ import annotations

import logging
import socket
import subprocess
import time
from typing import Callable, Iterable, Protocol

from frida_manager.core.models.detection import DetectionReport, DetectionResult, Severity

logger = logging.getLogger(__name__)

DEFAULT_PORTS = (27042, 27043)
SUSPICIOUS_PROCESSES = ("frida-server", "frida-helper", "gum-js-loop")


class Scanner(Protocol):
    def run_full_scan(self) -> DetectionReport: ...


def port_open(port: int, host: str = "127.0.0.1", timeout: float = 0.5) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def list_processes() -> list[str]:
    """Lines of ``ps -A`` (empty when ps is unavailable)."""
    try:
        result = subprocess.run(["ps", "-A"], capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("ps failed: %s", e)
        return []
    return result.stdout.splitlines()


class DefaultScanner:
    """Port and process-name checks."""

    def __init__(
        self,
        ports: Iterable[int] = DEFAULT_PORTS,
        *,
        port_probe: Callable[[int], bool] = port_open,
        process_lister: Callable[[], list[str]] = list_processes,
    ) -> None:
        self.ports = sorted(set(ports))
        self._probe = port_probe
        self._list_processes = process_lister

    def run_full_scan(self) -> DetectionReport:
        start = time.monotonic()
        results = [self.check_frida_ports(), self.check_frida_processes()]
        elapsed = int((time.monotonic() - start) * 1000)
        report = DetectionReport(results=results, scan_duration_ms=elapsed)
        logger.info(
            "Detection scan: %d/%d detected (%s)",
            report.detection_count, report.total_checks, report.threat_level,
        )
        return report

    def check_frida_ports(self) -> DetectionResult:
        open_ports = [p for p in self.ports if self._probe(p)]
        return DetectionResult(
            technique="Frida Ports",
            detected=bool(open_ports),
            details="Open: " + ", ".join(map(str, open_ports)) if open_ports else "Closed",
            severity=Severity.HIGH if open_ports else Severity.LOW,
            raw_data=[f"Port {p}" for p in open_ports],
        )

    def check_frida_processes(self) -> DetectionResult:
        found = [
            line.strip()
            for line in self._list_processes()
            if any(name in line.lower() for name in SUSPICIOUS_PROCESSES)
        ]
        return DetectionResult(
            technique="Process Names",
            detected=bool(found),
            details=f"{len(found)} found" if found else "Clean",
            severity=Severity.CRITICAL if found else Severity.LOW,
            raw_data=found,
        )
