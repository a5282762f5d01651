"""
Process controller — start, stop and observe the frida-server process.

Owns at most one ProcessHandle (the elevated session it spawned).
Liveness queries do not trust that handle: they look the server up by
name through the privileged executor, so a server started by someone
else (or surviving a crash of ours) is still seen and still stopped.

Start sequence:
    root available → binary exists → stop everything →
    spawn under elevation → pump stdout/stderr as progress →
    poll for the PID until ready, early exit, or timeout
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Callable, Iterable

from frida_manager.core.errors import ProcessStartFailure, RootUnavailable
from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.persistence.install_record import read_record
from frida_manager.core.services.flow import Flow, FlowCallback, FlowReporter
from frida_manager.core.services.frida_install.execution.privileged import PrivilegedExecutor

logger = logging.getLogger(__name__)

LISTEN_HOST = "0.0.0.0"
STDOUT_PREFIX = "📤 [STDOUT]"
STDERR_PREFIX = "🔴 [STDERR]"


@dataclass
class ProcessHandle:
    """The elevated session running the server."""

    process: subprocess.Popen
    port: int
    started_at: float = field(default_factory=time.time)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def alive(self) -> bool:
        return self.process.poll() is None


class ProcessController:
    """Supervises the installed server binary.

    Args:
        config: Manager configuration (binary path, timings).
        executor: Privileged executor used for spawning and lookups.
        popen: ``subprocess.Popen`` replacement (tests).
        sleep: ``time.sleep`` replacement (tests).
    """

    def __init__(
        self,
        config: ManagerConfig,
        executor: PrivilegedExecutor,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self._executor = executor
        self._popen = popen
        self._sleep = sleep
        self._lock = threading.Lock()
        self._handle: ProcessHandle | None = None

    @property
    def binary_path(self) -> Path:
        return self.config.binary_path

    @property
    def process_name(self) -> str:
        return self.config.binary_name

    # ── Start ───────────────────────────────────────────────────

    def start(self, port: int, *, subscribers: Iterable[FlowCallback] = ()) -> Flow:
        """Start the server listening on ``0.0.0.0:<port>`` (as a flow)."""
        return Flow(
            "start", lambda reporter: self._start(reporter, port), subscribers=subscribers,
        ).start()

    def _start(self, reporter: FlowReporter, port: int) -> None:
        reporter.progress("🔐 Checking root permissions...")
        if not self._executor.is_root_available():
            raise RootUnavailable("Root access is required but not available")

        binary = self.binary_path
        if not binary.is_file():
            raise ProcessStartFailure("Frida server not found. Please install it first.")

        reporter.progress("🛑 Stopping any existing Frida server...")
        self.stop()

        record = read_record(self.config.record_path)
        label = record.server_type if record else "Unknown"
        reporter.progress(f"🚀 Starting Frida server: {label}")
        reporter.progress(f"📡 Server will listen on {LISTEN_HOST}:{port}")

        handle = self._spawn(port)
        with self._lock:
            self._handle = handle

        self._attach_reader(handle.process.stdout, STDOUT_PREFIX, reporter)
        self._attach_reader(handle.process.stderr, STDERR_PREFIX, reporter)

        reporter.progress("⏳ Waiting for server to come up...")
        pid = self._await_ready(handle)
        logger.info("Frida server running pid=%d port=%d", pid, port)
        reporter.success(
            f"Frida server running (PID {pid}) on {LISTEN_HOST}:{port}",
            pid=pid,
            port=port,
        )

    def _spawn(self, port: int) -> ProcessHandle:
        binary = shlex.quote(str(self.binary_path))
        command = f"exec {binary} -l {LISTEN_HOST}:{port}"
        if self.config.working_dir.is_dir():
            command = f"cd {shlex.quote(str(self.config.working_dir))} && {command}"

        argv = self._executor.session_argv()
        logger.debug("Spawning %s ← %s", argv, command)
        try:
            proc = self._popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise ProcessStartFailure(f"Cannot open elevated session: {e}") from e

        try:
            proc.stdin.write(command + "\n")
            proc.stdin.flush()
            proc.stdin.close()
        except OSError as e:
            self._terminate(ProcessHandle(process=proc, port=port))
            raise ProcessStartFailure(f"Cannot send start command: {e}") from e

        return ProcessHandle(process=proc, port=port)

    def _attach_reader(
        self, stream: IO[str] | None, prefix: str, reporter: FlowReporter,
    ) -> None:
        if stream is None:
            return

        def pump() -> None:
            try:
                for line in iter(stream.readline, ""):
                    line = line.rstrip("\r\n")
                    if line:
                        reporter.progress(f"{prefix} {line}")
            except (OSError, ValueError) as e:
                logger.debug("%s reader stopped: %s", prefix, e)
            logger.debug("%s stream closed", prefix)

        threading.Thread(target=pump, name=f"frida-output{prefix[-8:]}", daemon=True).start()

    def _await_ready(self, handle: ProcessHandle) -> int:
        deadline = time.monotonic() + self.config.start_timeout
        while True:
            pid = self.current_pid()
            if pid is not None:
                return pid

            rc = handle.process.poll()
            if rc is not None:
                self._release(handle)
                raise ProcessStartFailure(
                    f"Frida server exited immediately (exit code {rc}). "
                    "Check output above for errors."
                )

            if time.monotonic() >= deadline:
                self._release(handle)
                self._terminate(handle)
                raise ProcessStartFailure(
                    f"Failed to start Frida server: no process after "
                    f"{self.config.start_timeout:g}s. Check output above for errors."
                )

            self._sleep(self.config.poll_interval)

    def _release(self, handle: ProcessHandle) -> None:
        with self._lock:
            if self._handle is handle:
                self._handle = None

    # ── Stop ────────────────────────────────────────────────────

    def stop(self) -> bool:
        """Stop the owned process and any other instance by name.

        Safe to call with nothing running. Returns True if something
        was terminated.
        """
        with self._lock:
            handle, self._handle = self._handle, None

        stopped = False
        if handle is not None and handle.alive:
            logger.info("Terminating owned server session pid=%d", handle.pid)
            self._terminate(handle)
            stopped = True

        if self.current_pid() is not None:
            stopped = True
            self._sweep()

        return stopped

    def _terminate(self, handle: ProcessHandle) -> None:
        """Graceful terminate, then kill after the grace period."""
        proc = handle.process
        grace = self.config.stop_grace_period
        try:
            proc.terminate()
            try:
                proc.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait(timeout=max(grace, 1.0))
        except subprocess.TimeoutExpired:
            logger.warning("Server session pid=%d did not exit after kill", proc.pid)
        except OSError as e:
            # Usually EPERM on a root-owned session; the name sweep handles it
            logger.debug("Cannot signal pid=%d: %s", proc.pid, e)

    def _sweep(self) -> None:
        name = shlex.quote(self.process_name)
        logger.info("Sweeping %s processes by name", self.process_name)
        self._executor.run(f"pkill -TERM -x {name}")

        deadline = time.monotonic() + self.config.stop_grace_period
        while self.current_pid() is not None:
            if time.monotonic() >= deadline:
                logger.info("%s survived SIGTERM, killing", self.process_name)
                self._executor.run_batch([
                    f"pkill -KILL -x {name}",
                    f"killall -9 {name}",
                ])
                break
            self._sleep(min(self.config.poll_interval, 0.1))

    # ── Queries ─────────────────────────────────────────────────

    def current_pid(self) -> int | None:
        """PID of a running server found by exact process name."""
        result = self._executor.run(f"pgrep -x {shlex.quote(self.process_name)}")
        if not result.ok:
            return None
        for line in result.lines:
            token = line.split()[0]
            if token.isdigit():
                return int(token)
        return None

    def is_running(self) -> bool:
        return self.current_pid() is not None

    @property
    def handle(self) -> ProcessHandle | None:
        with self._lock:
            return self._handle

    def status(self) -> dict[str, Any]:
        pid = self.current_pid()
        handle = self.handle
        return {
            "running": pid is not None,
            "pid": pid,
            "port": handle.port if handle is not None and handle.alive else None,
            "owned": handle is not None and handle.alive,
            "binary": str(self.binary_path),
        }
