"""
L4 Execution — privileged command runner.

The SINGLE PLACE where an elevated shell is opened for install and
process operations. Each call opens one session (``su`` by default),
writes the command followed by ``exit`` to its stdin, waits for it to
finish and returns a CommandResult.

Nothing here raises for an operational failure: a missing elevation
binary, a spawn error or a timeout all come back as ``ok=False``.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from typing import Iterable

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ROOT_CHECK_ID_U = "id-u"
ROOT_CHECK_UID_TEXT = "uid-text"

_OUTPUT_LIMIT = 64 * 1024


class CommandResult(BaseModel):
    """Outcome of one elevated session."""

    command: str
    return_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    error: str | None = None

    @classmethod
    def failure(cls, command: str, error: str, *, duration_ms: int = 0) -> CommandResult:
        return cls(command=command, error=error, duration_ms=duration_ms)

    @property
    def ok(self) -> bool:
        return self.error is None and self.return_code == 0

    @property
    def lines(self) -> list[str]:
        return [ln for ln in self.stdout.splitlines() if ln.strip()]

    @property
    def first_line(self) -> str:
        lines = self.lines
        return lines[0].strip() if lines else ""


class PrivilegedExecutor:
    """Runs shell statements in an elevated session.

    Args:
        elevation_command: Command that opens a root shell reading
            statements from stdin (``su`` on a rooted device).
        timeout: Seconds before the session is killed.
        root_check: ``"id-u"`` (uid must be exactly 0) or
            ``"uid-text"`` (``id`` output must contain ``uid=0``).
    """

    def __init__(
        self,
        elevation_command: str = "su",
        *,
        timeout: float = 30.0,
        root_check: str = ROOT_CHECK_ID_U,
    ) -> None:
        self.elevation_command = elevation_command
        self.timeout = timeout
        self.root_check = root_check

    def session_argv(self) -> list[str]:
        """argv of the elevated shell. Plain ``sh`` when already root."""
        if os.geteuid() == 0:
            return ["sh"]
        return shlex.split(self.elevation_command)

    def available(self) -> bool:
        """Whether the elevation binary can be found on PATH."""
        argv = self.session_argv()
        return bool(argv) and shutil.which(argv[0]) is not None

    # ── Execution ───────────────────────────────────────────────

    def run(self, command: str) -> CommandResult:
        """Run ``command`` in a fresh elevated session."""
        argv = self.session_argv()
        if not argv or shutil.which(argv[0]) is None:
            name = argv[0] if argv else self.elevation_command
            logger.debug("Elevation unavailable (%s not found) for: %s", name, command)
            return CommandResult.failure(command, f"Elevation unavailable: '{name}' not found")

        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                input=f"{command}\nexit\n",
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            elapsed = int((time.monotonic() - start) * 1000)
            logger.warning("Elevated command timed out after %ss: %s", self.timeout, command)
            return CommandResult.failure(
                command, f"Timed out after {self.timeout}s", duration_ms=elapsed,
            )
        except OSError as e:
            elapsed = int((time.monotonic() - start) * 1000)
            logger.warning("Cannot open elevated session: %s", e)
            return CommandResult.failure(command, str(e), duration_ms=elapsed)

        elapsed = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            command=command,
            return_code=proc.returncode,
            stdout=(proc.stdout or "")[-_OUTPUT_LIMIT:],
            stderr=(proc.stderr or "")[-_OUTPUT_LIMIT:],
            duration_ms=elapsed,
        )
        logger.debug(
            "elevated rc=%s (%dms): %s", proc.returncode, elapsed, command,
        )
        return result

    def run_batch(self, commands: Iterable[str]) -> CommandResult:
        """Run several independent statements in one session.

        Statements are newline-joined; the result reflects the last
        one's exit code, so callers must not rely on ordering between
        them.
        """
        return self.run("\n".join(commands))

    # ── Root check ──────────────────────────────────────────────

    def is_root_available(self) -> bool:
        """Whether an elevated session actually runs as uid 0."""
        if self.root_check == ROOT_CHECK_UID_TEXT:
            result = self.run("id")
            return result.ok and "uid=0" in result.stdout

        result = self.run("id -u")
        return result.ok and result.first_line == "0"
