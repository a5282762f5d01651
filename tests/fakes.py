"""
Test doubles — a scripted root shell, a fake process table and a fake
HTTP opener. Nothing here touches the network or real elevation.
"""

from __future__ import annotations

import io
import itertools
import lzma
import os
import queue
import shlex
import threading
import urllib.error
from typing import Any

from frida_manager.core.services.frida_install.execution.privileged import (
    CommandResult,
    PrivilegedExecutor,
)

INDEX_URL = "https://api.example.test/repos/frida/frida"
DOWNLOAD_BASE = "https://dl.example.test/frida/releases/download"
ALL_ARCHES = ("arm64", "arm", "x86", "x86_64")

SERVER_BYTES = b"\x7fELF fake frida-server build\n" * 64


def xz_bytes(payload: bytes = SERVER_BYTES) -> bytes:
    return lzma.compress(payload, format=lzma.FORMAT_XZ)


def release_payload(
    tag: str,
    arches: tuple[str, ...] = ALL_ARCHES,
    *,
    prerelease: bool = False,
    name: str | None = None,
) -> dict[str, Any]:
    """A GitHub-shaped release object with server assets for ``arches``."""
    assets = [
        {
            "name": f"frida-server-{tag}-android-{arch}.xz",
            "browser_download_url": f"{DOWNLOAD_BASE}/{tag}/frida-server-{tag}-android-{arch}.xz",
            "size": 1234,
        }
        for arch in arches
    ]
    assets.append({
        "name": f"frida-gadget-{tag}-linux-x86_64.so.xz",
        "browser_download_url": f"{DOWNLOAD_BASE}/{tag}/frida-gadget-{tag}-linux-x86_64.so.xz",
    })
    return {
        "tag_name": tag,
        "name": name,
        "published_at": "2024-03-01T12:00:00Z",
        "prerelease": prerelease,
        "draft": False,
        "assets": assets,
    }


def asset_url(tag: str, arch: str) -> str:
    return f"{DOWNLOAD_BASE}/{tag}/frida-server-{tag}-android-{arch}.xz"


# ── HTTP ────────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, body: bytes, status: int = 200, headers: dict[str, str] | None = None):
        self._buf = io.BytesIO(body)
        self.status = status
        self.headers = headers or {}

    def read(self, n: int = -1) -> bytes:
        return self._buf.read(n)

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc: Any) -> None:
        self._buf.close()


class FakeOpener:
    """Stands in for ``urllib.request.urlopen``; routes by exact URL."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, dict[str, str]]] = {}
        self.calls: list[str] = []
        self.requests: list[Any] = []

    def add_json(self, url: str, payload: Any, status: int = 200) -> None:
        import json

        self.routes[url] = (status, json.dumps(payload).encode(), {})

    def add_bytes(
        self,
        url: str,
        body: bytes,
        *,
        status: int = 200,
        content_length: int | None | bool = True,
    ) -> None:
        headers: dict[str, str] = {}
        if content_length is True:
            headers["Content-Length"] = str(len(body))
        elif isinstance(content_length, int) and content_length is not False:
            headers["Content-Length"] = str(content_length)
        self.routes[url] = (status, body, headers)

    def add_release_index(self, latest: dict[str, Any], others: list[dict[str, Any]] = ()) -> None:
        self.add_json(f"{INDEX_URL}/releases/latest", latest)
        for limit in (50, 10):
            self.add_json(f"{INDEX_URL}/releases?per_page={limit}", [latest, *others])

    def __call__(self, req: Any, timeout: float | None = None) -> FakeResponse:
        url = getattr(req, "full_url", req)
        self.calls.append(url)
        self.requests.append(req)
        if url not in self.routes:
            raise urllib.error.URLError(f"no route to {url}")
        status, body, headers = self.routes[url]
        if status >= 400:
            raise urllib.error.HTTPError(url, status, "error", hdrs=None, fp=None)
        return FakeResponse(body, status, headers)


# ── Processes ───────────────────────────────────────────────────────


class _LineStream:
    """Blocking readline() over lines fed by the test."""

    def __init__(self, lines: tuple[str, ...] = ()) -> None:
        self._q: queue.Queue[str] = queue.Queue()
        for line in lines:
            self._q.put(line + "\n")

    def readline(self) -> str:
        return self._q.get()

    def feed(self, line: str) -> None:
        self._q.put(line + "\n")

    def close(self) -> None:
        self._q.put("")


class _Stdin:
    def __init__(self) -> None:
        self.text = ""
        self.closed = False

    def write(self, data: str) -> int:
        self.text += data
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


_pids = itertools.count(4100)


class FakeProcess:
    """A server process living in a ProcessTable."""

    def __init__(
        self,
        table: ProcessTable,
        argv: list[str] | None = None,
        *,
        visible: bool = True,
        exit_code: int | None = None,
        stdout_lines: tuple[str, ...] = (),
        stderr_lines: tuple[str, ...] = (),
    ) -> None:
        self.args = argv or ["su"]
        self.pid = next(_pids)
        self.visible = visible
        self.returncode = exit_code
        self.stdin = _Stdin()
        self.stdout = _LineStream(stdout_lines)
        self.stderr = _LineStream(stderr_lines)
        self.terminated = False
        table.add(self)
        if exit_code is not None:
            self.stdout.close()
            self.stderr.close()

    @property
    def command(self) -> str:
        return self.stdin.text

    @property
    def alive(self) -> bool:
        return self.returncode is None

    def poll(self) -> int | None:
        return self.returncode

    def _exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self.stdout.close()
            self.stderr.close()

    def terminate(self) -> None:
        self.terminated = True
        self._exit(-15)

    def kill(self) -> None:
        self._exit(-9)

    def wait(self, timeout: float | None = None) -> int | None:
        return self.returncode


class ProcessTable:
    """All fake processes; ``pgrep`` sees the visible live ones."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.processes: list[FakeProcess] = []

    def add(self, proc: FakeProcess) -> None:
        with self._lock:
            self.processes.append(proc)

    def live(self) -> list[FakeProcess]:
        with self._lock:
            return [p for p in self.processes if p.alive]

    def visible_pids(self) -> list[int]:
        return [p.pid for p in self.live() if p.visible]

    def kill_visible(self) -> None:
        for proc in self.live():
            if proc.visible:
                proc.kill()


class FakePopen:
    """``subprocess.Popen`` replacement spawning FakeProcess objects.

    Modes:
        serve   process stays up and is found by pgrep
        exit    process exits at once with code 1
        hidden  process stays up but pgrep never finds it
    """

    def __init__(self, table: ProcessTable, mode: str = "serve",
                 stdout_lines: tuple[str, ...] = (), stderr_lines: tuple[str, ...] = ()):
        self.table = table
        self.mode = mode
        self.stdout_lines = stdout_lines
        self.stderr_lines = stderr_lines
        self.spawned: list[FakeProcess] = []

    def __call__(self, argv: list[str], **kwargs: Any) -> FakeProcess:
        proc = FakeProcess(
            self.table,
            argv,
            visible=self.mode == "serve",
            exit_code=1 if self.mode == "exit" else None,
            stdout_lines=self.stdout_lines,
            stderr_lines=self.stderr_lines,
        )
        self.spawned.append(proc)
        return proc


# ── Elevation ───────────────────────────────────────────────────────


class FakeExecutor(PrivilegedExecutor):
    """Scripted root shell.

    Understands ``id``/``id -u``, ``chmod`` (applied for real to the
    file), ``pgrep -x`` and ``pkill``/``killall`` against a ProcessTable.
    Everything else succeeds silently.
    """

    def __init__(
        self,
        *,
        root: bool = True,
        table: ProcessTable | None = None,
        chmod_ok: bool = True,
    ) -> None:
        super().__init__("su")
        self.root = root
        self.table = table or ProcessTable()
        self.chmod_ok = chmod_ok
        self.commands: list[str] = []

    def session_argv(self) -> list[str]:
        return ["su"]

    def available(self) -> bool:
        return self.root

    def run(self, command: str) -> CommandResult:
        self.commands.append(command)
        if not self.root:
            return CommandResult.failure(command, "Elevation unavailable: 'su' not found")

        if command == "id -u":
            return CommandResult(command=command, return_code=0, stdout="0\n")
        if command == "id":
            return CommandResult(command=command, return_code=0, stdout="uid=0(root) gid=0(root)\n")
        if command.startswith("chmod "):
            if not self.chmod_ok:
                return CommandResult(command=command, return_code=1,
                                     stderr="chmod: Operation not permitted\n")
            mode, path = shlex.split(command)[1:3]
            os.chmod(path, int(mode, 8))
            return CommandResult(command=command, return_code=0)
        if command.startswith("pgrep "):
            pids = self.table.visible_pids()
            return CommandResult(
                command=command,
                return_code=0 if pids else 1,
                stdout="".join(f"{pid}\n" for pid in pids),
            )
        if "pkill" in command or "killall" in command:
            self.table.kill_visible()
            return CommandResult(command=command, return_code=0)
        return CommandResult(command=command, return_code=0)


def install_fake_binary(config: Any, line: str = "16.2.1 (arm64)") -> None:
    """Put an executable binary and a record in the install dir."""
    config.install_path.mkdir(parents=True, exist_ok=True)
    config.binary_path.write_bytes(b"\x7fELF")
    config.binary_path.chmod(0o755)
    config.record_path.write_text(line + "\n")
