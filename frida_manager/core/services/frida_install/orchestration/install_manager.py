"""
L5 Orchestration — install, switch and remove the server binary.

Every mutating operation is a Flow: it runs on its own worker and
reports step-by-step progress, then exactly one success or error.
Queries (``is_installed`` and friends) are synchronous and touch only
the filesystem.

Install sequence (download path):
    stop server → root check → detect arch → installed short-circuit →
    remove previous install → resolve release → resolve asset →
    download → extract → chmod 755 → write record
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path
from typing import Any, Callable, Iterable

from frida_manager.core.errors import (
    AssetNotFound,
    ManualFileInvalid,
    NetworkError,
    PermissionSetupError,
    RootUnavailable,
)
from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.models.install import NOT_INSTALLED, InstallRecord
from frida_manager.core.models.release import ReleaseMetadata
from frida_manager.core.persistence.install_record import (
    delete_record,
    read_record,
    write_record,
)
from frida_manager.core.services.flow import Flow, FlowCallback, FlowReporter
from frida_manager.core.services.frida_install.detection.architecture import (
    detect_architecture,
)
from frida_manager.core.services.frida_install.execution.download import (
    download,
    format_file_size,
)
from frida_manager.core.services.frida_install.execution.extract import (
    extract,
    is_xz,
    stage_manual_file,
)
from frida_manager.core.services.frida_install.execution.privileged import PrivilegedExecutor
from frida_manager.core.services.frida_install.resolver.releases import ReleaseResolver

logger = logging.getLogger(__name__)


class InstallManager:
    """Installs frida-server into the configured install directory.

    Args:
        config: Manager configuration.
        executor: Privileged executor (root check, chmod).
        resolver: Release resolver; built from ``config`` when omitted.
        stop_server: Callable stopping any running server; every flow
            calls it first.
        arch_detector: Returns the device arch token.
        urlopen: Opener used for downloads (tests).
    """

    def __init__(
        self,
        config: ManagerConfig,
        executor: PrivilegedExecutor,
        *,
        resolver: ReleaseResolver | None = None,
        stop_server: Callable[[], Any] | None = None,
        arch_detector: Callable[[], str] = detect_architecture,
        urlopen: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config
        self._executor = executor
        self.resolver = resolver or ReleaseResolver(
            config.release_index_url,
            product_marker=config.product_marker,
            platform_marker=config.platform_marker,
            timeout=config.http_timeout,
        )
        self._stop_server = stop_server or (lambda: None)
        self._detect_arch = arch_detector
        self._urlopen = urlopen

    @property
    def executor(self) -> PrivilegedExecutor:
        return self._executor

    @property
    def binary_path(self) -> Path:
        return self.config.binary_path

    @property
    def record_path(self) -> Path:
        return self.config.record_path

    # ── Queries ─────────────────────────────────────────────────

    def is_installed(self) -> bool:
        """Binary present and executable, and a record next to it."""
        binary = self.binary_path
        return (
            binary.is_file()
            and os.access(binary, os.X_OK)
            and self.record_path.is_file()
        )

    def installed_record(self) -> InstallRecord | None:
        if not self.is_installed():
            return None
        return read_record(self.record_path)

    def installed_version(self) -> str | None:
        record = self.installed_record()
        return record.version if record else None

    def server_type(self) -> str:
        record = self.installed_record()
        return record.server_type if record else NOT_INSTALLED

    def info(self) -> dict[str, Any]:
        record = self.installed_record()
        return {
            "installed": record is not None,
            "binary": str(self.binary_path),
            "record": record.to_dict() if record else None,
            "server_type": record.server_type if record else NOT_INSTALLED,
        }

    # ── Flows ───────────────────────────────────────────────────

    def install_latest(
        self,
        force_redownload: bool = False,
        *,
        subscribers: Iterable[FlowCallback] = (),
    ) -> Flow:
        """Install the newest release (unless something is installed)."""
        return self._flow(
            lambda r: self._install(r, None, force_redownload), subscribers,
        )

    def install_from_release(
        self,
        release: ReleaseMetadata,
        force_redownload: bool = False,
        *,
        subscribers: Iterable[FlowCallback] = (),
    ) -> Flow:
        """Install a specific release picked by the caller."""
        return self._flow(
            lambda r: self._install(r, release, force_redownload), subscribers,
        )

    def install_from_manual_file(
        self,
        path: Path | str,
        *,
        subscribers: Iterable[FlowCallback] = (),
    ) -> Flow:
        """Install an operator-supplied binary or ``.xz`` archive."""
        return self._flow(lambda r: self._install_manual(r, Path(path)), subscribers)

    def switch_to_version(
        self,
        tag: str,
        force_redownload: bool = True,
        *,
        subscribers: Iterable[FlowCallback] = (),
    ) -> Flow:
        """Install ``tag`` after looking it up in the release index.

        Forced by default: switching means replacing whatever is there.
        """
        return self._flow(lambda r: self._switch(r, tag, force_redownload), subscribers)

    def uninstall(self, *, subscribers: Iterable[FlowCallback] = ()) -> Flow:
        """Stop the server and delete binary and record."""
        return Flow("uninstall", self._uninstall, subscribers=subscribers).start()

    def load_releases(
        self,
        limit: int | None = None,
        *,
        subscribers: Iterable[FlowCallback] = (),
    ) -> Flow:
        """Fetch the release list; the success event carries it as ``releases``."""
        limit = limit or self.config.release_limit

        def body(reporter: FlowReporter) -> None:
            reporter.progress("🌐 Loading available Frida versions...")
            releases = self.resolver.fetch_all(limit)
            reporter.success(
                f"Loaded {len(releases)} Frida versions",
                releases=[r.model_dump(mode="json") for r in releases],
            )

        return Flow("releases", body, subscribers=subscribers).start()

    def _flow(self, body: Callable[[FlowReporter], None], subscribers: Iterable[FlowCallback]) -> Flow:
        return Flow("install", body, subscribers=subscribers).start()

    # ── Flow bodies ─────────────────────────────────────────────

    def _prepare(self, reporter: FlowReporter) -> None:
        """Common preamble: stop the server, then require root."""
        reporter.progress("🛑 Stopping any running Frida server...")
        self._stop_server()

        reporter.progress("🔐 Checking root permissions...")
        if not self._executor.is_root_available():
            reporter.progress("❌ Root check failed - No root access")
            raise RootUnavailable("Root access is required but not available")
        reporter.progress("✅ Root access confirmed - Device is rooted")

    def _install(
        self,
        reporter: FlowReporter,
        release: ReleaseMetadata | None,
        force_redownload: bool,
    ) -> None:
        self._prepare(reporter)

        reporter.progress("📱 Detecting device architecture...")
        arch = self._detect_arch()
        reporter.progress(f"✅ Device architecture: {arch}")

        existing = self.installed_record()
        if existing is not None and not force_redownload:
            if release is None or existing.version == release.tag_name:
                reporter.progress(f"✅ Found existing server: {existing.line}")
                reporter.success(
                    f"✅ Frida server already installed! {existing.line}",
                    version=existing.version,
                    record=existing.line,
                    already_installed=True,
                )
                return

        if self.binary_path.exists() or self.record_path.exists():
            reporter.progress("🗑️ Removing existing installation...")
            self._remove_files()
            reporter.progress("✅ Previous installation removed")

        if release is None:
            reporter.progress("🌐 Fetching latest Frida release from GitHub...")
            release = self.resolver.fetch_latest()
            reporter.progress(f"✅ Latest Frida version found: {release.tag_name}")
        else:
            reporter.progress(f"✅ Selected Frida version: {release.tag_name}")

        reporter.progress(f"🔍 Finding matching server binary for {arch}...")
        url = self.resolver.resolve_asset(release, arch)
        if url is None:
            raise AssetNotFound(f"No matching server binary found for architecture: {arch}")
        reporter.progress("✅ Found matching binary for download")

        reporter.progress("📥 Starting download...")
        archive = download(
            url,
            self.config.download_path,
            reporter.download,
            timeout=self.config.http_timeout,
            urlopen=self._urlopen,
        )
        reporter.progress(f"✅ Download completed: {archive.name}")

        reporter.progress("📦 Extracting server binary...")
        extract(archive, self.binary_path)
        reporter.progress("✅ Extraction completed")

        self._make_executable(reporter)

        record = InstallRecord(label=release.tag_name, arch=arch)
        write_record(self.record_path, record)
        reporter.success(
            f"Frida server {release.tag_name} installed successfully!",
            version=release.tag_name,
            record=record.line,
            already_installed=False,
        )

    def _install_manual(self, reporter: FlowReporter, source: Path) -> None:
        self._prepare(reporter)

        if not source.is_file():
            raise ManualFileInvalid(f"Selected file does not exist: {source}")

        try:
            size = source.stat().st_size
        except OSError as e:
            raise ManualFileInvalid(f"Cannot read selected file: {e}") from e
        reporter.progress(f"📁 Processing: {source.name} ({format_file_size(size)})")

        if is_xz(source):
            reporter.progress("📦 Processing compressed file (.xz)...")
            reporter.progress("📦 Extracting server binary...")
        else:
            reporter.progress("📄 Processing raw binary file...")
        stage_manual_file(source, self.binary_path, self.config.install_path)
        reporter.progress("✅ File processing completed")

        self._make_executable(reporter)

        record = InstallRecord.manual(source.name)
        write_record(self.record_path, record)
        reporter.success(
            "✅ Frida server installed successfully from manual file!",
            version=record.version,
            record=record.line,
            already_installed=False,
        )

    def _switch(self, reporter: FlowReporter, tag: str, force_redownload: bool) -> None:
        reporter.progress(f"🔄 Switching to version {tag}...")
        release = self.resolver.find_release(tag, self.config.release_limit)
        if release is None:
            raise NetworkError(f"Version {tag} not found in releases", code="version_not_found")
        self._install(reporter, release, force_redownload)

    def _uninstall(self, reporter: FlowReporter) -> None:
        reporter.progress("🛑 Stopping any running Frida server...")
        self._stop_server()
        removed = self._remove_files()
        if removed:
            reporter.success("🗑️ Frida server uninstalled", removed=True)
        else:
            reporter.success("Nothing to uninstall", removed=False)

    # ── Helpers ─────────────────────────────────────────────────

    def _make_executable(self, reporter: FlowReporter) -> None:
        reporter.progress("🔧 Setting executable permissions...")
        path = shlex.quote(str(self.binary_path))
        result = self._executor.run(f"chmod 755 {path}")
        if not result.ok:
            detail = result.error or result.stderr.strip() or f"exit {result.return_code}"
            raise PermissionSetupError(f"Failed to set executable permissions: {detail}")
        if not os.access(self.binary_path, os.X_OK):
            detail = "binary is still not executable"
            raise PermissionSetupError(f"Failed to set executable permissions: {detail}")
        reporter.progress("✅ Permissions set successfully")

    def _remove_files(self) -> bool:
        removed = False
        try:
            self.binary_path.unlink()
            removed = True
        except FileNotFoundError:
            pass
        if delete_record(self.record_path):
            removed = True
        if removed:
            logger.info("Removed installation at %s", self.config.install_path)
        return removed
