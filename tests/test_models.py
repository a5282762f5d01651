"""
Tests for core data models.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from frida_manager.core.errors import AssetNotFound, ManagerError, NetworkError
from frida_manager.core.models import (
    DetectionReport,
    DetectionResult,
    FlowEvent,
    FlowEventKind,
    InstallRecord,
    Preferences,
    ReleaseMetadata,
    SessionState,
    SessionStatus,
    Severity,
)
from frida_manager.core.models.config import ManagerConfig


class TestInstallRecord:
    """Tests for the install record line format."""

    def test_download_record(self):
        record = InstallRecord(label="16.2.1", arch="arm64")
        assert record.line == "16.2.1 (arm64)"
        assert record.version == "16.2.1"
        assert not record.is_manual
        assert record.server_type == "Downloaded: 16.2.1 (arm64)"

    def test_manual_record(self):
        record = InstallRecord.manual("custom-build")
        assert record.line == "Manual Installation (custom-build) (Unknown)"
        assert record.is_manual
        assert record.server_type == "Manual Installation (custom-build)"

    def test_parse_download_line(self):
        record = InstallRecord.parse("16.2.1 (arm64)\n")
        assert record.label == "16.2.1"
        assert record.arch == "arm64"

    def test_parse_manual_line_uses_last_group(self):
        record = InstallRecord.parse("Manual Installation (my (weird) build.xz) (Unknown)")
        assert record.label == "Manual Installation (my (weird) build.xz)"
        assert record.arch == "Unknown"

    def test_parse_bare_label(self):
        record = InstallRecord.parse("16.2.1")
        assert record.label == "16.2.1"
        assert record.arch == "Unknown"

    def test_parse_records_mtime(self):
        record = InstallRecord.parse("16.2.1 (arm)", mtime=0)
        assert record.installed_at == "1970-01-01T00:00:00+00:00"

    def test_parse_line_roundtrip(self):
        for line in ("16.2.1 (arm64)", "Manual Installation (frida-server) (Unknown)"):
            assert InstallRecord.parse(line).line == line


class TestReleaseMetadata:
    """Tests for release models."""

    def _release(self, **overrides) -> ReleaseMetadata:
        data = {
            "tag_name": "16.2.1",
            "assets": [
                {"name": "frida-server-16.2.1-android-arm64.xz", "browser_download_url": "https://x/1"},
                {"name": "frida-gadget-16.2.1-ios-universal.dylib.xz", "browser_download_url": "https://x/2"},
            ],
        }
        data.update(overrides)
        return ReleaseMetadata.model_validate(data)

    def test_name_defaults_to_tag(self):
        assert self._release(name=None).name == "16.2.1"

    def test_display_name(self):
        assert self._release().display_name == "16.2.1"
        assert self._release(prerelease=True).display_name == "16.2.1 (Pre-release)"

    def test_has_assets_for(self):
        assert self._release().has_assets_for("frida-server", "android")
        assert not self._release().has_assets_for("frida-server", "ios")

    def test_unknown_fields_ignored(self):
        assert self._release(draft=False, author={"login": "x"}).tag_name == "16.2.1"

    def test_frozen(self):
        with pytest.raises(ValidationError):
            self._release().tag_name = "other"  # type: ignore[misc]

    def test_to_dict(self):
        data = self._release().to_dict()
        assert data["tag_name"] == "16.2.1"
        assert data["assets"][0] == "frida-server-16.2.1-android-arm64.xz"


class TestFlowEvent:
    """Tests for flow events."""

    def test_terminal_kinds(self):
        make = lambda kind: FlowEvent(flow_id="f", flow="install", kind=kind)  # noqa: E731
        assert make(FlowEventKind.SUCCESS).terminal
        assert make(FlowEventKind.ERROR).terminal
        assert not make(FlowEventKind.PROGRESS).terminal
        assert not make(FlowEventKind.DOWNLOAD).terminal

    def test_to_dict_is_json_ready(self):
        event = FlowEvent(flow_id="f", flow="install", kind=FlowEventKind.DOWNLOAD, percent=None)
        data = event.to_dict()
        assert data["kind"] == "download"
        assert data["percent"] is None


class TestSessionState:
    """Tests for the session snapshot."""

    def test_defaults(self):
        state = SessionState()
        assert state.status == SessionStatus.IDLE
        assert state.messages == ()
        assert state.server_type == "Unknown"
        assert not state.busy

    def test_busy(self):
        assert SessionState(status=SessionStatus.INSTALLING).busy
        assert SessionState(status=SessionStatus.SERVER_STARTING).busy
        assert not SessionState(status=SessionStatus.SERVER_RUNNING).busy

    def test_to_dict(self):
        data = SessionState(messages=("a",), status=SessionStatus.ERROR).to_dict()
        assert data["status"] == "error"
        assert data["messages"] == ["a"]


class TestPreferencesModel:
    """Tests for preference validation."""

    def test_defaults(self):
        prefs = Preferences()
        assert prefs.server_port == 27042
        assert prefs.auto_start_enabled is False
        assert prefs.dark_theme is True
        assert prefs.saved_versions == []

    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_port_range(self, port: int):
        with pytest.raises(ValidationError):
            Preferences(server_port=port)

    def test_saved_versions_are_a_sorted_set(self):
        prefs = Preferences(saved_versions=["16.2.1", "15.0.0", "16.2.1", " ", ""])
        assert prefs.saved_versions == ["15.0.0", "16.2.1"]


class TestDetectionReport:
    """Tests for detection report aggregation."""

    def test_clean(self):
        report = DetectionReport(results=[DetectionResult(technique="a")])
        assert report.threat_level == "Clean"
        assert report.detection_count == 0
        assert report.max_severity == Severity.LOW

    def test_worst_severity_wins(self):
        report = DetectionReport(results=[
            DetectionResult(technique="a", detected=True, severity=Severity.HIGH),
            DetectionResult(technique="b", detected=True, severity=Severity.CRITICAL),
            DetectionResult(technique="c", detected=False, severity=Severity.CRITICAL),
        ])
        assert report.detection_count == 2
        assert report.max_severity == Severity.CRITICAL
        assert report.threat_level == "Critical"
        assert report.to_dict()["total_checks"] == 3

    def test_medium(self):
        report = DetectionReport(results=[
            DetectionResult(technique="a", detected=True, severity=Severity.MEDIUM),
        ])
        assert report.threat_level == "Medium Risk"


class TestErrors:
    """Tests for the error taxonomy."""

    def test_codes(self):
        assert AssetNotFound("x").code == "asset_not_found"
        assert NetworkError("x").code == "network_error"

    def test_code_override(self):
        err = NetworkError("Version 1.0 not found", code="version_not_found")
        assert err.code == "version_not_found"
        assert NetworkError("x").code == "network_error"
        assert isinstance(err, ManagerError)
        assert err.message == "Version 1.0 not found"


class TestManagerConfig:
    """Tests for derived config paths."""

    def test_derived_paths(self, tmp_path):
        config = ManagerConfig(data_dir=tmp_path)
        assert config.install_path == tmp_path / "frida"
        assert config.binary_path == tmp_path / "frida" / "frida-server"
        assert config.record_path == tmp_path / "frida" / "server-info.txt"
        assert config.download_path == tmp_path / "downloads"
        assert config.preferences_path == tmp_path / "preferences.json"

    def test_explicit_dirs_win(self, tmp_path):
        config = ManagerConfig(data_dir=tmp_path, install_dir=tmp_path / "bin")
        assert config.binary_path == tmp_path / "bin" / "frida-server"

    def test_index_url_trailing_slash(self):
        assert ManagerConfig(release_index_url="https://x/repos/a/b/").release_index_url == (
            "https://x/repos/a/b"
        )

    def test_invalid_root_check(self):
        with pytest.raises(ValidationError):
            ManagerConfig(root_check="whoami")
