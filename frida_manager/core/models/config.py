"""
Manager configuration — loaded from frida-manager.yml.

Every field has a working default so the manager runs without any
config file at all. Directory fields left unset are derived from
``data_dir``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_INDEX_URL = "https://api.github.com/repos/frida/frida"
DEFAULT_DATA_DIR = "~/.local/share/frida-manager"


class ManagerConfig(BaseModel):
    """Runtime configuration for the installer and process controller."""

    data_dir: Path = Field(default_factory=lambda: Path(DEFAULT_DATA_DIR))
    install_dir: Path | None = None        # default: <data_dir>/frida
    download_dir: Path | None = None       # default: <data_dir>/downloads
    preferences_file: Path | None = None   # default: <data_dir>/preferences.json

    # Release index
    release_index_url: str = DEFAULT_INDEX_URL
    product_marker: str = "frida-server"
    platform_marker: str = "android"
    release_limit: int = Field(default=50, ge=1, le=100)
    http_timeout: float = Field(default=30.0, gt=0)

    # Installed artefacts
    binary_name: str = "frida-server"
    record_name: str = "server-info.txt"

    # Elevation
    elevation_command: str = "su"
    root_check: Literal["id-u", "uid-text"] = "id-u"
    command_timeout: float = Field(default=30.0, gt=0)

    # Process supervision
    working_dir: Path = Path("/data/local/tmp")
    start_timeout: float = Field(default=10.0, gt=0)
    poll_interval: float = Field(default=0.5, gt=0)
    stop_grace_period: float = Field(default=0.5, ge=0)

    @field_validator("data_dir", "install_dir", "download_dir", "preferences_file")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @field_validator("release_index_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    # ── Derived paths ───────────────────────────────────────────

    @property
    def install_path(self) -> Path:
        return self.install_dir or self.data_dir / "frida"

    @property
    def download_path(self) -> Path:
        return self.download_dir or self.data_dir / "downloads"

    @property
    def preferences_path(self) -> Path:
        return self.preferences_file or self.data_dir / "preferences.json"

    @property
    def binary_path(self) -> Path:
        """Canonical location of the installed server executable."""
        return self.install_path / self.binary_name

    @property
    def record_path(self) -> Path:
        """Install record written next to the binary."""
        return self.install_path / self.record_name
