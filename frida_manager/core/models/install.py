"""
InstallRecord — what is currently installed, and where it came from.

Persisted as a single line ``"<label> (<arch>)"`` in the record file
next to the binary. The label is either a release tag or
``"Manual Installation (<filename>)"``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

UNKNOWN_ARCH = "Unknown"
MANUAL_PREFIX = "Manual Installation"
NOT_INSTALLED = "Unknown"


class InstallRecord(BaseModel):
    """The record describing the installed server binary."""

    model_config = ConfigDict(frozen=True)

    label: str
    arch: str = UNKNOWN_ARCH
    installed_at: str | None = None  # ISO timestamp from the record's mtime

    @classmethod
    def manual(cls, filename: str) -> InstallRecord:
        return cls(label=f"{MANUAL_PREFIX} ({filename})", arch=UNKNOWN_ARCH)

    @classmethod
    def parse(cls, line: str, *, mtime: float | None = None) -> InstallRecord:
        """Parse the first line of a record file.

        The arch is the last parenthesised group; anything without one
        is treated as a bare label with an unknown arch.
        """
        line = line.strip()
        label, arch = line, UNKNOWN_ARCH
        if line.endswith(")") and " (" in line:
            head, _, tail = line[:-1].rpartition(" (")
            if head:
                label, arch = head, tail
        installed_at = (
            datetime.fromtimestamp(mtime, UTC).isoformat() if mtime is not None else None
        )
        return cls(label=label, arch=arch, installed_at=installed_at)

    @property
    def line(self) -> str:
        return f"{self.label} ({self.arch})"

    @property
    def version(self) -> str:
        """First whitespace-delimited token of the record line."""
        return self.line.split()[0]

    @property
    def is_manual(self) -> bool:
        return self.label.startswith(MANUAL_PREFIX)

    @property
    def server_type(self) -> str:
        if self.is_manual:
            return self.label
        return f"Downloaded: {self.line}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "arch": self.arch,
            "line": self.line,
            "version": self.version,
            "server_type": self.server_type,
            "installed_at": self.installed_at,
        }
