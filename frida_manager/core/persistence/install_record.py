"""
Install record file — one line next to the binary describing it.

The record is what turns "a file exists" into "a server is installed":
no record, no install.
"""

from __future__ import annotations

import logging
from pathlib import Path

from frida_manager.core.models.install import InstallRecord
from frida_manager.core.persistence.state_file import atomic_write_text

logger = logging.getLogger(__name__)


def read_record(path: Path) -> InstallRecord | None:
    """Read the install record, or None if absent, empty or unreadable."""
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        mtime = path.stat().st_mtime
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read install record %s: %s", path, e)
        return None

    first_line = text.splitlines()[0].strip() if text.strip() else ""
    if not first_line:
        return None
    return InstallRecord.parse(first_line, mtime=mtime)


def write_record(path: Path, record: InstallRecord) -> None:
    """Persist the record, replacing any previous one."""
    atomic_write_text(path, record.line + "\n", prefix=".record_")
    logger.info("Install record written: %s", record.line)


def delete_record(path: Path) -> bool:
    """Remove the record file. Returns True if one was deleted."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.info("Install record removed: %s", path)
    return True
