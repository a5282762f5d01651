"""
Preferences file persistence — atomic read/write for Preferences.

Preferences are stored as JSON (``<data_dir>/preferences.json`` by
default). Writes go to a temp file in the same directory and are then
renamed over the target, so a crash mid-write never leaves a
truncated file behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from frida_manager.core.models.preferences import Preferences

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, *, prefix: str = ".tmp_") -> None:
    """Write ``content`` to ``path`` via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def load_preferences(path: Path) -> Preferences:
    """Load preferences from a JSON file.

    Returns defaults when the file is missing or unreadable; a corrupt
    preferences file should never stop the manager from starting.
    """
    if not path.is_file():
        logger.debug("No preferences at %s — using defaults", path)
        return Preferences()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        prefs = Preferences.model_validate(data)
        logger.debug("Loaded preferences from %s", path)
        return prefs
    except json.JSONDecodeError as e:
        logger.warning("Corrupt preferences file %s: %s — using defaults", path, e)
        return Preferences()
    except Exception as e:
        logger.warning("Cannot load preferences from %s: %s — using defaults", path, e)
        return Preferences()


def save_preferences(prefs: Preferences, path: Path) -> None:
    """Save preferences to a JSON file (atomic write)."""
    content = json.dumps(prefs.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"
    try:
        atomic_write_text(path, content, prefix=".prefs_")
        logger.debug("Preferences saved to %s", path)
    except OSError as e:
        logger.error("Failed to save preferences to %s: %s", path, e)
        raise
