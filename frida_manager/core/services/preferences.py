"""
Preferences store — operator settings with write-through persistence.

Every setter saves immediately; there is no separate "commit".
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from frida_manager.core.models.preferences import Preferences
from frida_manager.core.persistence.state_file import load_preferences, save_preferences

logger = logging.getLogger(__name__)


class PreferencesStore:
    """Thread-safe wrapper around the preferences file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._prefs = load_preferences(path)

    def snapshot(self) -> Preferences:
        with self._lock:
            return self._prefs.model_copy(deep=True)

    def to_dict(self) -> dict[str, Any]:
        return self.snapshot().model_dump(mode="json")

    def _update(self, **changes: Any) -> Preferences:
        with self._lock:
            data = self._prefs.model_dump()
            data.update(changes)
            prefs = Preferences.model_validate(data)
            save_preferences(prefs, self.path)
            self._prefs = prefs
            logger.debug("Preferences updated: %s", ", ".join(changes))
            return prefs.model_copy(deep=True)

    # ── Accessors ───────────────────────────────────────────────

    @property
    def server_port(self) -> int:
        with self._lock:
            return self._prefs.server_port

    def set_server_port(self, port: int) -> Preferences:
        return self._update(server_port=port)

    @property
    def auto_start_enabled(self) -> bool:
        with self._lock:
            return self._prefs.auto_start_enabled

    def set_auto_start(self, enabled: bool) -> Preferences:
        return self._update(auto_start_enabled=enabled)

    @property
    def dark_theme(self) -> bool:
        with self._lock:
            return self._prefs.dark_theme

    def set_dark_theme(self, enabled: bool) -> Preferences:
        return self._update(dark_theme=enabled)

    # ── Saved versions ──────────────────────────────────────────

    @property
    def saved_versions(self) -> list[str]:
        with self._lock:
            return list(self._prefs.saved_versions)

    def add_saved_version(self, tag: str) -> Preferences:
        return self._update(saved_versions=[*self.saved_versions, tag])

    def remove_saved_version(self, tag: str) -> Preferences:
        return self._update(saved_versions=[v for v in self.saved_versions if v != tag])

    def is_version_saved(self, tag: str) -> bool:
        return tag in self.saved_versions
