"""
Boot hook — start the server after the device boots, if enabled.

Wired to ``frida-manager boot`` so an init script (or a Magisk
service.d entry) can call it once the system is up.
"""

from __future__ import annotations

import logging

from frida_manager.core.services.flow import Flow
from frida_manager.core.services.preferences import PreferencesStore
from frida_manager.core.services.process_controller import ProcessController

logger = logging.getLogger(__name__)


def on_boot_completed(
    preferences: PreferencesStore,
    controller: ProcessController,
) -> Flow | None:
    """Start the server on the saved port when auto-start is on.

    Returns the start flow, or None when auto-start is disabled.
    """
    if not preferences.auto_start_enabled:
        logger.info("Boot completed — auto-start disabled")
        return None

    port = preferences.server_port
    logger.info("Boot completed — auto-starting Frida server on port %d", port)
    return controller.start(port)
