"""
L5 Orchestration — install flows composed from the lower layers.
"""

from frida_manager.core.services.frida_install.orchestration.install_manager import (  # noqa: F401
    InstallManager,
)
