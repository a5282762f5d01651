"""
L3 Detection — read-only probes of the device.
"""

from frida_manager.core.services.frida_install.detection.architecture import (  # noqa: F401
    SUPPORTED_ARCHES,
    detect_architecture,
    normalize_arch,
)
