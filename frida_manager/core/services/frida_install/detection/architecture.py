"""
L3 Detection — device architecture.

Maps the device ABI (Android ``ro.product.cpu.abi``) or the kernel
machine name to the architecture token used in release asset names.
Read-only, no elevation.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess

logger = logging.getLogger(__name__)

# ABI / uname -m → asset arch token
_ARCH_MAP: dict[str, str] = {
    # Android ABIs
    "arm64-v8a": "arm64",
    "armeabi-v7a": "arm",
    "armeabi": "arm",
    "x86": "x86",
    "x86_64": "x86_64",
    # uname -m
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv8l": "arm",
    "i386": "x86",
    "i686": "x86",
    "amd64": "x86_64",
}

SUPPORTED_ARCHES = ("arm64", "arm", "x86", "x86_64")


def normalize_arch(abi: str) -> str:
    """Translate an ABI or machine name to an asset arch token.

    Unknown names pass through unchanged, so the asset lookup fails
    loudly instead of picking a wrong binary.
    """
    key = abi.strip().lower()
    return _ARCH_MAP.get(key, key)


def _android_abi() -> str | None:
    """Primary ABI from the Android property store, if available."""
    if shutil.which("getprop") is None:
        return None
    try:
        result = subprocess.run(
            ["getprop", "ro.product.cpu.abi"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("getprop failed: %s", e)
        return None
    abi = result.stdout.strip()
    return abi or None


def detect_architecture() -> str:
    """Detect the device architecture token (arm64, arm, x86, x86_64)."""
    abi = _android_abi() or platform.machine()
    arch = normalize_arch(abi)
    logger.debug("Device ABI %s → arch %s", abi, arch)
    return arch
