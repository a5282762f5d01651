"""
L4 Execution — archive extraction and manual-file staging.

Everything that lands at the canonical binary path goes through a
``<binary>.partial`` staging file in the same directory and is then
``os.replace``-d into place, so a failure mid-way leaves either the
previous binary or nothing, never half a file.
"""

from __future__ import annotations

import logging
import lzma
import os
import shutil
from pathlib import Path

from frida_manager.core.errors import ExtractionError

logger = logging.getLogger(__name__)

MANUAL_TEMP_NAME = "temp-server.xz"
_BUFFER = 64 * 1024


def _staging_path(binary_path: Path) -> Path:
    return binary_path.with_name(binary_path.name + ".partial")


def extract(archive: Path, binary_path: Path) -> Path:
    """Decompress an xz archive into ``binary_path``.

    Raises:
        ExtractionError: Malformed archive or any I/O failure.
    """
    staging = _staging_path(binary_path)
    logger.info("Extracting %s → %s", archive, binary_path)
    try:
        binary_path.parent.mkdir(parents=True, exist_ok=True)
        with lzma.open(archive, "rb") as src, open(staging, "wb") as dst:
            shutil.copyfileobj(src, dst, _BUFFER)
        os.replace(staging, binary_path)
    except lzma.LZMAError as e:
        staging.unlink(missing_ok=True)
        raise ExtractionError(f"Malformed archive {archive.name}: {e}") from e
    except EOFError as e:
        staging.unlink(missing_ok=True)
        raise ExtractionError(f"Truncated archive {archive.name}") from e
    except OSError as e:
        staging.unlink(missing_ok=True)
        raise ExtractionError(f"Extraction failed: {e}") from e

    logger.info("Extracted %s (%d bytes)", binary_path.name, binary_path.stat().st_size)
    return binary_path


def copy_binary(source: Path, binary_path: Path) -> Path:
    """Copy a raw binary into place (staged, then replaced)."""
    staging = _staging_path(binary_path)
    try:
        binary_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, staging)
        os.replace(staging, binary_path)
    except OSError as e:
        staging.unlink(missing_ok=True)
        raise ExtractionError(f"Cannot copy {source.name}: {e}") from e
    return binary_path


def is_xz(path: Path) -> bool:
    return path.name.lower().endswith(".xz")


def stage_manual_file(source: Path, binary_path: Path, work_dir: Path) -> Path:
    """Install an operator-supplied file at ``binary_path``.

    ``.xz`` files (any case) are copied to ``temp-server.xz`` in
    ``work_dir`` and extracted; the temp copy is always removed.
    Anything else is treated as the raw binary.
    """
    if not is_xz(source):
        logger.info("Staging raw binary %s", source)
        return copy_binary(source, binary_path)

    temp = work_dir / MANUAL_TEMP_NAME
    try:
        work_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, temp)
    except OSError as e:
        temp.unlink(missing_ok=True)
        raise ExtractionError(f"Cannot copy {source.name}: {e}") from e

    try:
        return extract(temp, binary_path)
    finally:
        temp.unlink(missing_ok=True)
