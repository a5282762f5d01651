"""
L4 Execution — streaming asset download.

Downloads a release asset into the download directory, reporting
progress after every chunk. The file is named after the URL's last
path segment; a previous partial file with the same name is simply
overwritten.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any, Callable

from frida_manager import __version__
from frida_manager.core.errors import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

# (percent | None, downloaded_bytes, total_bytes)
ProgressCallback = Callable[[int | None, int, int], None]
Opener = Callable[..., Any]


def filename_from_url(url: str) -> str:
    """Trailing path segment of ``url`` (``frida-server-16.2.1-android-arm64.xz``)."""
    name = Path(urllib.parse.unquote(urllib.parse.urlparse(url).path)).name
    if not name:
        raise DownloadError(f"Cannot derive a file name from {url}")
    return name


def download(
    url: str,
    dest_dir: Path,
    on_progress: ProgressCallback | None = None,
    *,
    timeout: float = 60.0,
    urlopen: Opener | None = None,
) -> Path:
    """Stream ``url`` into ``dest_dir``.

    Progress is reported after every chunk. ``percent`` is only given
    when the server announced a Content-Length; it is clamped to
    [0, 100] and never goes backwards.

    Returns:
        Path of the downloaded file.

    Raises:
        DownloadError: Non-2xx status, transport or disk failure, or
            a body shorter than its Content-Length.
    """
    opener = urlopen or urllib.request.urlopen
    target = dest_dir / filename_from_url(url)
    req = urllib.request.Request(url, headers={"User-Agent": f"frida-manager/{__version__}"})

    logger.info("Downloading %s → %s", url, target)
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        with opener(req, timeout=timeout) as resp:
            status = getattr(resp, "status", 200)
            if not 200 <= status < 300:
                raise DownloadError(f"Download failed: HTTP {status}")

            total = _content_length(resp)
            downloaded = 0
            last_percent = 0

            with open(target, "wb") as fh:
                while True:
                    chunk = resp.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    fh.write(chunk)
                    downloaded += len(chunk)

                    percent: int | None = None
                    if total > 0:
                        percent = min(100, max(last_percent, downloaded * 100 // total))
                        last_percent = percent
                    if on_progress is not None:
                        on_progress(percent, downloaded, total)

    except urllib.error.HTTPError as e:
        raise DownloadError(f"Download failed: HTTP {e.code}") from e
    except urllib.error.URLError as e:
        raise DownloadError(f"Download failed: {e.reason}") from e
    except OSError as e:
        raise DownloadError(f"Download failed: {e}") from e

    if total > 0 and downloaded < total:
        raise DownloadError(
            f"Download truncated: received {downloaded} of {total} bytes"
        )

    logger.info("Downloaded %s (%d bytes)", target.name, downloaded)
    return target


def _content_length(resp: Any) -> int:
    headers = getattr(resp, "headers", None)
    raw = headers.get("Content-Length") if headers is not None else None
    try:
        return max(0, int(raw)) if raw else 0
    except (TypeError, ValueError):
        return 0


def format_file_size(size: int) -> str:
    """Human-readable size: B, KB or MB."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size // 1024} KB"
    return f"{size // (1024 * 1024)} MB"
