"""
L2 Resolver — release index lookups.

Talks to the GitHub releases API (or anything that speaks its JSON):

    GET <index>/releases/latest
    GET <index>/releases?per_page=<limit>

and maps a (release, arch) pair to the exact asset URL. Asset lookup
is exact-name only, never fuzzy: a missing asset is ``None``.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Any, Callable

from pydantic import ValidationError

from frida_manager import __version__
from frida_manager.core.errors import NetworkError
from frida_manager.core.models.config import DEFAULT_INDEX_URL
from frida_manager.core.models.release import ReleaseMetadata

logger = logging.getLogger(__name__)

Opener = Callable[..., Any]

_HEADERS = {
    "Accept": "application/vnd.github.v3+json",
    "User-Agent": f"frida-manager/{__version__}",
}


class ReleaseResolver:
    """Fetches release metadata and resolves per-arch asset URLs.

    Args:
        index_url: Base URL of the repository API
            (``https://api.github.com/repos/frida/frida``).
        product_marker: Substring every server asset name carries.
        platform_marker: Substring selecting the target platform.
        timeout: HTTP timeout in seconds.
        urlopen: Callable with ``urllib.request.urlopen``'s signature.
    """

    def __init__(
        self,
        index_url: str = DEFAULT_INDEX_URL,
        *,
        product_marker: str = "frida-server",
        platform_marker: str = "android",
        timeout: float = 30.0,
        urlopen: Opener | None = None,
    ) -> None:
        self.index_url = index_url.rstrip("/")
        self.product_marker = product_marker
        self.platform_marker = platform_marker
        self.timeout = timeout
        self._urlopen = urlopen or urllib.request.urlopen

    # ── Index queries ───────────────────────────────────────────

    def fetch_latest(self) -> ReleaseMetadata:
        """Most recent non-draft release."""
        data = self._get_json("/releases/latest")
        if not isinstance(data, dict):
            raise NetworkError("Unexpected response for latest release: expected an object")
        release = self._parse(data)
        logger.info("Latest release: %s (%d assets)", release.tag_name, len(release.assets))
        return release

    def fetch_all(self, limit: int = 50) -> list[ReleaseMetadata]:
        """Up to ``limit`` releases that carry at least one matching asset."""
        data = self._get_json(f"/releases?per_page={limit}")
        if not isinstance(data, list):
            raise NetworkError("Unexpected response for release list: expected an array")

        releases: list[ReleaseMetadata] = []
        for item in data:
            if not isinstance(item, dict):
                raise NetworkError("Unexpected release entry in list")
            release = self._parse(item)
            if release.has_assets_for(self.product_marker, self.platform_marker):
                releases.append(release)

        logger.info("Fetched %d releases (%d with %s assets)",
                    len(data), len(releases), self.platform_marker)
        return releases

    def find_release(self, tag: str, limit: int = 50) -> ReleaseMetadata | None:
        """Look up ``tag`` among the most recent releases."""
        for release in self.fetch_all(limit):
            if release.tag_name == tag:
                return release
        return None

    # ── Asset resolution ────────────────────────────────────────

    def asset_name(self, tag: str, arch: str) -> str:
        """``frida-server-<tag>-android-<arch>.xz``"""
        return f"{self.product_marker}-{tag}-{self.platform_marker}-{arch}.xz"

    def resolve_asset(self, release: ReleaseMetadata, arch: str) -> str | None:
        """Download URL of the asset for ``arch``, or None."""
        expected = self.asset_name(release.tag_name, arch)
        asset = release.find_asset(expected)
        if asset is None:
            logger.info("No asset %s in release %s", expected, release.tag_name)
            return None
        return asset.browser_download_url

    # ── HTTP ────────────────────────────────────────────────────

    def _get_json(self, path: str) -> Any:
        url = f"{self.index_url}{path}"
        req = urllib.request.Request(url, headers=_HEADERS)
        logger.debug("GET %s", url)
        try:
            with self._urlopen(req, timeout=self.timeout) as resp:
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise NetworkError(f"Release index returned HTTP {status} for {url}")
                body = resp.read()
        except urllib.error.HTTPError as e:
            raise NetworkError(f"Release index returned HTTP {e.code} for {url}") from e
        except urllib.error.URLError as e:
            raise NetworkError(f"Cannot reach release index: {e.reason}") from e
        except (OSError, TimeoutError) as e:
            raise NetworkError(f"Cannot reach release index: {e}") from e

        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise NetworkError(f"Malformed JSON from release index: {e}") from e

    @staticmethod
    def _parse(data: dict[str, Any]) -> ReleaseMetadata:
        try:
            return ReleaseMetadata.model_validate(data)
        except ValidationError as e:
            raise NetworkError(f"Malformed release payload: {e.error_count()} invalid field(s)") from e
