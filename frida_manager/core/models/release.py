"""
Release models — what the release index tells us about a build.

Parsed straight from the GitHub releases API payload; unknown keys
are ignored so the index can grow fields without breaking us.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Asset(BaseModel):
    """A downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True)

    name: str
    browser_download_url: str
    size: int = 0


class ReleaseMetadata(BaseModel):
    """One published release.

    ``tag_name`` is the identity: two releases with the same tag are
    the same release. ``name`` falls back to the tag when the index
    sends ``null`` or omits it.
    """

    model_config = ConfigDict(frozen=True)

    tag_name: str
    name: str = ""
    published_at: str | None = None
    prerelease: bool = False
    assets: tuple[Asset, ...] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": data.get("tag_name", "")}
        return data

    @property
    def display_name(self) -> str:
        if self.prerelease:
            return f"{self.tag_name} (Pre-release)"
        return self.tag_name

    def has_assets_for(self, product_marker: str, platform_marker: str) -> bool:
        """True if any asset name contains both markers."""
        return any(
            product_marker in a.name and platform_marker in a.name
            for a in self.assets
        )

    def find_asset(self, name: str) -> Asset | None:
        """Exact-name asset lookup."""
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag_name": self.tag_name,
            "name": self.name,
            "display_name": self.display_name,
            "published_at": self.published_at,
            "prerelease": self.prerelease,
            "assets": [a.name for a in self.assets],
        }
