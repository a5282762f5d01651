"""
Preferences — operator settings persisted across runs.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_SERVER_PORT = 27042


class Preferences(BaseModel):
    """Persisted operator preferences."""

    server_port: int = Field(default=DEFAULT_SERVER_PORT, ge=1, le=65535)
    auto_start_enabled: bool = False
    dark_theme: bool = True
    saved_versions: list[str] = Field(default_factory=list)

    @field_validator("saved_versions")
    @classmethod
    def _as_sorted_set(cls, value: list[str]) -> list[str]:
        return sorted({v.strip() for v in value if v and v.strip()})
