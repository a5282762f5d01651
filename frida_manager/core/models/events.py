"""
Flow events — the progress/error protocol of every long-running operation.

A flow emits any number of ``progress`` and ``download`` events and
exactly one terminal event (``success`` or ``error``).
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FlowEventKind(StrEnum):
    """Event kinds emitted by a flow."""

    PROGRESS = "progress"
    DOWNLOAD = "download"
    ERROR = "error"
    SUCCESS = "success"


TERMINAL_KINDS = frozenset({FlowEventKind.ERROR, FlowEventKind.SUCCESS})


class FlowEvent(BaseModel):
    """One event on a flow's channel."""

    model_config = ConfigDict(frozen=True)

    flow_id: str
    flow: str                        # install, start, stop, releases
    kind: FlowEventKind
    seq: int = 0                     # per-flow ordering
    ts: float = Field(default_factory=time.time)
    message: str = ""

    # download
    percent: int | None = None       # None = total size unknown
    downloaded: int = 0
    total: int = 0

    # error / success
    code: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
