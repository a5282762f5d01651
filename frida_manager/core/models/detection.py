"""
Detection models — results of an instrumentation-detection scan.

The manager only consumes these (to show the operator whether the
running server is visible from the device); it does not judge them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

_SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class Severity(StrEnum):
    """How loud a single finding is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]


class DetectionResult(BaseModel):
    """Outcome of one detection technique."""

    technique: str
    detected: bool = False
    details: str = "Clean"
    severity: Severity = Severity.LOW
    raw_data: list[str] = Field(default_factory=list)


class DetectionReport(BaseModel):
    """Aggregate of a full scan."""

    results: list[DetectionResult] = Field(default_factory=list)
    scan_duration_ms: int = 0

    @property
    def total_checks(self) -> int:
        return len(self.results)

    @property
    def detection_count(self) -> int:
        return sum(1 for r in self.results if r.detected)

    @property
    def max_severity(self) -> Severity:
        detected = [r.severity for r in self.results if r.detected]
        if not detected:
            return Severity.LOW
        return max(detected, key=lambda s: s.rank)

    @property
    def threat_level(self) -> str:
        if self.detection_count == 0:
            return "Clean"
        return {
            Severity.CRITICAL: "Critical",
            Severity.HIGH: "High Risk",
            Severity.MEDIUM: "Medium Risk",
        }.get(self.max_severity, "Low Risk")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_checks": self.total_checks,
            "detection_count": self.detection_count,
            "max_severity": str(self.max_severity),
            "threat_level": self.threat_level,
            "scan_duration_ms": self.scan_duration_ms,
            "results": [r.model_dump(mode="json") for r in self.results],
        }
