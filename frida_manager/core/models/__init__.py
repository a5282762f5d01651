"""
Domain models — Pydantic types and snapshots for the manager.

All models are re-exported here for convenient access:

    from frida_manager.core.models import ReleaseMetadata, InstallRecord, SessionState
"""

from frida_manager.core.models.config import ManagerConfig
from frida_manager.core.models.detection import DetectionReport, DetectionResult, Severity
from frida_manager.core.models.events import FlowEvent, FlowEventKind
from frida_manager.core.models.install import InstallRecord
from frida_manager.core.models.preferences import Preferences
from frida_manager.core.models.release import Asset, ReleaseMetadata
from frida_manager.core.models.session import SessionState, SessionStatus

__all__ = [
    # release.py
    "Asset",
    # detection.py
    "DetectionReport",
    "DetectionResult",
    # events.py
    "FlowEvent",
    "FlowEventKind",
    # install.py
    "InstallRecord",
    # config.py
    "ManagerConfig",
    # preferences.py
    "Preferences",
    "ReleaseMetadata",
    # session.py
    "SessionState",
    "SessionStatus",
    "Severity",
]
