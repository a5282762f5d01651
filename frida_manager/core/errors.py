"""
Error taxonomy — every recoverable failure the manager can report.

Flows never let these cross the worker boundary: they are caught by
the flow runner and converted into a single ``error`` event carrying
``str(exc)`` as the message and ``exc.code`` as the stable code.
"""

from __future__ import annotations


class ManagerError(Exception):
    """Base class for all frida-manager failures."""

    code: str = "manager_error"

    def __init__(self, message: str = "", *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class RootUnavailable(ManagerError):
    """The elevated session could not be opened or is not uid 0."""

    code = "root_unavailable"


class NetworkError(ManagerError):
    """Release index unreachable, non-2xx, or returned a malformed payload."""

    code = "network_error"


class AssetNotFound(ManagerError):
    """The release carries no asset for the detected architecture."""

    code = "asset_not_found"


class DownloadError(ManagerError):
    """Asset download failed or was truncated."""

    code = "download_error"


class ExtractionError(ManagerError):
    """The archive could not be decompressed into the binary path."""

    code = "extraction_error"


class PermissionSetupError(ManagerError):
    """chmod through the elevated session failed or left no exec bit."""

    code = "permission_setup_error"


class ProcessStartFailure(ManagerError):
    """The server binary is missing, exited early, or never appeared."""

    code = "process_start_failure"


class ManualFileInvalid(ManagerError):
    """The operator-supplied file does not exist or is unreadable."""

    code = "manual_file_invalid"


class InvalidTransition(ManagerError):
    """A flow was requested from a session state that forbids it."""

    code = "invalid_transition"


class ConfigError(ManagerError):
    """Raised when frida-manager.yml is unreadable or fails validation."""

    code = "config_error"
