"""Exception hierarchy for ClipTrail.

Platform backends raise these; the services catch them at well defined seams
and degrade to a reduced-functionality mode instead of stopping the process.
"""

from typing import Any

__all__ = [
    "ClipTrailError",
    "ClipboardAccessError",
    "PlatformError",
    "PermissionQueryError",
    "HotkeyRegistrationError",
    "AutoLaunchError",
    "SettingsError",
]


class ClipTrailError(Exception):
    """Base exception for all ClipTrail-specific errors."""

    def __init__(self, message: str = "", *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ClipboardAccessError(ClipTrailError):
    """The host clipboard could not be read or written."""


class PlatformError(ClipTrailError):
    """An OS facility failed in a way the engine cannot recover from by itself."""


class PermissionQueryError(PlatformError):
    """The input-capture permission state could not be determined."""


class HotkeyRegistrationError(PlatformError):
    """A key-event listener could not be installed or removed."""


class AutoLaunchError(PlatformError):
    """Login-item registration failed."""


class SettingsError(ClipTrailError):
    """Persisted settings could not be loaded or saved."""
