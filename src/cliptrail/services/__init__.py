"""Service layer for ClipTrail."""

from .autolaunch import AutoLaunchBackend, get_autolaunch_backend
from .clipboard_service import ClipboardPoller
from .history_service import HistoryStore, is_duplicate
from .permission_service import HotkeyRegistration, PermissionStateMachine
from .settings_service import SettingsService

__all__ = [
    "AutoLaunchBackend",
    "ClipboardPoller",
    "HistoryStore",
    "HotkeyRegistration",
    "PermissionStateMachine",
    "SettingsService",
    "get_autolaunch_backend",
    "is_duplicate",
]
