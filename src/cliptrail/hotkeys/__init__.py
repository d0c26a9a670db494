"""
Hotkey listeners and the input-capture permission they depend on.
"""

from cliptrail.hotkeys.base import (
    HotkeyBackend,
    KeyCombo,
    KeyEvent,
    ListenerHandle,
    LocalKeyFilter,
    PermissionBackend,
    history_hotkey,
)
from cliptrail.hotkeys.permissions import get_permission_backend

__all__ = [
    'HotkeyBackend',
    'KeyCombo',
    'KeyEvent',
    'ListenerHandle',
    'LocalKeyFilter',
    'PermissionBackend',
    'history_hotkey',
    'get_permission_backend',
    'get_hotkey_backend',
]


def get_hotkey_backend() -> HotkeyBackend:
    from cliptrail.hotkeys.keyboard_backend import KeyboardHotkeyBackend
    return KeyboardHotkeyBackend()
