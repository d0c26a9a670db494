"""Hotkey backend built on the ``keyboard`` library.

Global listeners are system-wide ``keyboard`` hotkeys registered without
suppression, so the keystroke still reaches the focused application. Local
listeners live in a ``LocalKeyFilter`` fed by the presentation layer, and
menu shortcuts are kept in a registry the menu builder reads.
"""

import logging
from typing import Any, Dict, List, Tuple

import keyboard

from cliptrail.exceptions import HotkeyRegistrationError
from cliptrail.hotkeys.base import (
    Action,
    HotkeyBackend,
    KeyCombo,
    KeyEvent,
    ListenerHandle,
    LocalKeyFilter,
    next_handle,
)

logger = logging.getLogger(__name__)


class KeyboardHotkeyBackend(HotkeyBackend):

    def __init__(self) -> None:
        self.local_filter = LocalKeyFilter()
        self._global_refs: Dict[ListenerHandle, Any] = {}
        self._menu: Dict[ListenerHandle, Action] = {}

    def install_local_listener(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        return self.local_filter.add(combo, action)

    def install_global_listener(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        try:
            ref = keyboard.add_hotkey(combo.to_keyboard_string(), action, suppress=False)
        except Exception as e:
            # keyboard raises ImportError/OSError when it cannot hook input devices
            raise HotkeyRegistrationError(f"Cannot register global hotkey {combo}: {e}") from e
        handle = next_handle("global", combo)
        self._global_refs[handle] = ref
        logger.debug("Global hotkey %s registered", combo)
        return handle

    def install_menu_shortcut(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        handle = next_handle("menu", combo)
        self._menu[handle] = action
        return handle

    def uninstall_listener(self, handle: ListenerHandle) -> None:
        if handle.scope == "local":
            self.local_filter.remove(handle)
        elif handle.scope == "menu":
            self._menu.pop(handle, None)
        elif handle.scope == "global":
            ref = self._global_refs.pop(handle, None)
            if ref is None:
                return
            try:
                keyboard.remove_hotkey(ref)
            except (KeyError, ValueError):
                logger.debug("Global hotkey %s was already removed", handle.combo)
            except Exception as e:
                raise HotkeyRegistrationError(f"Cannot remove global hotkey {handle.combo}: {e}") from e

    def dispatch_local(self, event: KeyEvent) -> bool:
        return self.local_filter.dispatch(event)

    def menu_shortcuts(self) -> List[Tuple[KeyCombo, Action]]:
        return [(handle.combo, action) for handle, action in self._menu.items()]
