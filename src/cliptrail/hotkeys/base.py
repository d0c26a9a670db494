import itertools
import logging
import platform
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Tuple

logger = logging.getLogger(__name__)

Action = Callable[[], None]

_MODIFIER_ALIASES = {
    "command": "cmd",
    "super": "cmd",
    "meta": "cmd",
    "windows": "cmd",
    "control": "ctrl",
    "option": "alt",
}


def _normalise_modifiers(modifiers: Iterable[str]) -> FrozenSet[str]:
    return frozenset(_MODIFIER_ALIASES.get(m.lower(), m.lower()) for m in modifiers)


@dataclass(frozen=True)
class KeyEvent:
    """Key-down event delivered by the presentation layer."""
    key: str
    modifiers: FrozenSet[str] = frozenset()

    @classmethod
    def of(cls, key: str, *modifiers: str) -> "KeyEvent":
        return cls(key=key.lower(), modifiers=_normalise_modifiers(modifiers))


@dataclass(frozen=True)
class KeyCombo:
    key: str
    modifiers: FrozenSet[str]

    @classmethod
    def of(cls, key: str, *modifiers: str) -> "KeyCombo":
        return cls(key=key.lower(), modifiers=_normalise_modifiers(modifiers))

    def matches(self, event: KeyEvent) -> bool:
        return event.key == self.key and self.modifiers <= event.modifiers

    def to_keyboard_string(self) -> str:
        """Combination in the ``keyboard`` library's ``ctrl+shift+v`` syntax."""
        names = {"cmd": "command" if platform.system() == "Darwin" else "windows"}
        order = ("ctrl", "cmd", "alt", "shift")
        parts = [names.get(m, m) for m in order if m in self.modifiers]
        parts.extend(sorted(m for m in self.modifiers if m not in order))
        parts.append(self.key)
        return "+".join(parts)

    def __str__(self) -> str:
        return self.to_keyboard_string()


def history_hotkey() -> KeyCombo:
    """Primary modifier + Shift + V; the primary modifier is Cmd on macOS."""
    primary = "cmd" if platform.system() == "Darwin" else "ctrl"
    return KeyCombo.of("v", primary, "shift")


@dataclass(frozen=True)
class ListenerHandle:
    scope: str  # "local", "global" or "menu"
    combo: KeyCombo
    token: int


_handle_ids = itertools.count(1)


def next_handle(scope: str, combo: KeyCombo) -> ListenerHandle:
    return ListenerHandle(scope=scope, combo=combo, token=next(_handle_ids))


class LocalKeyFilter:
    """In-process key-event filter.

    The UI feeds every key-down through ``dispatch``; a matched combination
    runs its action and is reported as consumed so it never propagates.
    """

    def __init__(self) -> None:
        self._bindings: Dict[ListenerHandle, Action] = {}

    def add(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        handle = next_handle("local", combo)
        self._bindings[handle] = action
        return handle

    def remove(self, handle: ListenerHandle) -> bool:
        return self._bindings.pop(handle, None) is not None

    def dispatch(self, event: KeyEvent) -> bool:
        consumed = False
        for handle, action in list(self._bindings.items()):
            if handle.combo.matches(event):
                consumed = True
                try:
                    action()
                except Exception:
                    logger.exception("Local hotkey action failed for %s", handle.combo)
        return consumed

    def __len__(self) -> int:
        return len(self._bindings)


class HotkeyBackend(ABC):
    """Installs and removes key-event listeners.

    Install methods raise ``HotkeyRegistrationError`` on failure; removing a
    handle that is no longer installed is a no-op.
    """

    @abstractmethod
    def install_local_listener(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        pass

    @abstractmethod
    def install_global_listener(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        pass

    @abstractmethod
    def install_menu_shortcut(self, combo: KeyCombo, action: Action) -> ListenerHandle:
        pass

    @abstractmethod
    def uninstall_listener(self, handle: ListenerHandle) -> None:
        pass

    @abstractmethod
    def dispatch_local(self, event: KeyEvent) -> bool:
        pass

    @abstractmethod
    def menu_shortcuts(self) -> List[Tuple[KeyCombo, Action]]:
        pass


class PermissionBackend(ABC):
    """Input-capture (accessibility) permission of the current process."""

    @abstractmethod
    def is_granted(self) -> bool:
        """Raise ``PermissionQueryError`` if the state cannot be determined."""

    @abstractmethod
    def request(self) -> None:
        """Ask the OS to prompt the user; returns without waiting for an answer."""
