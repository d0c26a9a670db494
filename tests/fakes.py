"""Deterministic stand-ins for the platform capabilities."""

import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.exceptions import (
    AutoLaunchError,
    ClipboardAccessError,
    HotkeyRegistrationError,
    PermissionQueryError,
)
from cliptrail.hotkeys.base import (
    HotkeyBackend,
    KeyCombo,
    KeyEvent,
    ListenerHandle,
    LocalKeyFilter,
    PermissionBackend,
    next_handle,
)
from cliptrail.services.autolaunch import AutoLaunchBackend


class FakeClipboard(ClipboardBackend):
    """Clipboard with typed slots; every ``copy_*`` bumps the change token."""

    def __init__(self) -> None:
        self.token = 100
        self.text: Optional[str] = None
        self.image: Optional[bytes] = None
        self.files: List[str] = []
        self.writes: List[Tuple[str, object]] = []
        self.prepare_calls = 0
        self.fail_reads = False
        self.write_threads: List[str] = []

    def _changed(self) -> None:
        self.token += 1

    def copy_text(self, text: str) -> None:
        self.text, self.image, self.files = text, None, []
        self._changed()

    def copy_image(self, data: bytes) -> None:
        self.text, self.image, self.files = None, data, []
        self._changed()

    def copy_files(self, paths: Sequence[str]) -> None:
        self.text, self.image, self.files = None, None, list(paths)
        self._changed()

    def copy_nothing(self) -> None:
        self.text, self.image, self.files = None, None, []
        self._changed()

    def prepare(self) -> int:
        self.prepare_calls += 1
        return self.change_token()

    def change_token(self) -> int:
        if self.fail_reads:
            raise ClipboardAccessError("clipboard locked")
        return self.token

    def read_text(self) -> Optional[str]:
        return self.text

    def read_image(self) -> Optional[bytes]:
        return self.image

    def read_files(self) -> List[str]:
        return list(self.files)

    def write_text(self, text: str) -> None:
        self.write_threads.append(threading.current_thread().name)
        self.writes.append(("text", text))
        self.copy_text(text)

    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        self.writes.append(("image", data))
        self.copy_image(data)

    def write_files(self, paths: Sequence[str]) -> None:
        self.writes.append(("files", tuple(paths)))
        self.copy_files(paths)


class FakeHotkeys(HotkeyBackend):
    """Tracks installed listeners per scope and every install ever made."""

    def __init__(self) -> None:
        self.local_filter = LocalKeyFilter()
        self.globals: Dict[ListenerHandle, Callable[[], None]] = {}
        self.menus: Dict[ListenerHandle, Callable[[], None]] = {}
        self.installs: List[str] = []
        self.fail_global = False

    def install_local_listener(self, combo: KeyCombo, action) -> ListenerHandle:
        self.installs.append("local")
        return self.local_filter.add(combo, action)

    def install_global_listener(self, combo: KeyCombo, action) -> ListenerHandle:
        if self.fail_global:
            raise HotkeyRegistrationError("input devices not readable")
        self.installs.append("global")
        handle = next_handle("global", combo)
        self.globals[handle] = action
        return handle

    def install_menu_shortcut(self, combo: KeyCombo, action) -> ListenerHandle:
        self.installs.append("menu")
        handle = next_handle("menu", combo)
        self.menus[handle] = action
        return handle

    def uninstall_listener(self, handle: ListenerHandle) -> None:
        if handle.scope == "local":
            self.local_filter.remove(handle)
        elif handle.scope == "global":
            self.globals.pop(handle, None)
        else:
            self.menus.pop(handle, None)

    def dispatch_local(self, event: KeyEvent) -> bool:
        return self.local_filter.dispatch(event)

    def menu_shortcuts(self):
        return [(handle.combo, action) for handle, action in self.menus.items()]

    def press_global(self) -> None:
        for action in list(self.globals.values()):
            action()

    @property
    def active_local(self) -> int:
        return len(self.local_filter)

    @property
    def active_global(self) -> int:
        return len(self.globals)

    @property
    def active_menu(self) -> int:
        return len(self.menus)


class FakePermissions(PermissionBackend):
    """Grants on the ``grant_on_query``-th call to ``is_granted`` (1-based)."""

    def __init__(self, granted: bool = False, grant_on_query: Optional[int] = None) -> None:
        self.granted = granted
        self.grant_on_query = grant_on_query
        self.queries = 0
        self.requests = 0
        self.fail_query = False
        # runs inside is_granted, before the answer is returned
        self.on_query: Optional[Callable[[], None]] = None
        self.request_threads: List[str] = []

    def is_granted(self) -> bool:
        self.queries += 1
        if self.fail_query:
            raise PermissionQueryError("accessibility API unavailable")
        if self.on_query is not None:
            self.on_query()
        if self.grant_on_query is not None and self.queries >= self.grant_on_query:
            self.granted = True
        return self.granted

    def request(self) -> None:
        self.requests += 1
        self.request_threads.append(threading.current_thread().name)


class FakeAutoLaunch(AutoLaunchBackend):

    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled
        self.fail = False
        self.calls: List[bool] = []

    def is_enabled(self) -> bool:
        return self.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.calls.append(enabled)
        if self.fail:
            raise AutoLaunchError("login items service unavailable")
        self.enabled = enabled


def make_png(width: int, height: int, color=(255, 0, 0)) -> bytes:
    import io

    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()
