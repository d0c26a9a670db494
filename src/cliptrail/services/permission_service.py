"""Permission and hotkey state machine.

``Initializing -> {Ready, NeedsPermission}``, ``NeedsPermission <-> Ready``
and ``Error(message)`` when the permission state cannot be queried. The
platform gives no push notification when the user grants access, so after a
request the machine polls on a fixed interval with a hard attempt cap.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from cliptrail.exceptions import HotkeyRegistrationError, PermissionQueryError
from cliptrail.hotkeys.base import (
    HotkeyBackend,
    KeyCombo,
    ListenerHandle,
    PermissionBackend,
    history_hotkey,
)
from cliptrail.models.state import PermissionState
from cliptrail.utils.log_sink import LogSink
from cliptrail.utils.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_GRACE_DELAY = 3.0
DEFAULT_RETRY_INTERVAL = 0.5
DEFAULT_MAX_ATTEMPTS = 20


@dataclass(frozen=True)
class HotkeyRegistration:
    """Currently installed listener handles; rebuilt on every registration."""
    local: Optional[ListenerHandle] = None
    global_: Optional[ListenerHandle] = None
    menu: Optional[ListenerHandle] = None

    @property
    def handles(self) -> Tuple[ListenerHandle, ...]:
        return tuple(h for h in (self.local, self.global_, self.menu) if h is not None)

    @property
    def active(self) -> bool:
        return bool(self.handles)


class PermissionStateMachine:

    def __init__(
        self,
        permissions: PermissionBackend,
        hotkeys: HotkeyBackend,
        scheduler: Scheduler,
        log: LogSink,
        on_hotkey: Callable[[], None],
        combo: Optional[KeyCombo] = None,
        grace_delay: float = DEFAULT_GRACE_DELAY,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_state_change: Optional[Callable[[PermissionState], None]] = None,
        on_granted: Optional[Callable[[], None]] = None,
        on_timeout: Optional[Callable[[], None]] = None,
    ) -> None:
        self._permissions = permissions
        self._hotkeys = hotkeys
        self._scheduler = scheduler
        self._log = log
        self._on_hotkey = on_hotkey
        self.combo = combo or history_hotkey()
        self.grace_delay = grace_delay
        self.retry_interval = retry_interval
        self.max_attempts = max_attempts
        self._on_state_change = on_state_change
        self._on_granted = on_granted
        self._on_timeout = on_timeout

        self._state = PermissionState.initializing()
        self._granted = False
        self._registration = HotkeyRegistration()
        self._grace_timer: Optional[TimerHandle] = None
        self._retry_timer: Optional[TimerHandle] = None
        self._attempt = 0
        # bumped by every request; callbacks of an older sequence do nothing
        self._sequence = 0

    # ---------------------------------------------------------------------
    # Observable state
    # ---------------------------------------------------------------------
    @property
    def state(self) -> PermissionState:
        return self._state

    @property
    def permission_granted(self) -> bool:
        return self._granted

    @property
    def registration(self) -> HotkeyRegistration:
        return self._registration

    @property
    def retry_active(self) -> bool:
        return self._grace_timer is not None or self._retry_timer is not None

    @property
    def attempts(self) -> int:
        return self._attempt

    def _set_state(self, state: PermissionState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        self._log.info(f"State changed: {previous} -> {state}")
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _query(self) -> Optional[bool]:
        try:
            granted = bool(self._permissions.is_granted())
        except PermissionQueryError as e:
            self._log.error(f"ERROR: cannot query permissions: {e}")
            self._set_state(PermissionState.error(str(e)))
            return None
        self._granted = granted
        return granted

    # ---------------------------------------------------------------------
    # Transitions
    # ---------------------------------------------------------------------
    def start(self) -> None:
        self._log.info("Starting the application")
        granted = self._query()
        if granted is None:
            return
        if granted:
            self._log.info("Accessibility permissions granted")
            self._set_state(PermissionState.ready())
            self.register_hotkey()
        else:
            self._log.info("Accessibility permissions not granted")
            self._set_state(PermissionState.needs_permission())

    def check_permissions_status(self) -> bool:
        """Re-query the permission; safe to call on every activation signal."""
        granted = self._query()
        if granted is None:
            return False
        self._log.info(f"Checking permissions: {'granted' if granted else 'not granted'}")

        if granted:
            if not self._state.is_ready:
                self._set_state(PermissionState.ready())
                self.register_hotkey()
        elif self._state.is_ready:
            self._log.warning("Accessibility permissions were revoked")
            self._set_state(PermissionState.needs_permission())
            self.register_hotkey()
        else:
            self._set_state(PermissionState.needs_permission())
        return granted

    def request_permissions(self) -> None:
        """Show the OS prompt, then poll until granted or the attempt cap."""
        self._log.info("Requesting permissions for hotkeys")
        self._cancel_retry()
        sequence = self._sequence
        try:
            self._permissions.request()
        except PermissionQueryError as e:
            self._log.error(f"ERROR: permission request failed: {e}")
            self._set_state(PermissionState.error(str(e)))
            return
        self._attempt = 0
        self._grace_timer = self._scheduler.call_later(
            self.grace_delay, functools.partial(self._begin_polling, sequence))

    def _begin_polling(self, sequence: int) -> None:
        if sequence != self._sequence:
            return
        self._grace_timer = None
        if self._poll_once(sequence):
            return
        self._retry_timer = self._scheduler.call_repeating(
            self.retry_interval, functools.partial(self._poll_once, sequence))

    def _poll_once(self, sequence: int) -> bool:
        """One retry attempt; returns ``True`` once the sequence has finished."""
        if sequence != self._sequence:
            return True
        self._attempt += 1
        granted = self._query()
        if sequence != self._sequence:
            # a new request arrived while querying
            return True

        if granted:
            self._log.info(f"Permissions granted! (attempt {self._attempt})")
            self._cancel_retry()
            if not self._state.is_ready:
                self._set_state(PermissionState.ready())
                self.register_hotkey()
            if self._on_granted is not None:
                self._on_granted()
            return True

        if granted is False and not self._state.is_ready:
            self._set_state(PermissionState.needs_permission())

        if self._attempt >= self.max_attempts:
            self._log.info(
                f"Permission check timed out after {self._attempt} attempts")
            self._cancel_retry()
            if self._on_timeout is not None:
                self._on_timeout()
            return True
        return False

    def _cancel_retry(self) -> None:
        self._sequence += 1
        self._scheduler.cancel(self._grace_timer)
        self._scheduler.cancel(self._retry_timer)
        self._grace_timer = None
        self._retry_timer = None

    # ---------------------------------------------------------------------
    # Hotkeys
    # ---------------------------------------------------------------------
    def register_hotkey(self) -> HotkeyRegistration:
        self.unregister_hotkey()

        local = self._install("local", self._hotkeys.install_local_listener)
        global_ = menu = None
        if self._granted:
            global_ = self._install("global", self._hotkeys.install_global_listener)
        else:
            menu = self._install("menu", self._hotkeys.install_menu_shortcut)

        self._registration = HotkeyRegistration(local=local, global_=global_, menu=menu)
        scopes = ", ".join(h.scope for h in self._registration.handles) or "none"
        self._log.info(f"Hotkey {self.combo} registered ({scopes})")
        return self._registration

    def _install(self, scope: str, install) -> Optional[ListenerHandle]:
        try:
            return install(self.combo, self._fire)
        except HotkeyRegistrationError as e:
            self._log.error(f"ERROR: {scope} hotkey not installed: {e}")
            return None

    def unregister_hotkey(self) -> None:
        if not self._registration.active:
            return
        for handle in self._registration.handles:
            try:
                self._hotkeys.uninstall_listener(handle)
            except HotkeyRegistrationError as e:
                self._log.error(f"ERROR: {e}")
        self._registration = HotkeyRegistration()
        self._log.info("Hotkey unregistered")

    def _fire(self) -> None:
        # listeners may fire on a foreign thread; hop onto the control thread
        self._scheduler.call_soon(self._on_hotkey)

    def shutdown(self) -> None:
        self._cancel_retry()
        self.unregister_hotkey()
