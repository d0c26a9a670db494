"""Top-level clipboard manager.

One instance is constructed at process start with every platform capability
injected, and torn down explicitly with ``shutdown()``. The UI collaborator
reads immutable snapshots and subscribes to events with ``on()``; it never
touches the live history or state objects. Commands may be called from any
thread; they run on the scheduler's control thread and return its result.
"""

import functools
import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Optional, Tuple

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.config import AppConfig
from cliptrail.exceptions import AutoLaunchError
from cliptrail.hotkeys.base import Action, HotkeyBackend, KeyCombo, KeyEvent, PermissionBackend
from cliptrail.models.clipboarditem import ClipboardItem
from cliptrail.models.settings import Settings
from cliptrail.models.state import LogEntry, PermissionState
from cliptrail.services.autolaunch import AutoLaunchBackend
from cliptrail.services.clipboard_service import ClipboardPoller
from cliptrail.services.history_service import HistoryStore
from cliptrail.services.permission_service import HotkeyRegistration, PermissionStateMachine
from cliptrail.services.settings_service import SettingsService
from cliptrail.utils.kv_store import JsonFileStore, KeyValueStore
from cliptrail.utils.log_sink import LogSink
from cliptrail.utils.scheduler import Scheduler, ThreadScheduler, TimerHandle

logger = logging.getLogger(__name__)

HISTORY_CHANGED = "history_changed"
STATE_CHANGED = "state_changed"
SETTINGS_CHANGED = "settings_changed"
DISMISS_POPOVER = "dismiss_popover"
SHOW_HISTORY = "show_history"
PERMISSIONS_GRANTED = "permissions_granted"
PERMISSION_TIMEOUT = "permission_timeout"

EVENTS = (
    HISTORY_CHANGED,
    STATE_CHANGED,
    SETTINGS_CHANGED,
    DISMISS_POPOVER,
    SHOW_HISTORY,
    PERMISSIONS_GRANTED,
    PERMISSION_TIMEOUT,
)

Listener = Callable[[Any], None]


def _on_control_thread(method):
    """Run the command on the scheduler's control thread, whichever thread calls it."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        return self._scheduler.run_sync(functools.partial(method, self, *args, **kwargs))
    return wrapper


class ClipboardManager:

    def __init__(
        self,
        *,
        clipboard: ClipboardBackend,
        hotkeys: HotkeyBackend,
        permissions: PermissionBackend,
        autolaunch: AutoLaunchBackend,
        store: KeyValueStore,
        scheduler: Scheduler,
        config: Optional[AppConfig] = None,
        combo: Optional[KeyCombo] = None,
    ) -> None:
        self.config = config or AppConfig()
        self._scheduler = scheduler
        self._hotkeys = hotkeys
        self._autolaunch = autolaunch
        self._log = LogSink()
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

        self._settings_service = SettingsService(store, self._log)
        self._settings = Settings()
        # persisted maxHistoryItems while a runtime override is in effect
        self._stored_max_items: Optional[int] = None
        self._auto_launch_enabled = False

        self._history = HistoryStore(
            max_items=lambda: self._settings.max_history_items,
            writer=clipboard,
            log=self._log,
            on_change=lambda items: self._emit(HISTORY_CHANGED, items),
            on_pasted=lambda item: self._emit(DISMISS_POPOVER, item),
        )
        self._poller = ClipboardPoller(
            clipboard, self._history, scheduler, self._log,
            poll_interval=self.config.poll_interval,
        )
        self._permissions = PermissionStateMachine(
            permissions, hotkeys, scheduler, self._log,
            on_hotkey=lambda: self._emit(SHOW_HISTORY, None),
            combo=combo,
            grace_delay=self.config.permission_grace,
            retry_interval=self.config.permission_interval,
            max_attempts=self.config.permission_attempts,
            on_state_change=lambda state: self._emit(STATE_CHANGED, state),
            on_granted=lambda: self._emit(PERMISSIONS_GRANTED, None),
            on_timeout=lambda: self._emit(PERMISSION_TIMEOUT, None),
        )

        self._autosave_timer: Optional[TimerHandle] = None
        self._auto_request_timer: Optional[TimerHandle] = None
        self._started = False
        self._shut_down = False

    @classmethod
    def create_default(
        cls,
        config: Optional[AppConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> "ClipboardManager":
        """Wire up the real platform backends for the current OS."""
        from cliptrail.clipboard import get_clipboard_backend
        from cliptrail.hotkeys import get_hotkey_backend, get_permission_backend
        from cliptrail.services.autolaunch import get_autolaunch_backend

        config = config or AppConfig.from_env()
        return cls(
            clipboard=get_clipboard_backend(),
            hotkeys=get_hotkey_backend(),
            permissions=get_permission_backend(),
            autolaunch=get_autolaunch_backend(),
            store=JsonFileStore(config.settings_path),
            scheduler=scheduler or ThreadScheduler(),
            config=config,
        )

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    @_on_control_thread
    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._log.info("Clipboard manager initialization")

        self._settings = self._settings_service.load()
        self._log.info(
            f"Settings loaded: maxItems={self._settings.max_history_items}, "
            f"showStartupScreen={self._settings.show_startup_screen}")
        if self.config.max_items_override is not None:
            self._stored_max_items = self._settings.max_history_items
            self._settings = Settings.model_validate({
                **self._settings.model_dump(),
                "max_history_items": self.config.max_items_override,
            })
            self._log.info(f"Using maxItems={self._settings.max_history_items} for this session")

        self.check_auto_launch_status()
        if self._settings_service.is_first_launch():
            self._log.info("First launch - setting up auto-launch")
            self._settings_service.mark_launched()
            self.toggle_auto_launch(True)

        self._permissions.start()
        self.start_monitoring(force=True)

        self._autosave_timer = self._scheduler.call_repeating(
            self.config.autosave_interval, self._autosave)

        if self.config.auto_request_delay >= 0:
            self._auto_request_timer = self._scheduler.call_later(
                self.config.auto_request_delay, self._auto_request_permissions)

    @_on_control_thread
    def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        self._log.info("Shutting down")

        self._permissions.shutdown()
        self.stop_monitoring()
        self._scheduler.cancel(self._autosave_timer)
        self._scheduler.cancel(self._auto_request_timer)
        self._autosave_timer = self._auto_request_timer = None

        if self._started:
            self.save_settings()
            self._log.info("Settings saved on application termination")

    def _autosave(self) -> None:
        if self._settings_service.save(self._persisted_settings()):
            self._log.info("Settings auto-saved")

    def _auto_request_permissions(self) -> None:
        self._auto_request_timer = None
        if not self._permissions.check_permissions_status():
            self._log.info("Automatic permissions request at startup")
            self._permissions.request_permissions()

    # ---------------------------------------------------------------------
    # Commands
    # ---------------------------------------------------------------------
    @_on_control_thread
    def start_monitoring(self, force: bool = False) -> None:
        self._poller.start(force=force)

    @_on_control_thread
    def stop_monitoring(self) -> None:
        self._poller.stop()

    @_on_control_thread
    def check_permissions_status(self) -> bool:
        return self._permissions.check_permissions_status()

    @_on_control_thread
    def request_permissions(self) -> None:
        self._permissions.request_permissions()

    @_on_control_thread
    def register_hotkey(self) -> HotkeyRegistration:
        return self._permissions.register_hotkey()

    @_on_control_thread
    def unregister_hotkey(self) -> None:
        self._permissions.unregister_hotkey()

    @_on_control_thread
    def paste_item_at_index(self, index: int) -> bool:
        return self._history.paste_item(index)

    @_on_control_thread
    def clear_history(self) -> None:
        self._history.clear()

    @_on_control_thread
    def toggle_auto_launch(self, enabled: bool) -> bool:
        try:
            self._autolaunch.set_enabled(enabled)
        except AutoLaunchError as e:
            self._log.error(f"ERROR: {e}")
            return False
        self._log.info(f"AUTOLAUNCH {'ENABLED' if enabled else 'DISABLED'}")
        self.check_auto_launch_status()
        return True

    @_on_control_thread
    def check_auto_launch_status(self) -> bool:
        try:
            enabled = self._autolaunch.is_enabled()
        except AutoLaunchError as e:
            self._log.error(f"ERROR: {e}")
            enabled = False
        self._auto_launch_enabled = enabled
        if self._settings.auto_launch_enabled != enabled:
            self._settings.auto_launch_enabled = enabled
            self._emit(SETTINGS_CHANGED, self.settings)
        self._log.info(f"AUTOLAUNCH STATUS: {'ENABLED' if enabled else 'DISABLED'}")
        return enabled

    @_on_control_thread
    def update_settings(self, **changes: Any) -> Settings:
        """Validate and apply setting changes.

        Raises pydantic's ``ValidationError`` for invalid values, leaving the
        current settings untouched. Auto-launch changes go through the
        platform and are reconciled with its actual state.
        """
        auto_launch = changes.pop("auto_launch_enabled", None)
        updated = Settings.model_validate({**self._settings.model_dump(), **changes})
        if "max_history_items" in changes:
            self._stored_max_items = None

        previous_max = self._settings.max_history_items
        self._settings = updated
        if updated.max_history_items < previous_max:
            self._history.truncate(updated.max_history_items)
        if auto_launch is not None and bool(auto_launch) != self._auto_launch_enabled:
            self.toggle_auto_launch(bool(auto_launch))

        self._emit(SETTINGS_CHANGED, self.settings)
        return self.settings

    def _persisted_settings(self) -> Settings:
        if self._stored_max_items is None:
            return self._settings
        return self._settings.model_copy(update={"max_history_items": self._stored_max_items})

    @_on_control_thread
    def save_settings(self) -> bool:
        return self._settings_service.save(self._persisted_settings())

    def notify_activated(self) -> None:
        """App activation or window focus; re-check permission on the control thread."""
        self._scheduler.call_soon(self._permissions.check_permissions_status)

    @_on_control_thread
    def handle_key_event(self, event: KeyEvent) -> bool:
        """Feed an in-process key event; ``True`` means it must not propagate."""
        return self._hotkeys.dispatch_local(event)

    def menu_shortcuts(self) -> List[Tuple[KeyCombo, Action]]:
        return self._hotkeys.menu_shortcuts()

    # ---------------------------------------------------------------------
    # Observable state
    # ---------------------------------------------------------------------
    @property
    def history(self) -> Tuple[ClipboardItem, ...]:
        return self._history.snapshot()

    @property
    def state(self) -> PermissionState:
        return self._permissions.state

    @property
    def settings(self) -> Settings:
        return self._settings.model_copy()

    @property
    def permission_granted(self) -> bool:
        return self._permissions.permission_granted

    @property
    def auto_launch_enabled(self) -> bool:
        return self._auto_launch_enabled

    @property
    def logs(self) -> Tuple[LogEntry, ...]:
        return self._log.entries

    @property
    def hotkey_registration(self) -> HotkeyRegistration:
        return self._permissions.registration

    @property
    def monitoring(self) -> bool:
        return self._poller.running

    @property
    def permission_retry_active(self) -> bool:
        return self._permissions.retry_active

    # ---------------------------------------------------------------------
    # Events
    # ---------------------------------------------------------------------
    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        """Subscribe to ``event``; returns a function that unsubscribes."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}")
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    def _emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception("Error in %s listener", event)

    def __enter__(self) -> "ClipboardManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
