"""End-to-end behaviour of the top-level manager with fake capabilities."""

import dataclasses
import threading

import pytest
from pydantic import ValidationError

from cliptrail.config import AppConfig
from cliptrail.hotkeys.base import KeyEvent
from cliptrail.manager import (
    ClipboardManager,
    DISMISS_POPOVER,
    HISTORY_CHANGED,
    PERMISSIONS_GRANTED,
    SHOW_HISTORY,
    STATE_CHANGED,
)
from cliptrail.models.state import PermissionStatus
from cliptrail.utils.kv_store import MemoryStore
from cliptrail.utils.scheduler import ThreadScheduler

from fakes import make_png


def collect(manager, event):
    received = []
    manager.on(event, received.append)
    return received


def test_scenario_max_three(make_manager, store, clipboard, scheduler):
    store.set("maxHistoryItems", 3)
    manager = make_manager()
    manager.start()
    for value in "abcd":
        clipboard.copy_text(value)
        scheduler.advance(0.5)
    assert [item.content.text for item in manager.history] == ["d", "c", "b"]


def test_scenario_same_size_images(make_manager, clipboard, scheduler):
    manager = make_manager()
    manager.start()
    clipboard.copy_image(make_png(100, 100, color=(0, 0, 0)))
    scheduler.advance(0.5)
    clipboard.copy_image(make_png(100, 100, color=(255, 255, 255)))
    scheduler.advance(0.5)
    assert len(manager.history) == 1


def test_startup_without_permission(make_manager, hotkeys):
    manager = make_manager()
    manager.start()
    assert manager.state.status is PermissionStatus.NEEDS_PERMISSION
    assert manager.monitoring
    assert not manager.permission_granted
    assert hotkeys.installs == []


def test_startup_with_permission(make_manager, permissions, hotkeys):
    permissions.granted = True
    manager = make_manager()
    states = collect(manager, STATE_CHANGED)
    manager.start()
    assert manager.state.is_ready
    assert [s.status for s in states] == [PermissionStatus.READY]
    assert manager.hotkey_registration.global_ is not None
    assert hotkeys.active_global == 1


def test_request_flow_emits_success_once(make_manager, permissions, scheduler):
    manager = make_manager()
    granted = collect(manager, PERMISSIONS_GRANTED)
    manager.start()
    manager.request_permissions()
    scheduler.advance(3.0 + 4 * 0.5)
    permissions.granted = True
    scheduler.advance(0.5)
    scheduler.advance(30)
    assert manager.state.is_ready
    assert len(granted) == 1
    assert not manager.permission_retry_active


def test_automatic_request_at_startup(make_manager, permissions, scheduler, tmp_path):
    manager = make_manager(config=AppConfig(auto_request_delay=1.0, home=tmp_path))
    manager.start()
    assert permissions.requests == 0
    scheduler.advance(1.0)
    assert permissions.requests == 1
    assert manager.permission_retry_active


def test_automatic_request_skipped_when_granted(make_manager, permissions, scheduler, tmp_path):
    permissions.granted = True
    manager = make_manager(config=AppConfig(auto_request_delay=1.0, home=tmp_path))
    manager.start()
    scheduler.advance(1.0)
    assert permissions.requests == 0


def test_activation_signal_rechecks_on_control_thread(make_manager, permissions, scheduler):
    manager = make_manager()
    manager.start()
    permissions.granted = True
    manager.notify_activated()
    assert not manager.state.is_ready
    scheduler.run_pending()
    assert manager.state.is_ready


def test_paste_dismisses_popover(make_manager, clipboard, scheduler):
    manager = make_manager()
    dismissed = collect(manager, DISMISS_POPOVER)
    manager.start()
    clipboard.copy_text("a")
    scheduler.advance(0.5)
    clipboard.copy_text("b")
    scheduler.advance(0.5)

    assert manager.paste_item_at_index(1) is True
    assert clipboard.text == "a"
    assert len(dismissed) == 1

    assert manager.paste_item_at_index(7) is False
    assert len(dismissed) == 1


def test_history_events_and_clear(make_manager, clipboard, scheduler):
    manager = make_manager()
    snapshots = collect(manager, HISTORY_CHANGED)
    manager.start()
    clipboard.copy_text("a")
    scheduler.advance(0.5)
    manager.clear_history()
    assert manager.history == ()
    assert [len(s) for s in snapshots] == [1, 0]


def test_hotkey_event_reaches_ui(make_manager, permissions, scheduler):
    permissions.granted = True
    manager = make_manager()
    shown = collect(manager, SHOW_HISTORY)
    manager.start()
    combo = manager.hotkey_registration.local.combo
    assert manager.handle_key_event(KeyEvent.of(combo.key, *combo.modifiers)) is True
    scheduler.run_pending()
    assert len(shown) == 1


def test_menu_fallback_exposed_without_permission(make_manager):
    manager = make_manager()
    manager.start()
    manager.register_hotkey()
    shortcuts = manager.menu_shortcuts()
    assert len(shortcuts) == 1
    assert shortcuts[0][0].key == "v"


def test_listener_errors_do_not_break_polling(make_manager, clipboard, scheduler):
    manager = make_manager()

    def broken(_):
        raise RuntimeError("ui crashed")

    manager.on(HISTORY_CHANGED, broken)
    manager.start()
    clipboard.copy_text("a")
    scheduler.advance(0.5)
    clipboard.copy_text("b")
    scheduler.advance(0.5)
    assert len(manager.history) == 2


def test_unknown_event_name_rejected(make_manager):
    with pytest.raises(ValueError):
        make_manager().on("nope", print)


def test_unsubscribe(make_manager, clipboard, scheduler):
    manager = make_manager()
    received = []
    unsubscribe = manager.on(HISTORY_CHANGED, received.append)
    unsubscribe()
    manager.start()
    clipboard.copy_text("a")
    scheduler.advance(0.5)
    assert received == []


def test_lowering_max_items_truncates_now(make_manager, clipboard, scheduler):
    manager = make_manager()
    manager.start()
    for value in "abcde":
        clipboard.copy_text(value)
        scheduler.advance(0.5)
    manager.update_settings(max_history_items=2)
    assert [item.content.text for item in manager.history] == ["e", "d"]


def test_invalid_settings_update_is_rejected(make_manager):
    manager = make_manager()
    manager.start()
    with pytest.raises(ValidationError):
        manager.update_settings(max_history_items=0)
    assert manager.settings.max_history_items == 50


def test_settings_snapshot_is_a_copy(make_manager):
    manager = make_manager()
    manager.start()
    snapshot = manager.settings
    snapshot.max_history_items = 1
    assert manager.settings.max_history_items == 50


def test_first_launch_enables_auto_launch(make_manager, autolaunch):
    store = MemoryStore()
    manager = make_manager(store=store)
    manager.start()
    assert autolaunch.calls == [True]
    assert manager.auto_launch_enabled
    assert store.get("hasLaunchedBefore") is True
    assert manager.settings.auto_launch_enabled is True


def test_later_launch_keeps_auto_launch_choice(make_manager, autolaunch):
    manager = make_manager()
    manager.start()
    assert autolaunch.calls == []
    assert manager.auto_launch_enabled is False


def test_auto_launch_failure_leaves_flag_unchanged(make_manager, autolaunch):
    manager = make_manager()
    manager.start()
    autolaunch.fail = True
    assert manager.toggle_auto_launch(True) is False
    assert manager.auto_launch_enabled is False
    assert any("login items service unavailable" in e.message for e in manager.logs)


def test_toggle_auto_launch_via_settings(make_manager, autolaunch):
    manager = make_manager()
    manager.start()
    manager.update_settings(auto_launch_enabled=True)
    assert autolaunch.enabled
    assert manager.settings.auto_launch_enabled


def test_autosave_and_shutdown_persist(make_manager, store, scheduler, tmp_path):
    manager = make_manager(config=AppConfig(auto_request_delay=-1.0, autosave_interval=10.0, home=tmp_path))
    manager.start()
    manager.update_settings(max_history_items=7)
    assert store.get("maxHistoryItems") is None
    scheduler.advance(10.0)
    assert store.get("maxHistoryItems") == 7

    manager.update_settings(show_startup_screen=False)
    manager.shutdown()
    assert store.get("showStartupScreen") is False


def test_shutdown_stops_everything(make_manager, permissions, hotkeys, scheduler):
    permissions.granted = True
    manager = make_manager()
    manager.start()
    manager.request_permissions()
    manager.shutdown()
    manager.shutdown()
    assert not manager.monitoring
    assert scheduler.pending == 0
    assert hotkeys.active_local == hotkeys.active_global == 0


def test_log_buffer_capped(make_manager, clipboard, scheduler):
    manager = make_manager()
    manager.start()
    for i in range(150):
        clipboard.copy_text(f"text {i}")
        scheduler.advance(0.5)
    assert len(manager.logs) == 100
    assert "text 149" in manager.logs[-1].message


def test_session_max_items_is_not_saved(make_manager, store, clipboard, scheduler, config):
    store.set("maxHistoryItems", 10)
    manager = make_manager(config=dataclasses.replace(config, max_items_override=2))
    manager.start()
    for value in "abc":
        clipboard.copy_text(value)
        scheduler.advance(0.5)
    assert [item.content.text for item in manager.history] == ["c", "b"]
    assert manager.settings.max_history_items == 2

    manager.shutdown()
    assert store.get("maxHistoryItems") == 10


def test_explicit_change_replaces_session_max_items(make_manager, store, config):
    store.set("maxHistoryItems", 10)
    manager = make_manager(config=dataclasses.replace(config, max_items_override=2))
    manager.start()
    manager.update_settings(max_history_items=5)
    assert manager.save_settings()
    assert store.get("maxHistoryItems") == 5


def test_commands_run_on_the_control_thread(clipboard, hotkeys, permissions, autolaunch, store, config):
    scheduler = ThreadScheduler()
    manager = ClipboardManager(
        clipboard=clipboard, hotkeys=hotkeys, permissions=permissions,
        autolaunch=autolaunch, store=store, scheduler=scheduler, config=config,
    )
    captured = threading.Event()
    manager.on(HISTORY_CHANGED, lambda items: items and captured.set())

    with scheduler:
        manager.start()
        clipboard.copy_text("from another app")
        assert captured.wait(timeout=3.0)

        assert manager.paste_item_at_index(0) is True
        manager.request_permissions()
        with pytest.raises(ValidationError):
            manager.update_settings(max_history_items=0)
        manager.shutdown()

    assert clipboard.write_threads == ["cliptrail-scheduler"]
    assert permissions.request_threads == ["cliptrail-scheduler"]
    assert not manager.monitoring
