import os

from cliptrail.hotkeys import permissions
from cliptrail.hotkeys.permissions import LinuxInputPermission


def make_devices(tmp_path, count):
    paths = []
    for i in range(count):
        path = tmp_path / f"event{i}"
        path.write_bytes(b"")
        paths.append(str(path))
    return paths


def test_one_readable_device_is_enough(tmp_path, monkeypatch):
    devices = make_devices(tmp_path, 3)
    monkeypatch.setattr(os, "geteuid", lambda: 1000, raising=False)
    monkeypatch.setattr(permissions.os, "access", lambda path, mode: path == devices[1])
    assert LinuxInputPermission(str(tmp_path / "event*")).is_granted()


def test_no_readable_device_is_not_granted(tmp_path, monkeypatch):
    make_devices(tmp_path, 2)
    monkeypatch.setattr(os, "geteuid", lambda: 1000, raising=False)
    monkeypatch.setattr(permissions.os, "access", lambda path, mode: False)
    assert not LinuxInputPermission(str(tmp_path / "event*")).is_granted()


def test_no_devices_is_not_granted(tmp_path, monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 1000, raising=False)
    assert not LinuxInputPermission(str(tmp_path / "event*")).is_granted()


def test_root_is_always_granted(tmp_path, monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 0, raising=False)
    assert LinuxInputPermission(str(tmp_path / "event*")).is_granted()
