import pytest

from cliptrail.config import AppConfig
from cliptrail.manager import ClipboardManager
from cliptrail.utils.kv_store import MemoryStore
from cliptrail.utils.scheduler import ManualScheduler

from fakes import FakeAutoLaunch, FakeClipboard, FakeHotkeys, FakePermissions


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def hotkeys():
    return FakeHotkeys()


@pytest.fixture
def permissions():
    return FakePermissions(granted=False)


@pytest.fixture
def autolaunch():
    return FakeAutoLaunch()


@pytest.fixture
def store():
    return MemoryStore({"hasLaunchedBefore": True})


@pytest.fixture
def config(tmp_path):
    # no automatic permission request unless a test asks for it
    return AppConfig(auto_request_delay=-1.0, home=tmp_path)


@pytest.fixture
def make_manager(clipboard, hotkeys, permissions, autolaunch, store, scheduler, config):
    created = []

    def factory(**overrides):
        kwargs = dict(
            clipboard=clipboard,
            hotkeys=hotkeys,
            permissions=permissions,
            autolaunch=autolaunch,
            store=store,
            scheduler=scheduler,
            config=config,
        )
        kwargs.update(overrides)
        manager = ClipboardManager(**kwargs)
        created.append(manager)
        return manager

    yield factory
    for manager in created:
        manager.shutdown()
