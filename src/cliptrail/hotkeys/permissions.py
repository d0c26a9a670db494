import glob
import logging
import os
import platform

from cliptrail.exceptions import PermissionQueryError
from cliptrail.hotkeys.base import PermissionBackend

try:
    from ApplicationServices import (
        AXIsProcessTrusted,
        AXIsProcessTrustedWithOptions,
        kAXTrustedCheckOptionPrompt,
    )
    HAS_APPLICATION_SERVICES = True
except ImportError:
    HAS_APPLICATION_SERVICES = False

logger = logging.getLogger(__name__)


class MacAccessibilityPermission(PermissionBackend):
    """Accessibility trust, queried through ``AXIsProcessTrusted``."""

    def is_granted(self) -> bool:
        if not HAS_APPLICATION_SERVICES:
            raise PermissionQueryError("pyobjc ApplicationServices bindings are not installed")
        return bool(AXIsProcessTrusted())

    def request(self) -> None:
        if not HAS_APPLICATION_SERVICES:
            raise PermissionQueryError("pyobjc ApplicationServices bindings are not installed")
        AXIsProcessTrustedWithOptions({kAXTrustedCheckOptionPrompt: True})


class LinuxInputPermission(PermissionBackend):
    """Read access to the evdev devices that ``keyboard`` hooks.

    Granted for root or for members of the ``input`` group. There is no OS
    prompt on Linux, so ``request`` only logs what the user has to do.
    """

    def __init__(self, device_glob: str = "/dev/input/event*") -> None:
        self.device_glob = device_glob

    def is_granted(self) -> bool:
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            return True
        devices = glob.glob(self.device_glob)
        return any(os.access(device, os.R_OK) for device in devices)

    def request(self) -> None:
        logger.warning(
            "Global hotkeys need read access to %s; add your user to the "
            "'input' group and log in again", self.device_glob)


class AlwaysGrantedPermission(PermissionBackend):
    """Platforms where global keyboard hooks need no extra grant (Windows)."""

    def is_granted(self) -> bool:
        return True

    def request(self) -> None:
        pass


def get_permission_backend() -> PermissionBackend:
    system = platform.system()

    if system == "Darwin":
        return MacAccessibilityPermission()
    elif system == "Linux":
        return LinuxInputPermission()
    elif system == "Windows":
        return AlwaysGrantedPermission()
    else:
        raise NotImplementedError(f"Platform '{system}' is not supported")
