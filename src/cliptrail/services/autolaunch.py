"""Login-item registration.

Each backend reports the real platform state from ``is_enabled`` so the
manager can reconcile its flag after every change instead of assuming it.
"""

import logging
import os
import platform
import plistlib
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from cliptrail.exceptions import AutoLaunchError

logger = logging.getLogger(__name__)

APP_ID = "cliptrail"


def launch_command() -> List[str]:
    return [sys.executable, "-m", "cliptrail"]


class AutoLaunchBackend(ABC):

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    def set_enabled(self, enabled: bool) -> None:
        """Raise ``AutoLaunchError`` when the platform rejects the change."""


class XdgAutostart(AutoLaunchBackend):
    """``~/.config/autostart/cliptrail.desktop``"""

    def __init__(self, autostart_dir: Optional[Path] = None) -> None:
        if autostart_dir is None:
            config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
            autostart_dir = Path(config_home) / "autostart"
        self.path = Path(autostart_dir) / f"{APP_ID}.desktop"

    def is_enabled(self) -> bool:
        return self.path.is_file()

    def set_enabled(self, enabled: bool) -> None:
        try:
            if enabled:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(self._desktop_entry(), encoding="utf-8")
            elif self.path.exists():
                self.path.unlink()
        except OSError as e:
            raise AutoLaunchError(f"Failed to update {self.path}: {e}") from e

    @staticmethod
    def _desktop_entry() -> str:
        return "\n".join([
            "[Desktop Entry]",
            "Type=Application",
            "Name=ClipTrail",
            "Comment=Clipboard history",
            f"Exec={' '.join(launch_command())}",
            "X-GNOME-Autostart-enabled=true",
            "NoDisplay=true",
            "",
        ])


class LaunchAgent(AutoLaunchBackend):
    """``~/Library/LaunchAgents/<label>.plist`` with ``RunAtLoad``."""

    def __init__(self, agents_dir: Optional[Path] = None, label: str = f"io.{APP_ID}.agent") -> None:
        self.label = label
        self.path = Path(agents_dir or Path.home() / "Library" / "LaunchAgents") / f"{label}.plist"

    def is_enabled(self) -> bool:
        return self.path.is_file()

    def set_enabled(self, enabled: bool) -> None:
        try:
            if enabled:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("wb") as handle:
                    plistlib.dump({
                        "Label": self.label,
                        "ProgramArguments": launch_command(),
                        "RunAtLoad": True,
                    }, handle)
            elif self.path.exists():
                self.path.unlink()
        except OSError as e:
            raise AutoLaunchError(f"Failed to update {self.path}: {e}") from e


class RegistryRunKey(AutoLaunchBackend):
    r"""``HKCU\Software\Microsoft\Windows\CurrentVersion\Run``"""

    RUN_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"

    def is_enabled(self) -> bool:
        import winreg
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self.RUN_KEY) as key:
                winreg.QueryValueEx(key, APP_ID)
                return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise AutoLaunchError(f"Failed to read Run key: {e}") from e

    def set_enabled(self, enabled: bool) -> None:
        import winreg
        command = " ".join(f'"{part}"' for part in launch_command())
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, self.RUN_KEY, 0, winreg.KEY_SET_VALUE) as key:
                if enabled:
                    winreg.SetValueEx(key, APP_ID, 0, winreg.REG_SZ, command)
                else:
                    try:
                        winreg.DeleteValue(key, APP_ID)
                    except FileNotFoundError:
                        pass
        except OSError as e:
            raise AutoLaunchError(f"Failed to update Run key: {e}") from e


def get_autolaunch_backend() -> AutoLaunchBackend:
    system = platform.system()

    if system == "Windows":
        return RegistryRunKey()
    elif system == "Linux":
        return XdgAutostart()
    elif system == "Darwin":
        return LaunchAgent()
    else:
        raise NotImplementedError(f"Platform '{system}' is not supported")
