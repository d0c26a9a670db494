from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _load_env_file(env_path: Optional[Path] = None) -> None:
    if env_path is not None:
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer")
        return default


def _default_home() -> Path:
    return Path.home() / ".cliptrail"


@dataclass(frozen=True)
class AppConfig:
    """Process-level timing and storage configuration."""

    poll_interval: float = 0.5
    permission_grace: float = 3.0
    permission_interval: float = 0.5
    permission_attempts: int = 20
    autosave_interval: float = 300.0
    # negative disables the startup permission request
    auto_request_delay: float = 1.0
    home: Path = field(default_factory=_default_home)
    # session-only maxHistoryItems; never written to settings.json
    max_items_override: Optional[int] = None

    @property
    def settings_path(self) -> Path:
        return self.home / "settings.json"

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "AppConfig":
        _load_env_file(env_path)

        home_raw = os.getenv("CLIPTRAIL_HOME")
        home = Path(home_raw).expanduser() if home_raw else _default_home()

        return cls(
            poll_interval=_env_float("CLIPTRAIL_POLL_INTERVAL", cls.poll_interval),
            permission_grace=_env_float("CLIPTRAIL_PERMISSION_GRACE", cls.permission_grace),
            permission_interval=_env_float("CLIPTRAIL_PERMISSION_INTERVAL", cls.permission_interval),
            permission_attempts=_env_int("CLIPTRAIL_PERMISSION_ATTEMPTS", cls.permission_attempts),
            autosave_interval=_env_float("CLIPTRAIL_AUTOSAVE_INTERVAL", cls.autosave_interval),
            auto_request_delay=_env_float("CLIPTRAIL_AUTO_REQUEST_DELAY", cls.auto_request_delay),
            home=home,
        )
