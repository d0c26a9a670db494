from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import ulid


class PermissionStatus(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    NEEDS_PERMISSION = "needs_permission"
    ERROR = "error"


@dataclass(frozen=True)
class PermissionState:
    """Lifecycle state of the manager; ``message`` is only set for ``ERROR``."""
    status: PermissionStatus
    message: Optional[str] = None

    @classmethod
    def initializing(cls) -> "PermissionState":
        return cls(PermissionStatus.INITIALIZING)

    @classmethod
    def ready(cls) -> "PermissionState":
        return cls(PermissionStatus.READY)

    @classmethod
    def needs_permission(cls) -> "PermissionState":
        return cls(PermissionStatus.NEEDS_PERMISSION)

    @classmethod
    def error(cls, message: str) -> "PermissionState":
        return cls(PermissionStatus.ERROR, message)

    @property
    def is_ready(self) -> bool:
        return self.status is PermissionStatus.READY

    def __str__(self) -> str:
        if self.message:
            return f"{self.status.value}({self.message})"
        return self.status.value


@dataclass(frozen=True)
class LogEntry:
    message: str
    entry_id: str = field(default_factory=lambda: f"l_{ulid.new()}")
    timestamp: datetime = field(default_factory=datetime.now)
