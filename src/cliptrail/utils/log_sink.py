import logging
from collections import deque
from datetime import datetime
from typing import Deque, Optional, Tuple

from cliptrail.models.state import LogEntry

logger = logging.getLogger("cliptrail")

MAX_LOG_ENTRIES = 100


class LogSink:
    """Capped diagnostics buffer shown by the UI; oldest entries drop first.

    Every message is also forwarded to the standard ``logging`` tree so the
    same lines reach the console or any configured handler.
    """

    def __init__(self, capacity: int = MAX_LOG_ENTRIES, forward_to: Optional[logging.Logger] = None) -> None:
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)
        self._logger = forward_to or logger

    def log(self, message: str, level: int = logging.INFO) -> LogEntry:
        now = datetime.now()
        entry = LogEntry(message=f"[{now:%H:%M:%S}] {message}", timestamp=now)
        self._entries.append(entry)
        self._logger.log(level, message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.log(message, logging.INFO)

    def warning(self, message: str) -> LogEntry:
        return self.log(message, logging.WARNING)

    def error(self, message: str) -> LogEntry:
        return self.log(message, logging.ERROR)

    def debug(self, message: str) -> LogEntry:
        return self.log(message, logging.DEBUG)

    @property
    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
