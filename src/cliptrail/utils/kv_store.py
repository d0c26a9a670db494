import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from cliptrail.exceptions import SettingsError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Flat key/value persistence used for settings and one-time markers."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def contains(self, key: str) -> bool:
        pass

    def flush(self) -> None:
        pass

    def __contains__(self, key: str) -> bool:
        return self.contains(key)


class MemoryStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})
        self.flush_count = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def contains(self, key: str) -> bool:
        return key in self._data

    def flush(self) -> None:
        self.flush_count += 1

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class JsonFileStore(KeyValueStore):
    """JSON document on disk; writes are buffered until ``flush()``."""

    def __init__(self, path: Optional[Path] = None) -> None:
        if path is None:
            path = Path.home() / ".cliptrail" / "settings.json"
        self.path = Path(path)
        self._data: Dict[str, Any] = self._read()
        self._dirty = False

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.path}: not a JSON object")
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if self._data.get(key) != value or key not in self._data:
            self._data[key] = value
            self._dirty = True

    def contains(self, key: str) -> bool:
        return key in self._data

    def flush(self) -> None:
        if not self._dirty and self.path.exists():
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(self._data, handle, indent=2, sort_keys=True)
            tmp_path.replace(self.path)
        except OSError as e:
            raise SettingsError(f"Failed to write {self.path}: {e}") from e
        self._dirty = False
