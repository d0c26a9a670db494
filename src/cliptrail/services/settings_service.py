import logging
from typing import Any, Dict

from pydantic import ValidationError

from cliptrail.exceptions import SettingsError
from cliptrail.models.settings import HAS_LAUNCHED_KEY, Settings
from cliptrail.utils.kv_store import KeyValueStore
from cliptrail.utils.log_sink import LogSink

logger = logging.getLogger(__name__)


class SettingsService:
    """Load/save boundary between ``Settings`` and the key/value store."""

    def __init__(self, store: KeyValueStore, log: LogSink) -> None:
        self.store = store
        self._log = log

    def load(self) -> Settings:
        stored: Dict[str, Any] = {}
        for name, field in Settings.model_fields.items():
            key = field.alias or name
            if self.store.contains(key):
                stored[key] = self.store.get(key)

        try:
            return Settings.model_validate(stored)
        except ValidationError:
            pass

        # keep the valid values, fall back to defaults for the rest
        valid: Dict[str, Any] = {}
        for key, value in stored.items():
            try:
                Settings.model_validate({key: value})
            except ValidationError as e:
                self._log.warning(
                    f"Ignoring invalid setting {key}={value!r}: {e.errors()[0]['msg']}")
                continue
            valid[key] = value
        return Settings.model_validate(valid)

    def save(self, settings: Settings) -> bool:
        for key, value in settings.to_store().items():
            self.store.set(key, value)
        try:
            self.store.flush()
        except SettingsError as e:
            self._log.error(f"ERROR: {e}")
            return False
        return True

    def is_first_launch(self) -> bool:
        return not self.store.get(HAS_LAUNCHED_KEY, False)

    def mark_launched(self) -> None:
        self.store.set(HAS_LAUNCHED_KEY, True)
        try:
            self.store.flush()
        except SettingsError as e:
            self._log.error(f"ERROR: {e}")
