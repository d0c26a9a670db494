from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

# Flat key/value names used by the settings store.
MAX_HISTORY_ITEMS_KEY = "maxHistoryItems"
AUTO_LAUNCH_ENABLED_KEY = "autoLaunchEnabled"
SHOW_STARTUP_SCREEN_KEY = "showStartupScreen"
HAS_LAUNCHED_KEY = "hasLaunchedBefore"


class Settings(BaseModel):
    """User-facing settings, persisted as a flat key/value namespace."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    max_history_items: int = Field(default=50, gt=0, alias=MAX_HISTORY_ITEMS_KEY)
    auto_launch_enabled: bool = Field(default=True, alias=AUTO_LAUNCH_ENABLED_KEY)
    show_startup_screen: bool = Field(default=True, alias=SHOW_STARTUP_SCREEN_KEY)

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
