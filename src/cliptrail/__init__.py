"""ClipTrail - clipboard history engine with permission-gated hotkeys."""

from cliptrail.config import AppConfig
from cliptrail.manager import ClipboardManager

__version__ = "0.1.0"

__all__ = ["AppConfig", "ClipboardManager", "__version__"]
