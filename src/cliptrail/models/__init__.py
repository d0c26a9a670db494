from cliptrail.models.clipboarditem import (
    ClipboardContent,
    ClipboardItem,
    FileListContent,
    ImageContent,
    TextContent,
    UnknownContent,
)
from cliptrail.models.settings import Settings
from cliptrail.models.state import LogEntry, PermissionState, PermissionStatus

__all__ = [
    "ClipboardContent",
    "ClipboardItem",
    "FileListContent",
    "ImageContent",
    "TextContent",
    "UnknownContent",
    "Settings",
    "LogEntry",
    "PermissionState",
    "PermissionStatus",
]
