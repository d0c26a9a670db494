from typing import List, Optional, Sequence

try:
    from AppKit import (
        NSPasteboard,
        NSPasteboardTypePNG,
        NSPasteboardTypeString,
        NSPasteboardTypeTIFF,
        NSPasteboardURLReadingFileURLsOnlyKey,
    )
    from Foundation import NSURL, NSData
    HAS_APPKIT = True
except ImportError:
    HAS_APPKIT = False

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.exceptions import ClipboardAccessError


class MacOSClipboard(ClipboardBackend):
    """``NSPasteboard.generalPasteboard()``; the change token is ``changeCount``."""

    def _pasteboard(self):
        if not HAS_APPKIT:
            raise ClipboardAccessError("pyobjc AppKit bindings are not installed")
        return NSPasteboard.generalPasteboard()

    def change_token(self) -> int:
        return int(self._pasteboard().changeCount())

    def read_text(self) -> Optional[str]:
        pasteboard = self._pasteboard()
        text = pasteboard.stringForType_(NSPasteboardTypeString)
        return str(text) if text is not None else None

    def read_image(self) -> Optional[bytes]:
        pasteboard = self._pasteboard()
        types = pasteboard.types() or []
        for pb_type in (NSPasteboardTypeTIFF, NSPasteboardTypePNG):
            if pb_type in types:
                data = pasteboard.dataForType_(pb_type)
                if data:
                    return bytes(data)
        return None

    def read_files(self) -> List[str]:
        pasteboard = self._pasteboard()
        urls = pasteboard.readObjectsForClasses_options_(
            [NSURL], {NSPasteboardURLReadingFileURLsOnlyKey: True})
        if not urls:
            return []
        return [str(url.path()) for url in urls if url.isFileURL()]

    def write_text(self, text: str) -> None:
        pasteboard = self._pasteboard()
        pasteboard.clearContents()
        if not pasteboard.setString_forType_(text, NSPasteboardTypeString):
            raise ClipboardAccessError("NSPasteboard rejected text")

    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        pasteboard = self._pasteboard()
        pasteboard.clearContents()
        ns_data = NSData.dataWithBytes_length_(data, len(data))
        pb_type = NSPasteboardTypeTIFF if "tif" in mime.lower() else NSPasteboardTypePNG
        if not pasteboard.setData_forType_(ns_data, pb_type):
            raise ClipboardAccessError("NSPasteboard rejected image data")

    def write_files(self, paths: Sequence[str]) -> None:
        pasteboard = self._pasteboard()
        pasteboard.clearContents()
        urls = [NSURL.fileURLWithPath_(path) for path in paths]
        if not pasteboard.writeObjects_(urls):
            raise ClipboardAccessError("NSPasteboard rejected file URLs")
