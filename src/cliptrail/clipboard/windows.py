import io
import os
import struct
import time
from typing import List, Optional, Sequence

import win32clipboard as wc
import win32con
from PIL import Image, ImageGrab

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.exceptions import ClipboardAccessError


class _OpenClipboard:
    """Context manager around Open/CloseClipboard with the usual retry."""

    def __enter__(self) -> "_OpenClipboard":
        for _ in range(3):
            try:
                wc.OpenClipboard()
                return self
            except Exception:
                time.sleep(0.05)
        raise ClipboardAccessError("Clipboard is locked by another process")

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            wc.CloseClipboard()
        except Exception:
            pass


class WindowsClipboard(ClipboardBackend):
    """Win32 clipboard; the change token is ``GetClipboardSequenceNumber``."""

    def change_token(self) -> int:
        return int(wc.GetClipboardSequenceNumber())

    def read_text(self) -> Optional[str]:
        with _OpenClipboard():
            if not wc.IsClipboardFormatAvailable(wc.CF_UNICODETEXT):
                return None
            try:
                return wc.GetClipboardData(wc.CF_UNICODETEXT)
            except Exception as e:
                raise ClipboardAccessError(f"Failed to read text: {e}") from e

    def read_image(self) -> Optional[bytes]:
        try:
            clipboard_data = ImageGrab.grabclipboard()
        except Exception as e:
            raise ClipboardAccessError(f"Failed to read image: {e}") from e

        if clipboard_data is None or isinstance(clipboard_data, (list, tuple)):
            return None

        output = io.BytesIO()
        try:
            clipboard_data.save(output, format="PNG")
        except Exception as e:
            raise ClipboardAccessError(f"Failed to encode image: {e}") from e
        return output.getvalue()

    def read_files(self) -> List[str]:
        with _OpenClipboard():
            if not wc.IsClipboardFormatAvailable(win32con.CF_HDROP):
                return []
            try:
                files = wc.GetClipboardData(win32con.CF_HDROP)
            except Exception as e:
                raise ClipboardAccessError(f"Failed to read file list: {e}") from e

        if isinstance(files, str):
            files = [files]
        return [os.path.normpath(path) for path in files or []]

    def write_text(self, text: str) -> None:
        with _OpenClipboard():
            wc.EmptyClipboard()
            wc.SetClipboardData(wc.CF_UNICODETEXT, text)

    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        try:
            image = Image.open(io.BytesIO(data))
            if image.mode == "RGBA":
                background = Image.new("RGB", image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[3])
                image = background
            elif image.mode != "RGB":
                image = image.convert("RGB")
            output = io.BytesIO()
            image.save(output, "BMP")
        except Exception as e:
            raise ClipboardAccessError(f"Failed to convert image: {e}") from e

        # CF_DIB is a BMP without its 14 byte file header
        dib_data = output.getvalue()[14:]
        with _OpenClipboard():
            wc.EmptyClipboard()
            wc.SetClipboardData(win32con.CF_DIB, dib_data)

    def write_files(self, paths: Sequence[str]) -> None:
        # DROPFILES header: pFiles, pt.x, pt.y, fNC, fWide
        header = struct.pack("IiiII", 20, 0, 0, 0, 1)
        body = "".join(f"{path}\0" for path in paths) + "\0"
        with _OpenClipboard():
            wc.EmptyClipboard()
            wc.SetClipboardData(win32con.CF_HDROP, header + body.encode("utf-16-le"))
