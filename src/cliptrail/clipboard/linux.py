import hashlib
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import unquote, urlparse

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.exceptions import ClipboardAccessError

logger = logging.getLogger(__name__)


class LinuxClipboard(ClipboardBackend):
    """Clipboard access through wl-clipboard (Wayland) or xclip (X11).

    Neither tool exposes a change counter, so the token is derived: it is
    bumped whenever a digest of the offered targets and primary payload
    differs from the previous observation.
    """

    _FILE_TARGETS = ("x-special/gnome-copied-files", "text/uri-list")
    _IMAGE_TARGETS = {
        "image/png": "image/png",
        "image/jpeg": "image/jpeg",
        "image/jpg": "image/jpeg",
        "image/bmp": "image/bmp",
        "image/x-ms-bmp": "image/bmp",
        "image/tiff": "image/tiff",
        "image/webp": "image/webp",
    }
    _TEXT_TARGETS = (
        "text/plain;charset=utf-8",
        "text/plain;charset=utf8",
        "utf8_string",
        "text/plain",
        "string",
    )

    def __init__(self, timeout: float = 1.5) -> None:
        self.timeout = timeout
        self._tool = self._detect_tool()
        self._token = 0
        self._last_digest: Optional[str] = None

    @staticmethod
    def _detect_tool() -> Optional[str]:
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-paste") and shutil.which("wl-copy"):
            return "wayland"
        if shutil.which("xclip"):
            return "xclip"
        return None

    def _require_tool(self) -> str:
        if self._tool is None:
            raise ClipboardAccessError(
                "No clipboard tool found; install wl-clipboard or xclip")
        return self._tool

    # ---------------------------------------------------------------------
    # Change detection
    # ---------------------------------------------------------------------
    def prepare(self) -> int:
        self._require_tool()
        self._last_digest = self._snapshot_digest()
        return self._token

    def change_token(self) -> int:
        digest = self._snapshot_digest()
        if digest != self._last_digest:
            self._last_digest = digest
            self._token += 1
        return self._token

    def _snapshot_digest(self) -> str:
        types = self._list_types()
        hasher = hashlib.md5()
        hasher.update("\n".join(types).encode("utf-8"))
        target = self._primary_target(types)
        if target:
            data = self._read_target(target)
            if data:
                hasher.update(data)
        return hasher.hexdigest()

    def _primary_target(self, types: List[str]) -> Optional[str]:
        lowered = {t.lower(): t for t in types}
        for candidates in (self._TEXT_TARGETS, tuple(self._IMAGE_TARGETS), self._FILE_TARGETS):
            for candidate in candidates:
                if candidate in lowered:
                    return lowered[candidate]
        return None

    # ---------------------------------------------------------------------
    # Readers
    # ---------------------------------------------------------------------
    def read_text(self) -> Optional[str]:
        types = [t.lower() for t in self._list_types()]
        for target in self._TEXT_TARGETS:
            if target in types:
                data = self._read_target(target)
                if data:
                    return data.decode("utf-8", errors="ignore")
        return None

    def read_image(self) -> Optional[bytes]:
        types = [t.lower() for t in self._list_types()]
        for target in self._IMAGE_TARGETS:
            if target in types:
                data = self._read_target(target)
                if data:
                    return data
        return None

    def read_files(self) -> List[str]:
        types = [t.lower() for t in self._list_types()]
        for target in self._FILE_TARGETS:
            if target in types:
                data = self._read_target(target)
                if data:
                    return [str(path) for path in self._parse_paths(data)]
        return []

    # ---------------------------------------------------------------------
    # Writers
    # ---------------------------------------------------------------------
    def write_text(self, text: str) -> None:
        self._write(text.encode("utf-8"), "text/plain;charset=utf-8")

    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        self._write(data, mime)

    def write_files(self, paths: Sequence[str]) -> None:
        uris = "\n".join(Path(path).as_uri() for path in paths)
        self._write(uris.encode("utf-8"), "text/uri-list")

    def _write(self, payload: bytes, mime: str) -> None:
        tool = self._require_tool()
        if tool == "wayland":
            command = ["wl-copy", "--type", mime]
        else:
            command = ["xclip", "-selection", "clipboard", "-t", mime, "-i"]
        try:
            subprocess.run(command, input=payload, check=True, timeout=2.0,
                           stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            raise ClipboardAccessError(f"Failed to write {mime} to clipboard: {e}") from e

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    def _list_types(self) -> List[str]:
        tool = self._require_tool()
        if tool == "wayland":
            command = ["wl-paste", "--list-types"]
        else:
            command = ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"]
        return self._parse_type_list(self._run_command(command))

    def _read_target(self, target: str) -> Optional[bytes]:
        tool = self._require_tool()
        if tool == "wayland":
            command = ["wl-paste", "--type", target]
            if target.lower().startswith("text/"):
                command.append("--no-newline")
        else:
            command = ["xclip", "-selection", "clipboard", "-t", target, "-o"]
        return self._run_command(command)

    @staticmethod
    def _parse_type_list(data: Optional[bytes]) -> List[str]:
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip() for line in text.splitlines() if line.strip()]

    @staticmethod
    def _parse_paths(data: bytes) -> List[Path]:
        text = data.decode("utf-8", errors="ignore")
        lines = [line.strip() for line in text.replace(
            "\r", "\n").split("\n") if line.strip()]
        # gnome-copied-files starts with the operation name
        if lines and lines[0].lower() in {"copy", "cut"}:
            lines = lines[1:]

        paths: List[Path] = []
        for entry in lines:
            if entry.startswith("#"):
                continue
            parsed = urlparse(entry)
            if parsed.scheme == "file":
                candidate = Path(unquote(parsed.path))
            elif parsed.scheme:
                continue
            else:
                candidate = Path(unquote(entry))
            paths.append(candidate)

        return paths

    def _run_command(self, command: List[str]) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=self.timeout,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            return None
