"""Clipboard poller.

Checks the clipboard change token on a fixed cadence, classifies new content
and hands accepted items to the history store.
"""

import io
import logging
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlparse

from PIL import Image, UnidentifiedImageError

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.exceptions import ClipboardAccessError
from cliptrail.models.clipboarditem import (
    ClipboardContent,
    ClipboardItem,
    FileListContent,
    ImageContent,
    TextContent,
)
from cliptrail.services.history_service import HistoryStore
from cliptrail.utils.log_sink import LogSink
from cliptrail.utils.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5


def decode_image(data: bytes) -> Optional[ImageContent]:
    """Return the image with its pixel size, or ``None`` if Pillow cannot decode it."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            width, height = image.size
            mime = Image.MIME.get(image.format or "", "image/png")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError):
        return None
    return ImageContent(data=data, width=width, height=height, mime=mime)


def resolve_paths(entries: Iterable[str]) -> List[str]:
    """Keep entries that resolve to absolute filesystem paths, in order."""
    paths: List[str] = []
    for entry in entries:
        if not entry:
            continue
        parsed = urlparse(entry)
        if parsed.scheme == "file":
            candidate = Path(unquote(parsed.path))
        else:
            candidate = Path(entry).expanduser()
        if candidate.is_absolute():
            paths.append(str(candidate))
    return paths


class ClipboardPoller:

    def __init__(
        self,
        backend: ClipboardBackend,
        history: HistoryStore,
        scheduler: Scheduler,
        log: LogSink,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._backend = backend
        self._history = history
        self._scheduler = scheduler
        self._log = log
        self.poll_interval = poll_interval
        self._timer: Optional[TimerHandle] = None
        self._initialized = False
        self._last_token: Optional[int] = None
        self._last_init_error: Optional[str] = None
        self.changes_seen = 0

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    def start(self, force: bool = False) -> None:
        if self._timer is not None and not force:
            self._log.info("Clipboard monitoring already started")
            return

        self._log.info("Starting clipboard monitoring")
        self.stop()

        if force:
            self._initialized = False
        if not self._initialized:
            self._initialize()

        self._timer = self._scheduler.call_repeating(self.poll_interval, self.tick)

    def stop(self) -> None:
        if self._timer is not None:
            self._log.info("Stopping clipboard monitoring")
            self._scheduler.cancel(self._timer)
            self._timer = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _initialize(self) -> None:
        self.changes_seen = 0
        try:
            self._last_token = self._backend.prepare()
        except ClipboardAccessError as e:
            message = str(e)
            if message != self._last_init_error:
                self._log.error(f"Error initializing clipboard: {message}")
                self._last_init_error = message
            return
        self._initialized = True
        self._last_init_error = None
        self._log.info(f"Clipboard initialized (token: {self._last_token})")

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    def tick(self) -> None:
        if not self._initialized:
            logger.debug("Clipboard not initialized")
            self._initialize()
            return

        try:
            token = self._backend.change_token()
        except ClipboardAccessError as e:
            self._log.warning(f"Clipboard read failed: {e}")
            return

        if token == self._last_token:
            return
        self._last_token = token
        self.changes_seen += 1

        try:
            content = self._classify()
        except ClipboardAccessError as e:
            self._log.warning(f"Received clipboard change, but failed to read it: {e}")
            return

        if content is None:
            self._log.info("Received clipboard change, but failed to recognize data type")
            return

        self._history.add_item(ClipboardItem(content))

    def _classify(self) -> Optional[ClipboardContent]:
        text = self._backend.read_text()
        if text:
            return TextContent(text)

        image = decode_image(self._backend.read_image() or b"")
        if image is not None:
            return image

        paths = resolve_paths(self._backend.read_files())
        if paths:
            return FileListContent(tuple(paths))

        return None
