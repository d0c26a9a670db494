import logging
from typing import Callable, List, Optional, Tuple

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.exceptions import ClipboardAccessError
from cliptrail.models.clipboarditem import (
    ClipboardItem,
    FileListContent,
    ImageContent,
    TextContent,
    UnknownContent,
    unhandled_content,
)
from cliptrail.utils.log_sink import LogSink

logger = logging.getLogger(__name__)


def is_duplicate(previous: ClipboardItem, candidate: ClipboardItem) -> bool:
    """Kind-specific equality used to collapse repeated copies.

    Images compare by pixel dimensions only, so two different images of the
    same size count as duplicates. This is a known approximation.
    """
    old, new = previous.content, candidate.content
    if type(old) is not type(new):
        return False
    if isinstance(new, TextContent):
        return old.text == new.text
    if isinstance(new, ImageContent):
        return old.size == new.size
    if isinstance(new, FileListContent):
        return old.paths == new.paths
    if isinstance(new, UnknownContent):
        return True
    raise unhandled_content(new)


class HistoryStore:
    """Newest-first clipboard history bounded by ``max_items()``."""

    def __init__(
        self,
        max_items: Callable[[], int],
        writer: ClipboardBackend,
        log: LogSink,
        on_change: Optional[Callable[[Tuple[ClipboardItem, ...]], None]] = None,
        on_pasted: Optional[Callable[[ClipboardItem], None]] = None,
    ) -> None:
        self._max_items = max_items
        self._writer = writer
        self._log = log
        self._on_change = on_change
        self._on_pasted = on_pasted
        self._items: List[ClipboardItem] = []

    # ---------------------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------------------
    def add_item(self, item: ClipboardItem) -> bool:
        if self._items and is_duplicate(self._items[0], item):
            logger.debug("Skipping duplicate %s item", item.kind)
            return False
        if any(existing.item_id == item.item_id for existing in self._items):
            logger.debug("Skipping item with known id %s", item.item_id)
            return False

        self._items.insert(0, item)
        self._log_added(item)
        self._enforce_bound()
        self._changed()
        return True

    def clear(self) -> None:
        self._items.clear()
        self._log.info("History cleared")
        self._changed()

    def truncate(self, max_items: Optional[int] = None) -> int:
        """Drop the oldest entries beyond ``max_items``; returns how many went."""
        dropped = self._enforce_bound(max_items)
        if dropped:
            self._changed()
        return dropped

    def _enforce_bound(self, max_items: Optional[int] = None) -> int:
        limit = self._max_items() if max_items is None else max_items
        dropped = 0
        while len(self._items) > limit:
            self._items.pop()
            dropped += 1
        return dropped

    def _log_added(self, item: ClipboardItem) -> None:
        content = item.content
        if isinstance(content, TextContent):
            self._log.info(f"Added new text: {content.text[:20]}...")
        elif isinstance(content, ImageContent):
            self._log.info(f"Added new image ({content.width}x{content.height})")
        elif isinstance(content, FileListContent):
            self._log.info(f"Added file(s): {len(content.paths)} items")
        elif isinstance(content, UnknownContent):
            self._log.info("Added unknown type element")
        else:
            raise unhandled_content(content)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())

    # ---------------------------------------------------------------------
    # Paste-back
    # ---------------------------------------------------------------------
    def paste_item(self, index: int) -> bool:
        """Write the item at ``index`` back to the clipboard.

        Out-of-range indexes and write failures are logged and leave both the
        clipboard and the history untouched.
        """
        if not 0 <= index < len(self._items):
            self._log.error(f"Error inserting: invalid index {index}")
            return False

        item = self._items[index]
        content = item.content
        try:
            if isinstance(content, TextContent):
                self._writer.write_text(content.text)
                self._log.info(f"Inserted text: {content.text[:20]}...")
            elif isinstance(content, ImageContent):
                self._writer.write_image(content.data, content.mime)
                self._log.info("Inserted image")
            elif isinstance(content, FileListContent):
                self._writer.write_files(content.paths)
                self._log.info(f"Inserted file(s): {len(content.paths)} items")
            elif isinstance(content, UnknownContent):
                self._log.warning("Attempt to insert unknown data type")
                return False
            else:
                raise unhandled_content(content)
        except ClipboardAccessError as e:
            self._log.error(f"Error inserting {item.kind}: {e}")
            return False

        if self._on_pasted is not None:
            self._on_pasted(item)
        return True

    # ---------------------------------------------------------------------
    # Read access
    # ---------------------------------------------------------------------
    def snapshot(self) -> Tuple[ClipboardItem, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)
