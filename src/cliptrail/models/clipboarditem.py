from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Tuple, Union

import ulid


@dataclass(frozen=True)
class TextContent:
	text: str


@dataclass(frozen=True)
class ImageContent:
	"""Raw image bytes as read from the clipboard plus decoded pixel size."""
	data: bytes = field(repr=False)
	width: int
	height: int
	mime: str = "image/png"

	@property
	def size(self) -> Tuple[int, int]:
		return self.width, self.height


@dataclass(frozen=True)
class FileListContent:
	paths: Tuple[str, ...]


@dataclass(frozen=True)
class UnknownContent:
	pass


ClipboardContent = Union[TextContent, ImageContent, FileListContent, UnknownContent]


def unhandled_content(content: object) -> TypeError:
	return TypeError(f"Unhandled clipboard content: {content!r}")


@dataclass(frozen=True)
class ClipboardItem:
	"""Immutable clipboard history entry."""
	content: ClipboardContent
	item_id: str = field(default_factory=lambda: f"i_{ulid.new()}")
	created_at: datetime = field(default_factory=datetime.now)

	@property
	def kind(self) -> str:
		content = self.content
		if isinstance(content, TextContent):
			return "text"
		if isinstance(content, ImageContent):
			return "image"
		if isinstance(content, FileListContent):
			return "file"
		if isinstance(content, UnknownContent):
			return "unknown"
		raise unhandled_content(content)

	@property
	def preview(self) -> str:
		content = self.content
		if isinstance(content, TextContent):
			text = content.text
			return text[:50] + "..." if len(text) > 50 else text
		if isinstance(content, ImageContent):
			return f"Image ({content.width}x{content.height})"
		if isinstance(content, FileListContent):
			if not content.paths:
				return "File"
			first = Path(content.paths[0]).name
			extra = len(content.paths) - 1
			return f"{first} and {extra} more file(s)" if extra else first
		if isinstance(content, UnknownContent):
			return "Unknown format"
		raise unhandled_content(content)
