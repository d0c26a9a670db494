from abc import ABC, abstractmethod
from typing import Optional, Sequence


class ClipboardBackend(ABC):
    """Typed access to the host clipboard.

    Readers return ``None`` (or an empty list) when the slot is empty; they
    raise ``ClipboardAccessError`` when the clipboard cannot be read at all.
    Image data is returned undecoded; classification happens in the poller.
    """

    def prepare(self) -> int:
        """Make the clipboard ready for observation and return its change token."""
        return self.change_token()

    @abstractmethod
    def change_token(self) -> int:
        pass

    @abstractmethod
    def read_text(self) -> Optional[str]:
        pass

    @abstractmethod
    def read_image(self) -> Optional[bytes]:
        pass

    @abstractmethod
    def read_files(self) -> Sequence[str]:
        pass

    @abstractmethod
    def write_text(self, text: str) -> None:
        pass

    @abstractmethod
    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        pass

    @abstractmethod
    def write_files(self, paths: Sequence[str]) -> None:
        pass
