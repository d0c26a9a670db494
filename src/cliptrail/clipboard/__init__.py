"""
Cross-platform clipboard access.

This package provides typed clipboard read/write slots and a change token
across different operating systems through a unified interface.
"""

from cliptrail.clipboard.base import ClipboardBackend
from cliptrail.clipboard.factory import get_clipboard_backend, get_clipboard_class

__all__ = [
    'ClipboardBackend',
    'get_clipboard_backend',
    'get_clipboard_class',
]
