"""Local media library sources."""

from .base import BaseMediaLibrary, MediaItem
from .filesystem import FileSystemMediaLibrary, read_capture_time

__all__ = [
    "BaseMediaLibrary",
    "MediaItem",
    "FileSystemMediaLibrary",
    "read_capture_time"
]
