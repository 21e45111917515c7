"""Local media library interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Callable, List

from ..utils.logging import get_logger


@dataclass
class MediaItem:
    """One photo in the device library. Read-only."""

    name: str
    captured_at: datetime
    opener: Callable[[], BinaryIO] = field(repr=False, compare=False)

    def open(self) -> BinaryIO:
        """Open the raw image byte stream; the caller closes it."""
        return self.opener()


class BaseMediaLibrary(ABC):
    """Abstract source of local media items."""

    def __init__(self, **kwargs):
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    def list_items(self) -> List[MediaItem]:
        """Enumerate every item in the library, in any order."""
        pass
