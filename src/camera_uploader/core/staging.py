"""Working directory for transient staged copies of media items."""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..media.base import MediaItem
from ..utils.logging import get_logger


class StagingError(Exception):
    """Raised when a media item cannot be copied into the working directory."""
    pass


@dataclass
class StagedFile:
    item: MediaItem
    path: Path

    def discard(self):
        """Delete the staged copy; missing files are fine."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class WorkingDirectory:
    """Holds at most one staged file at a time."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = get_logger(self.__class__.__name__)

    def ensure(self):
        self.path.mkdir(parents=True, exist_ok=True)

    def purge(self) -> int:
        """Remove files left behind by an interrupted invocation."""
        if not self.path.is_dir():
            return 0

        removed = 0
        for entry in self.path.iterdir():
            if entry.is_file():
                entry.unlink()
                removed += 1

        if removed:
            self.logger.warning("Purged stale staged files", count=removed, path=str(self.path))
        return removed

    def is_empty(self) -> bool:
        return not self.path.is_dir() or not any(self.path.iterdir())

    def stage(self, item: MediaItem) -> StagedFile:
        """Copy the item's byte stream to ``<working dir>/<item name>``.

        Raises:
            StagingError: On any I/O failure; no partial file is left behind
        """
        target = self.path / os.path.basename(item.name)
        staged = StagedFile(item=item, path=target)

        try:
            self.ensure()
            with item.open() as source, open(target, "wb") as destination:
                shutil.copyfileobj(source, destination)
                destination.flush()
                os.fsync(destination.fileno())
        except OSError as e:
            staged.discard()
            raise StagingError(f"Failed to stage {item.name}: {e}") from e

        self.logger.debug("Staged media item", name=item.name, path=str(target))
        return staged
