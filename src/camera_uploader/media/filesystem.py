"""Photo library backed by a local directory tree."""

import functools
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Iterable, List, Optional

from PIL import Image, UnidentifiedImageError

from .base import BaseMediaLibrary, MediaItem


EXIF_IFD_POINTER = 0x8769
# DateTimeOriginal, DateTimeDigitized (Exif IFD)
EXIF_DATE_TAGS = (36867, 36868)
# DateTime (0th IFD)
IMAGE_DATE_TAG = 306
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


def read_capture_time(path: Path, exif_tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """Capture time from EXIF in UTC, or None when the file carries no usable date.

    EXIF dates are camera wall-clock time without a zone; they are read in
    ``exif_tz`` and converted to UTC. File modification times are already
    true UTC and need no such shift.
    """
    try:
        with Image.open(path) as img:
            exif = img.getexif()
            candidates = [exif.get_ifd(EXIF_IFD_POINTER).get(tag) for tag in EXIF_DATE_TAGS]
            candidates.append(exif.get(IMAGE_DATE_TAG))
    except (OSError, UnidentifiedImageError, ValueError):
        return None

    for value in candidates:
        if not value:
            continue
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="ignore")
        try:
            wall_clock = datetime.strptime(str(value).strip("\x00 "), EXIF_DATE_FORMAT)
            return wall_clock.replace(tzinfo=exif_tz).astimezone(timezone.utc)
        except ValueError:
            continue

    return None


class FileSystemMediaLibrary(BaseMediaLibrary):
    """Enumerates image files below a directory."""

    def __init__(
        self,
        root: str,
        extensions: Optional[Iterable[str]] = None,
        exif_utc_offset_minutes: int = 0,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.root = Path(root)
        self.extensions = {ext.lower() for ext in (extensions or [".jpg", ".jpeg", ".png"])}
        # Fixed offset of the camera clock; daylight saving changes are not modelled
        self.exif_tz = timezone(timedelta(minutes=exif_utc_offset_minutes))

    def list_items(self) -> List[MediaItem]:
        if not self.root.is_dir():
            self.logger.warning("Media directory does not exist", path=str(self.root))
            return []

        items = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in self.extensions:
                continue

            try:
                captured_at = read_capture_time(path, self.exif_tz)
                if captured_at is None:
                    captured_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except OSError as e:
                self.logger.warning("Skipping unreadable media file", path=str(path), error=str(e))
                continue

            items.append(MediaItem(
                name=path.name,
                captured_at=captured_at,
                opener=functools.partial(open, path, "rb")
            ))

        self.logger.info("Enumerated media library", path=str(self.root), items=len(items))
        return items
