"""Durable upload watermark."""

from datetime import datetime, timezone
from typing import Optional

from .settings_store import SettingsStore
from ..config.settings import get_settings
from ..utils.logging import get_logger


# Value returned when no upload has ever completed
MIN_WATERMARK = datetime.min.replace(tzinfo=timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ProgressStore:
    """Capture timestamp of the last durably uploaded media item.

    Every item captured at or before the stored value has been uploaded. The
    value only ever moves forward.
    """

    def __init__(self, settings_store: SettingsStore, key: Optional[str] = None):
        self.settings_store = settings_store
        self.key = key or get_settings().upload.watermark_key
        self.logger = get_logger(self.__class__.__name__)

    def load(self) -> datetime:
        stored = self.settings_store.load_setting(self.key)
        if not stored:
            return MIN_WATERMARK

        try:
            return to_utc(datetime.fromisoformat(stored))
        except (TypeError, ValueError):
            self.logger.warning("Ignoring unreadable watermark", key=self.key, value=stored)
            return MIN_WATERMARK

    def save(self, watermark: datetime) -> bool:
        """Persist ``watermark``; refuses to move it backwards.

        Returns:
            True if the value was written
        """
        watermark = to_utc(watermark)
        current = self.load()

        if watermark < current:
            self.logger.warning(
                "Refusing to move watermark backwards",
                current=current.isoformat(),
                requested=watermark.isoformat()
            )
            return False

        self.settings_store.save_setting(self.key, watermark.isoformat())
        self.logger.info("Watermark saved", watermark=watermark.isoformat())
        return True
