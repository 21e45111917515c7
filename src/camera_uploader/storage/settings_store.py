"""Generic key/value settings persistence."""

import json
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from .database import DatabaseManager, get_db_manager
from .models import SettingModel, SettingResponse
from ..utils.logging import get_logger


logger = get_logger("storage.settings")


class SettingsStoreError(Exception):
    """Raised when a setting cannot be read or written."""
    pass


class SettingsStore:
    """JSON-encoded settings keyed by name.

    Each write happens in its own transaction, so a value is either fully
    replaced or left untouched.
    """

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_db_manager()

    def load_setting(self, key: str, default: Any = None) -> Any:
        """Return the decoded value stored under ``key`` or ``default``."""
        try:
            with self.db_manager.session_scope() as session:
                record = session.get(SettingModel, key)
                raw = record.value if record else None
        except SQLAlchemyError as e:
            raise SettingsStoreError(f"Failed to load setting '{key}': {e}") from e

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise SettingsStoreError(f"Setting '{key}' is not valid JSON: {e}") from e

    def save_setting(self, key: str, value: Any) -> None:
        """Insert or overwrite ``key`` with the JSON encoding of ``value``."""
        encoded = json.dumps(value)

        try:
            with self.db_manager.session_scope() as session:
                record = session.get(SettingModel, key)
                if record is None:
                    session.add(SettingModel(key=key, value=encoded))
                else:
                    record.value = encoded
        except SQLAlchemyError as e:
            raise SettingsStoreError(f"Failed to save setting '{key}': {e}") from e

        logger.debug("Setting saved", key=key)

    def delete_setting(self, key: str) -> bool:
        """Remove ``key``; returns False when it was not present."""
        try:
            with self.db_manager.session_scope() as session:
                record = session.get(SettingModel, key)
                if record is None:
                    return False
                session.delete(record)
        except SQLAlchemyError as e:
            raise SettingsStoreError(f"Failed to delete setting '{key}': {e}") from e

        logger.info("Setting deleted", key=key)
        return True

    def get_record(self, key: str) -> Optional[SettingResponse]:
        """Return the raw stored row, including its update time."""
        try:
            with self.db_manager.session_scope() as session:
                record = session.get(SettingModel, key)
                return SettingResponse.model_validate(record) if record else None
        except SQLAlchemyError as e:
            raise SettingsStoreError(f"Failed to read setting '{key}': {e}") from e
