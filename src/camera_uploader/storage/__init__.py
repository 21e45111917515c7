"""Persistence package: settings store, watermark and invocation history."""

from .database import (
    DatabaseManager,
    get_db_manager,
    init_database,
    close_database
)

from .models import (
    SettingModel,
    InvocationLogModel,
    SettingResponse,
    InvocationLogCreate,
    InvocationLogResponse,
    InvocationOutcome
)

from .settings_store import SettingsStore, SettingsStoreError
from .progress import ProgressStore, MIN_WATERMARK, to_utc
from .operations import InvocationLogRepository

__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "init_database",
    "close_database",

    # Models
    "SettingModel",
    "InvocationLogModel",
    "SettingResponse",
    "InvocationLogCreate",
    "InvocationLogResponse",
    "InvocationOutcome",

    # Stores
    "SettingsStore",
    "SettingsStoreError",
    "ProgressStore",
    "MIN_WATERMARK",
    "to_utc",
    "InvocationLogRepository"
]
