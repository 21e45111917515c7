"""Configuration package for the camera uploader."""

from .settings import (
    DatabaseSettings,
    RemoteSettings,
    GoogleDriveSettings,
    UploadSettings,
    SchedulingSettings,
    LoggingSettings,
    AppSettings,
    get_settings,
    reload_settings
)

__all__ = [
    "DatabaseSettings",
    "RemoteSettings",
    "GoogleDriveSettings",
    "UploadSettings",
    "SchedulingSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",
    "reload_settings"
]
