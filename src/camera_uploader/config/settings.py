"""Application configuration settings."""

from typing import Optional, List
from pydantic import Field
from pydantic_settings import BaseSettings


class DatabaseSettings(BaseSettings):
    """Settings database configuration (credential token, watermark, run history)."""

    url: str = Field(default="sqlite:///./data/camera_uploader.db")

    class Config:
        env_prefix = "DB_"


class RemoteSettings(BaseSettings):
    """Remote storage account configuration."""

    provider: str = Field(default="google_drive")
    credential_key: str = Field(default="remote_credential_token")

    class Config:
        env_prefix = "REMOTE_"


class GoogleDriveSettings(BaseSettings):
    """Google Drive API configuration."""

    application_name: str = Field(default="Camera Uploader")
    page_size: int = Field(default=1000)

    class Config:
        env_prefix = "GOOGLE_"


class UploadSettings(BaseSettings):
    """Camera upload behaviour."""

    destination_folder_name: str = Field(default="Camera Uploads")
    working_directory: str = Field(default="./data/uploads")
    media_directory: str = Field(default="./media")
    media_extensions: List[str] = Field(
        default=[".jpg", ".jpeg", ".png", ".heic", ".gif", ".bmp", ".tif", ".tiff"]
    )
    watermark_key: str = Field(default="LastUploadDate")
    # Camera clock offset from UTC, applied to EXIF dates
    exif_utc_offset_minutes: int = Field(default=0)

    # Destination folder settling after a create request
    settle_interval_seconds: float = Field(default=5.0)
    settle_attempts: int = Field(default=3)
    settle_backoff: float = Field(default=2.0)

    # Execution-time budget for one invocation
    max_run_seconds: float = Field(default=25.0)

    class Config:
        env_prefix = "UPLOAD_"


class SchedulingSettings(BaseSettings):
    """Scheduling configuration."""

    enabled: bool = Field(default=True)
    interval_minutes: int = Field(default=30)
    run_on_start: bool = Field(default=True)

    class Config:
        env_prefix = "SCHEDULE_"


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="json")
    file_path: Optional[str] = Field(default="./logs/camera_uploader.log")

    class Config:
        env_prefix = "LOG_"


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="Camera Uploader")
    version: str = Field(default="1.0.0")
    environment: str = Field(default="development")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    google_drive: GoogleDriveSettings = Field(default_factory=GoogleDriveSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_prefix = "APP_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings


def reload_settings() -> AppSettings:
    """Re-read settings from the environment and ``.env``."""
    global settings
    settings = AppSettings()
    return settings
