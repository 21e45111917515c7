"""Database models for the camera uploader."""

from datetime import datetime, timezone
from typing import Optional
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base
from pydantic import BaseModel


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvocationOutcome(str, Enum):
    """How one agent invocation ended."""
    DONE = "done"
    BUDGET_EXHAUSTED = "budget_exhausted"
    ABORTED_SESSION = "aborted_session"
    ABORTED_UPLOAD = "aborted_upload"
    ERROR = "error"


# SQLAlchemy Models (Database Tables)

class SettingModel(Base):
    """Generic persisted key/value setting."""

    __tablename__ = "settings"

    key = Column(String(200), primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<SettingModel(key='{self.key}')>"


class InvocationLogModel(Base):
    """One row per agent invocation."""

    __tablename__ = "invocation_logs"

    id = Column(Integer, primary_key=True, index=True)
    invocation_id = Column(String(32), nullable=True, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    outcome = Column(String(30), nullable=False)

    items_uploaded = Column(Integer, default=0, nullable=False)
    items_duplicate = Column(Integer, default=0, nullable=False)
    items_failed = Column(Integer, default=0, nullable=False)

    watermark_before = Column(String(64), nullable=True)
    watermark_after = Column(String(64), nullable=True)

    error_message = Column(Text, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<InvocationLogModel(id={self.id}, outcome='{self.outcome}')>"


# Pydantic Models (Transfer Objects)

class SettingResponse(BaseModel):
    """Pydantic model for a stored setting."""
    key: str
    value: str
    updated_at: datetime

    class Config:
        from_attributes = True


class InvocationLogCreate(BaseModel):
    """Pydantic model for recording an invocation."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcome: InvocationOutcome
    invocation_id: Optional[str] = None
    items_uploaded: int = 0
    items_duplicate: int = 0
    items_failed: int = 0
    watermark_before: Optional[str] = None
    watermark_after: Optional[str] = None
    error_message: Optional[str] = None
    duration_seconds: Optional[int] = None


class InvocationLogResponse(BaseModel):
    """Pydantic model for an invocation log row."""
    id: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcome: str
    invocation_id: Optional[str] = None
    items_uploaded: int
    items_duplicate: int
    items_failed: int
    watermark_before: Optional[str] = None
    watermark_after: Optional[str] = None
    error_message: Optional[str] = None
    duration_seconds: Optional[int] = None

    class Config:
        from_attributes = True
