"""Invocation history repository."""

from typing import List, Optional

from sqlalchemy import desc

from .database import DatabaseManager, get_db_manager
from .models import InvocationLogModel, InvocationLogCreate, InvocationLogResponse
from ..utils.logging import get_logger, log_execution_time


logger = get_logger("storage.operations")


class InvocationLogRepository:
    """Stores and queries the outcome of past agent invocations."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_db_manager()

    @log_execution_time
    def record(self, log_data: InvocationLogCreate) -> InvocationLogResponse:
        """Persist one invocation outcome."""
        with self.db_manager.session_scope() as session:
            entry = InvocationLogModel(
                started_at=log_data.started_at,
                completed_at=log_data.completed_at,
                outcome=log_data.outcome.value,
                invocation_id=log_data.invocation_id,
                items_uploaded=log_data.items_uploaded,
                items_duplicate=log_data.items_duplicate,
                items_failed=log_data.items_failed,
                watermark_before=log_data.watermark_before,
                watermark_after=log_data.watermark_after,
                error_message=log_data.error_message,
                duration_seconds=log_data.duration_seconds
            )
            session.add(entry)
            session.flush()

            logger.info(
                "Invocation recorded",
                log_id=entry.id,
                outcome=entry.outcome,
                items_uploaded=entry.items_uploaded
            )
            return InvocationLogResponse.model_validate(entry)

    def get_recent(self, limit: int = 10) -> List[InvocationLogResponse]:
        """Most recent invocations first."""
        with self.db_manager.session_scope() as session:
            rows = (
                session.query(InvocationLogModel)
                .order_by(desc(InvocationLogModel.started_at), desc(InvocationLogModel.id))
                .limit(limit)
                .all()
            )
            return [InvocationLogResponse.model_validate(row) for row in rows]

    def count(self) -> int:
        with self.db_manager.session_scope() as session:
            return session.query(InvocationLogModel).count()
