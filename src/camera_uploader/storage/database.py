"""State database: engine, sessions and the process-wide manager."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .models import Base
from ..config.settings import get_settings
from ..utils.logging import get_logger


logger = get_logger("storage.database")


def _enable_sqlite_durability(engine: Engine):
    """WAL journal, with every commit synced to disk before it returns."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.close()


class DatabaseManager:
    """Owns the engine and hands out transactional sessions for the state tables."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or get_settings().database.url
        self.url = make_url(self.database_url)
        self.is_sqlite = self.url.get_backend_name() == "sqlite"

        if self.is_sqlite:
            # One process, one agent: a single shared connection is enough
            self.engine = create_engine(
                self.url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False, "timeout": 20}
            )
            _enable_sqlite_durability(self.engine)
        else:
            self.engine = create_engine(self.url, pool_pre_ping=True)

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        logger.info("State database opened", backend=self.url.get_backend_name(), database=self.url.database)

    def create_tables(self):
        """Create the state tables, and the SQLite file's directory if needed."""
        if self.is_sqlite and self.url.database and self.url.database != ":memory:":
            Path(self.url.database).parent.mkdir(parents=True, exist_ok=True)

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.error("Failed to create state tables", error=str(e))
            raise

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Commit on success, roll back on any error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error("State transaction rolled back", error=str(e))
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("State database unreachable", error=str(e))
            return False
        return True

    def dispose(self):
        self.engine.dispose()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Process-wide manager, created from settings on first use."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def init_database(database_url: Optional[str] = None, create_tables: bool = True) -> DatabaseManager:
    """Open the state database and make it the process-wide manager.

    Raises:
        RuntimeError: If the database cannot be reached
    """
    global _db_manager
    manager = DatabaseManager(database_url)

    if create_tables:
        manager.create_tables()

    if not manager.test_connection():
        manager.dispose()
        raise RuntimeError(f"Cannot connect to state database {manager.url.database}")

    _db_manager = manager
    return manager


def close_database():
    global _db_manager
    if _db_manager is not None:
        _db_manager.dispose()
        _db_manager = None
