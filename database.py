"""
Database management layer.

Owns the SQLAlchemy engine and session factory shared by request handlers
and workflow threads. SQLite is the default backend; any SQLAlchemy URL
(e.g. PostgreSQL) works.
"""

from contextlib import contextmanager
from typing import Generator, List, Optional
from sqlalchemy import create_engine, event, inspect, text, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from config import get_settings
import logging

logger = logging.getLogger(__name__)

# Milliseconds a SQLite writer waits for a competing workflow thread's lock
SQLITE_BUSY_TIMEOUT_MS = 5000


class DatabaseManager:
    """
    Manages the engine, sessions and schema for the study database.

    Tables: user_states, cache_entries, workflow_runs, workflow_steps.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.settings = get_settings()
        self.database_url = database_url or str(self.settings.database_url)
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Session factory handed to the workflow runner and get_db."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False
            )
        return self._session_factory

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def _create_engine(self) -> Engine:
        """
        Create the engine for the configured URL.

        SQLite connections are used from background workflow threads, so the
        same-thread check is off and writers wait on a busy timeout instead of
        failing on a locked database.
        """
        logger.info(f"Creating database engine for: {self._masked_url()}")
        echo = self.settings.log_level == "DEBUG"

        if self.is_sqlite:
            engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                echo=echo,
            )
            event.listen(engine, "connect", _configure_sqlite_connection)
        else:
            engine = create_engine(
                self.database_url,
                poolclass=QueuePool,
                pool_size=self.settings.db_pool_size,
                max_overflow=self.settings.db_max_overflow,
                pool_timeout=self.settings.db_pool_timeout,
                pool_pre_ping=True,
                echo=echo,
            )

        logger.info("Database engine created successfully")
        return engine

    def create_all(self) -> List[str]:
        """
        Create any missing tables.

        Returns:
            Names of the tables present afterwards
        """
        from shared.models.entities import Base

        Base.metadata.create_all(bind=self.engine)
        tables = sorted(inspect(self.engine).get_table_names())
        logger.info(f"Database schema ready: {', '.join(tables)}")
        return tables

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transactional scope: commits on success, rolls back and re-raises
        on any error.

        Usage:
            with db_manager.session_scope() as session:
                CacheService(session).purge_expired()
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database health check passed")
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        """Dispose of pooled connections."""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine closed")

    def _masked_url(self) -> str:
        """The database URL with any password replaced by ****."""
        scheme, sep, rest = self.database_url.partition("://")
        credentials, at, host = rest.rpartition("@")
        if not sep or not at or ":" not in credentials:
            return self.database_url
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:****@{host}"


def _configure_sqlite_connection(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
    cursor.close()


# Global database manager instance
_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    """Get or create the global database manager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a request-scoped session.

    Usage:
        @router.get("/api/progress")
        def overall_progress(db: Session = Depends(get_db)):
            return StudyStateStore(db, user_id).get_overall_progress()
    """
    session = get_db_manager().session_factory()
    try:
        yield session
    finally:
        session.close()


def reset_db_manager():
    """Reset the global database manager (useful for testing)."""
    global _db_manager
    if _db_manager:
        _db_manager.close()
    _db_manager = None
