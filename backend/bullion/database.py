# backend/bullion/database.py
"""
Database connection and session management.

This module configures SQLAlchemy with:
- StaticPool for in-memory SQLite (the database lives in one connection)
- A connection per session for SQLite files, so transactions stay separate
- QueuePool for PostgreSQL
- Foreign key enforcement on SQLite (history rows cascade with their asset)
- Health check capabilities
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool, QueuePool

from .config import settings

logger = logging.getLogger(__name__)


def is_memory_sqlite(database_url: str) -> bool:
    """True for SQLite URLs whose database only exists inside its connection."""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return False
    database = url.database or ""
    return database in ("", ":memory:") or url.query.get("mode") == "memory"


def _create_engine(database_url: str | None = None) -> Engine:
    """
    Create SQLAlchemy engine with environment-appropriate configuration.

    Args:
        database_url: Override for settings.database_url

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    database_url = database_url or settings.database_url

    if database_url.lower().startswith("sqlite"):
        if is_memory_sqlite(database_url):
            logger.info("Configuring in-memory SQLite database")
            return create_engine(
                database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=settings.debug,
            )

        # Default pool: each session checks out its own connection
        logger.info("Configuring SQLite file database")
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    logger.info("Configuring PostgreSQL database pool")
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
        pool_timeout=30,
        echo=settings.debug,
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Yields:
        Session: A SQLAlchemy database session that auto-closes after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns:
        dict: Health status with database kind, or the error on failure
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            conn.commit()

        return {
            "status": "healthy",
            "database": "sqlite" if settings.is_sqlite else "postgresql",
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }
