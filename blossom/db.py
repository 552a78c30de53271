"""
Process-wide database engine and session management.

The engine is created on first use and kept for the lifetime of the process
until `dispose_engine()` is called at shutdown. Tables are managed by Alembic
(see `migrations/`) and accessed through reflection.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import MetaData, Table, create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker

from blossom.config import ConfigError, get_config
from blossom.logging import get_logger

logger = get_logger(__name__)

SHOPS_TABLE = "shops"

# Global engine and session factory (initialized on first use).
_engine: Optional[Engine] = None
_SessionLocal = None


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        config = get_config()
        if not config.database_url:
            raise ConfigError(
                ["DATABASE_URL: missing required environment variable"]
            )
        _engine = create_engine(
            config.database_url,
            pool_pre_ping=True,
            echo=False,
        )
        logger.info("database_engine_created", dialect=_engine.dialect.name)
    return _engine


def get_session_factory():
    """Get or create the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine(),
        )
    return _SessionLocal


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits when the block exits cleanly, rolls back and re-raises otherwise.

    Usage:
        with get_db_session() as session:
            ShopRepository(session).find_by_domain("demo.myshopify.com")
    """
    factory = get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_database_healthy() -> bool:
    """
    Run a trivial round trip against the database.

    Returns False on any failure, including a missing DATABASE_URL. Only the
    error type is logged; connection strings may embed credentials.
    """
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("database_health_check_failed", error_type=type(e).__name__)
        return False


def dispose_engine() -> None:
    """Release the engine's pool. No-op when no engine was created."""
    global _engine, _SessionLocal
    if _engine is None:
        return
    _engine.dispose()
    _engine = None
    _SessionLocal = None
    logger.info("database_engine_disposed")


@contextmanager
def engine_lifespan() -> Generator[Engine, None, None]:
    """Yield the process engine and dispose of it when the block exits."""
    try:
        yield get_engine()
    finally:
        dispose_engine()


def get_shops_table(bind: Optional[Engine | Connection] = None) -> Table:
    """Reflect the shops table from the given bind (defaults to the process engine)."""
    metadata = MetaData()
    metadata.reflect(bind=bind if bind is not None else get_engine(), only=[SHOPS_TABLE])
    return metadata.tables[SHOPS_TABLE]
