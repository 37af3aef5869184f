"""Database configuration and session management"""

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
from taskmanager.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite (used by tests and local runs) gets a single shared connection;
    PostgreSQL gets the pooled configuration.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.DEBUG
        )
    return create_engine(
        url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=settings.DEBUG
    )


engine = build_engine(settings.get_database_url())

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

# Import models after Base is defined so metadata is populated.
from taskmanager import models  # noqa: E402,F401


def get_session_factory() -> sessionmaker:
    """Session factory for work that outlives the request (background cleanup)"""
    return SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _has_migration_table() -> bool:
    with engine.connect() as conn:
        return "alembic_version" in inspect(conn).get_table_names()


def init_db() -> None:
    """
    Prepare the schema according to DB_INIT_MODE.

      - migrate: tables are owned by Alembic; refuse to start without a
        migration table when DB_REQUIRE_HEAD is set
      - create_all: build tables straight from model metadata (tests, local runs)
      - off: do nothing
    """
    mode = settings.DB_INIT_MODE.strip().lower()
    if mode == "off":
        logger.info("Skipping database initialization (DB_INIT_MODE=off)")
        return
    if mode == "create_all":
        Base.metadata.create_all(bind=engine)
        logger.info("Created tables from model metadata")
        return
    if mode != "migrate":
        raise RuntimeError(f"Unknown DB_INIT_MODE: {settings.DB_INIT_MODE}")

    if not _has_migration_table():
        if settings.DB_REQUIRE_HEAD:
            raise RuntimeError("Migration table missing. Run `alembic upgrade head` before starting the API.")
        logger.warning("No alembic_version table found; continuing because DB_REQUIRE_HEAD is off")
        return
    logger.info("Migration metadata detected")
