"""
Database Session Management

One lazily created engine per process and a session factory bound to it.
PostgreSQL in production, SQLite for local development and tests.

Tracking endpoints, the analysis pipeline and the admin routers all write
through short-lived sessions; no session is held across provider I/O.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from ..utils.config import Settings, get_settings
from .models import Base

logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE
# =============================================================================

def get_database_url(settings: Optional[Settings] = None) -> str:
    """
    Resolve the database URL: DATABASE_URL, then POSTGRES_URL, then SQLite.

    postgres:// URLs from hosting providers are rewritten to postgresql://.
    """
    settings = settings or get_settings()
    url = settings.DATABASE_URL or settings.POSTGRES_URL
    if url:
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url

    logger.warning(f"No DATABASE_URL configured, using SQLite file {settings.SQLITE_PATH}")
    return f"sqlite:///{settings.SQLITE_PATH}"


def create_db_engine(url: Optional[str] = None, settings: Optional[Settings] = None) -> Engine:
    """
    Build an engine for the given (or configured) URL.

    PostgreSQL gets a pre-pinged connection pool. SQLite is shared across
    threads (FastAPI runs sync endpoints in a threadpool) and enforces
    foreign keys, which tracking_events relies on.
    """
    settings = settings or get_settings()
    url = url or get_database_url(settings)

    if url.startswith("postgresql"):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=settings.SQL_DEBUG,
        )
        logger.info("Created PostgreSQL engine")
        return engine

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        echo=settings.SQL_DEBUG,
    )

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    logger.info(f"Created SQLite engine ({url})")
    return engine


_engine: Optional[Engine] = None
_SessionLocal = None


def get_engine() -> Engine:
    """Process-wide engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def configure_engine(url: str) -> Engine:
    """Point the process at another database (tests use a temporary SQLite file)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = create_db_engine(url)
    _SessionLocal = None
    return _engine


def reset_engine() -> None:
    """Dispose the engine; the next access recreates it from settings."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


# =============================================================================
# SESSIONS
# =============================================================================

def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        # Results are returned after commit, so keep attributes loaded
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency. The endpoint commits what it wants to keep.

    Usage:
        @router.get("/api/leads")
        def list_leads(db: Session = Depends(get_db)):
            return repository.list_leads(db)
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Session scope for code outside a request. Commits on success, rolls back on error.

    Usage:
        with get_db_context() as db:
            analysis = repository.create_analysis(db, ...)
    """
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """
    Commit a group of writes on an existing session, or roll all of them back.

    Usage:
        with transaction(db):
            for recommendation_id in ids:
                repository.review_recommendation(db, recommendation_id, status)
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


# =============================================================================
# INITIALIZATION
# =============================================================================

def init_db(drop_all: bool = False) -> None:
    """
    Create all tables.

    Args:
        drop_all: Drop every table first (destroys data)
    """
    engine = get_engine()
    if drop_all:
        logger.warning("Dropping all database tables")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


def check_db_connection() -> bool:
    """True when a trivial query succeeds."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
