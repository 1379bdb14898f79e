"""
Database configuration and session management.

Provides SQLAlchemy engine, session factory, and dependency injection
for FastAPI endpoints.
"""

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from contextlib import contextmanager
import logging

from .config import settings
from .db_models import Base

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

logger.info(f"Database URL: {DATABASE_URL.split('@')[-1] if '@' in DATABASE_URL else DATABASE_URL}")


def enable_sqlite_foreign_keys(engine):
    """Turn on FK enforcement (cascade / set null) for every SQLite connection."""

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url: str):
    """Build an engine for PostgreSQL (pooled) or SQLite."""
    if url.startswith("postgresql://"):
        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
            echo=False,
        )

    kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, **kwargs)
    enable_sqlite_foreign_keys(sqlite_engine)
    return sqlite_engine


engine = create_db_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """
    Initialize database - create all tables.
    Should be called on application startup.
    """
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Session:
    """
    Dependency for FastAPI endpoints.

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context():
    """
    Context manager for database sessions outside FastAPI.

    Usage:
        with get_db_context() as db:
            user = db.query(DBUser).filter_by(name="alice").first()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_database_health() -> dict:
    """
    Check database connectivity.
    Used by health check endpoint.
    """
    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))

            return {
                "database_connected": True,
                "database_type": "postgresql" if DATABASE_URL.startswith("postgresql://") else "sqlite",
            }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "database_connected": False,
            "database_error": str(e),
        }
