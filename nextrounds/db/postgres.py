"""
PostgreSQL connection for the Supabase-hosted database.

All reads/writes use parameterised text() SQL through one session per
unit of work; the session commits on success and rolls back on error.
"""
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Supabase drops idle connections; pre-ping replaces dead ones
engine = create_engine(
    settings.postgres_url,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    echo=settings.debug
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    One transaction per `with` block:

        with get_db_session() as db:
            db.execute(text("UPDATE users SET ... WHERE id = :id"), {"id": user_id})
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def test_postgres_connection() -> bool:
    """True if `SELECT 1` succeeds."""
    try:
        with get_db_session() as db:
            return db.execute(text("SELECT 1")).scalar() == 1
    except Exception as e:
        logger.warning(f"PostgreSQL connection failed: {e}")
        return False
