"""
SQLAlchemy engine and session factory.

The service owns the `questions` and `test_attempts` tables. We keep the
engine at module level so the API threads and the scoring consumer share
the same pool. SQLite URLs are accepted for local runs and tests.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from riskguard.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        # in-memory database must be a single shared connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,    # detect stale connections
        "pool_recycle": 3600,     # recycle connections after 1 hour
    }


engine = create_engine(settings.database_url, echo=False, **_engine_kwargs(settings.database_url))

# expire_on_commit=False: store functions hand ORM rows back to callers
# after the session that loaded them has closed.
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def get_db():
    """Provide a transactional DB session. Rolls back on exception."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create any missing tables."""
    from riskguard.db import models  # noqa: F401  register mappers

    Base.metadata.create_all(bind=engine)


def check_db_connection() -> bool:
    """Returns True if the DB is reachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.warning("DB connectivity check failed: %s", exc)
        return False
