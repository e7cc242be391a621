# mailslot/infra/database.py

import logging
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mailslot.config import DATABASE_URL
from mailslot.models.base import Base

logger = logging.getLogger(__name__)

# =========================
# ENGINE CONFIGURATION
# =========================

def _begin_immediate(engine):
    """
    Take SQLite's write lock when a transaction starts.
    A deferred transaction that reads and then deletes can fail with
    "database is locked" instead of waiting when another writer is active.
    """
    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str = DATABASE_URL, echo: bool = False):
    """
    Create an engine for ``url``.
    PostgreSQL gets a pooled engine; SQLite is accepted for local runs and tests.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        _begin_immediate(engine)
        return engine

    return create_engine(
        url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,         # Maintain 5 connections in the pool
        max_overflow=10,     # Allow 10 extra connections if needed
        pool_recycle=3600,   # Recycle connections every hour
        echo=echo,
    )


# =========================
# SESSION CONFIGURATION
# =========================

def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@lru_cache(maxsize=1)
def get_engine():
    """Process-wide engine for DATABASE_URL, created on first use."""
    return build_engine(DATABASE_URL)


@lru_cache(maxsize=1)
def get_session_factory():
    return build_session_factory(get_engine())


# =========================
# DATABASE FUNCTIONS
# =========================

@contextmanager
def db_session(session_factory):
    """
    Context manager for standalone DB operations.
    Usage:
        with db_session(factory) as db:
            row = db.query(StoredMessage).first()
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine=None):
    """Create all tables registered on Base."""
    # Registers StoredMessage on Base.metadata
    from mailslot.models import message  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def test_connection(engine=None) -> bool:
    """Return True when a trivial query succeeds."""
    try:
        with (engine or get_engine()).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database connection failed: %s", e)
        return False
