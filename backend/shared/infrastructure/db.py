"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns; the engine is built on first use so that
importing the core never opens a connection.
"""

from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache
import os

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session

from shared.config.settings import DATABASE_URL


def _calculate_pool_size() -> int:
    """
    Calculate pool size based on CPU cores.
    Formula: (2 * CPU cores) + 1, capped at 20 for reasonable limits.
    """
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


@lru_cache
def get_engine() -> Engine:
    """Create the engine with connection pooling and timeouts."""
    if DATABASE_URL.startswith("sqlite"):
        return enable_sqlite_savepoints(
            create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
        )

    return create_engine(
        DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=_calculate_pool_size(),
        max_overflow=15,
        pool_timeout=30,  # Wait max 30s for connection from pool
        pool_recycle=1800,  # Recycle connections after 30 minutes
        connect_args={"connect_timeout": 10},
        echo=False,
    )


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    Let SQLAlchemy emit BEGIN itself on pysqlite connections.

    The driver otherwise opens transactions lazily, which breaks SAVEPOINT
    (Session.begin_nested) semantics.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    """Session factory bound to the shared engine."""
    return sessionmaker(
        bind=get_engine(),
        autoflush=False,
        autocommit=False,
    )


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_context() as db:
            ctx = ServiceContext(db=db, propagator=propagator)
            OrderService(ctx).create_order(...)
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Safe commit with automatic rollback on failure.

    Usage:
        from shared.infrastructure.db import safe_commit
        safe_commit(db)

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def is_unique_violation(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError was raised by a specific unique constraint.

    PostgreSQL reports the constraint name; SQLite only reports the
    offending columns, so the column name (suffix after "uq_") is accepted too.
    """
    message = str(exc.orig).lower()
    if constraint_name.lower() in message:
        return True
    column = constraint_name.removeprefix("uq_")
    return "unique" in message and column in message
