# Overview: Transaction scope and row locking helpers shared by the stock and sales services.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() refreshes objects already in the identity map so the
    caller sees the value read under the lock, not a cached one.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; atomic() takes the database
    write lock up front there instead.
    """
    return query.with_for_update().populate_existing()


def _begin_write():
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def atomic(operation: str = "operation"):
    """
    All-or-nothing unit of work around db.session.

    Commits when the block exits normally. Any exception rolls everything
    back; SQLAlchemy errors are re-raised as PersistenceError, domain errors
    propagate unchanged. Nothing is retried here: callers doing
    non-idempotent writes decide for themselves.
    """
    try:
        _begin_write()
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(
            f"Database error during {operation}",
            details={"reason": exc.__class__.__name__},
        ) from exc
    except Exception:
        db.session.rollback()
        raise
