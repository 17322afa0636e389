# Overview: Transaction and row-locking helpers shared by the service layer.

from __future__ import annotations

from contextlib import contextmanager

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Unit of work around a multi-statement mutation.

    Commits when the block exits normally and rolls back on any exception,
    so callers never observe an order with zero or partial items.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
