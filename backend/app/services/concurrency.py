# Overview: Service-layer operations for concurrency; transaction scoping, row locks and retries.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def apply_statement_timeout(timeout_ms: int | None) -> None:
    """
    Bound the current transaction's statements on PostgreSQL.

    SET LOCAL only lasts until the transaction ends. Other dialects have no
    per-transaction equivalent and are left alone.
    """
    if not timeout_ms:
        return
    if db.engine.dialect.name != "postgresql":
        return
    db.session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


@contextmanager
def atomic(*, timeout_ms: int | None = None):
    """
    Scoped unit of work: commit on success, roll back on any exception.

    Usage:
        with atomic(timeout_ms=10000):
            ...  # all writes here commit together or not at all
    """
    try:
        apply_statement_timeout(timeout_ms)
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run from scratch.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
