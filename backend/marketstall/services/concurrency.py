# Overview: Transaction helpers shared by the write paths (QR checkout, settlement).

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_write_transaction() -> None:
    """
    Take the database write lock up front.

    SQLite ignores SELECT ... FOR UPDATE, so a read-then-write sequence is
    serialized with BEGIN IMMEDIATE instead. BEGIN is only accepted outside a
    transaction: a read transaction left open by earlier lookups (loading the
    current user, refreshing expired instances) is rolled back first. Writes
    must be committed before calling this.
    """
    if db.engine.dialect.name != "sqlite":
        return

    session = db.session()
    if session.new or session.dirty or session.deleted:
        raise RuntimeError("Uncommitted changes pending before a write transaction")
    if session.in_transaction():
        session.rollback()
    session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError. The session is rolled back before each retry, so func
    must redo its reads.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
