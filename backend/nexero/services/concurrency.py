# Overview: Service-layer operations for concurrency; row locks and retry of transient DB conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for read-then-write stock updates.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the unit of work is
    serialized with BEGIN IMMEDIATE (see begin_immediate).
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """Take the SQLite write lock up front so concurrent commits queue instead of interleaving."""
    bind = db.session.get_bind()
    # scoped_session does not proxy in_transaction(); ask the underlying Session
    if bind.dialect.name == "sqlite" and not db.session().in_transaction():
        db.session.execute(db.text("BEGIN IMMEDIATE"))


def retry_attempts() -> int:
    return int(current_app.config.get("COMMIT_RETRY_ATTEMPTS", 3))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before each
    retry, so `func` must redo its reads.
    """
    if attempts is None:
        attempts = retry_attempts()
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Transient DB conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
