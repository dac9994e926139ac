# Overview: The store's atomic-write primitive; locking, retry and all-or-nothing commits.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import StoreUnavailable


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, begin_immediate() takes the database write lock instead.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """Take the SQLite write lock up front so read-then-write cannot interleave."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _retry_policy(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if has_app_context():
        cfg = current_app.config
        if attempts is None:
            attempts = cfg.get("COMMIT_RETRY_ATTEMPTS", 3)
        if backoff_base is None:
            backoff_base = cfg.get("COMMIT_RETRY_BACKOFF", 0.1)
    return attempts or 3, 0.1 if backoff_base is None else backoff_base


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates unchanged.
    """
    attempts, backoff_base = _retry_policy(attempts, backoff_base)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def atomic_write(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func inside one store transaction and commit it: all effects or none.

    func performs its reads and writes on db.session without committing.
    Concurrency conflicts are retried from a clean transaction; when the
    store still cannot complete the write, StoreUnavailable is raised and
    nothing has been persisted.
    """
    def _op():
        begin_immediate()
        result = func()
        db.session.commit()
        return result

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except (OperationalError, StaleDataError) as exc:
        raise StoreUnavailable(
            "Store could not complete the write; nothing was applied",
            details={"reason": exc.__class__.__name__},
        ) from exc
    except SQLAlchemyError as exc:
        raise StoreUnavailable(
            "Store write failed; nothing was applied",
            details={"reason": exc.__class__.__name__},
        ) from exc
