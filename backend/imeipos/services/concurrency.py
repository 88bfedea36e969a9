# Overview: Atomic unit runner and row-locking helpers for service-layer writes.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import CoreError, StoreConflictError
from ..extensions import db

T = TypeVar("T")

# Store-level failures that mean "someone else got there first" or "the
# store was busy". The whole unit is re-run from its read phase.
# IntegrityError only counts when it is a unique-key collision.
RETRYABLE_STORE_ERRORS = (OperationalError, StaleDataError, IntegrityError)

# SQLSTATE 23505 (PostgreSQL); message text for SQLite and MySQL
UNIQUE_VIOLATION_SQLSTATE = "23505"
UNIQUE_VIOLATION_MARKERS = ("UNIQUE constraint failed", "Duplicate entry", "duplicate key value")


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(orig if orig is not None else exc)
    return any(marker in message for marker in UNIQUE_VIOLATION_MARKERS)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Version columns still catch lost updates there.
    """
    return query.with_for_update()


def run_atomic(
    op: Callable[[], T],
    *,
    name: str = "atomic unit",
    attempts: int | None = None,
    backoff_base: float | None = None,
) -> T:
    """
    Run op() as one all-or-nothing unit and commit.

    op must do its reads first, validate, then write; it must not commit.
    - Domain errors (CoreError) roll back and propagate immediately.
    - Store conflicts (lock timeout, stale version, unique-key collision)
      roll back and re-run op from scratch with exponential backoff; once
      attempts are exhausted StoreConflictError is raised.
    - Other integrity errors (NOT NULL, foreign key) roll back and propagate.
    - Anything else rolls back and propagates.
    """
    if attempts is None:
        attempts = current_app.config.get("ATOMIC_UNIT_MAX_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("ATOMIC_UNIT_BACKOFF_BASE", 0.1)
    attempts = max(1, int(attempts))

    last_exc: Exception | None = None
    for attempt in range(attempts):
        try:
            result = op()
            db.session.commit()
            return result
        except CoreError:
            db.session.rollback()
            raise
        except RETRYABLE_STORE_ERRORS as exc:
            db.session.rollback()
            if isinstance(exc, IntegrityError) and not is_unique_violation(exc):
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                break
            current_app.logger.warning(
                "%s hit a store conflict (attempt %d/%d): %s",
                name, attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

    current_app.logger.warning("%s gave up after %d attempts", name, attempts)
    raise StoreConflictError(
        f"{name} could not complete because of concurrent changes; please retry",
        details={"attempts": attempts, "cause": last_exc.__class__.__name__ if last_exc else None},
    ) from last_exc
