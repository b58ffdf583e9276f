# Overview: Atomic execution of ledger operations with conflict retry and error classification.

"""
Atomic Units Against the Ledger Store

Every ledger-mutating processor hands its whole composite effect to
run_atomic() as one callable. The callable does its reads, locks and
writes on db.session; run_atomic() commits once at the end.

- Any exception: the session is rolled back before the error propagates.
- StaleDataError (version_id mismatch) and lock/serialization
  OperationalErrors: the callable is re-run from scratch after a backoff,
  up to LEDGER_CONFLICT_RETRIES attempts, then ConcurrencyConflict.
- Other store failures (connection loss, timeouts): StoreUnavailable,
  never retried.

The callable must re-read everything it depends on, since a retry starts
against whatever the competing transaction committed.
"""

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, StoreUnavailable
from ..extensions import db


logger = logging.getLogger(__name__)

# SQLSTATE codes for serialization failure, deadlock and lock-not-available
_CONFLICT_PGCODES = {"40001", "40P01", "55P03"}

_CONFLICT_MARKERS = (
    "database is locked",
    "deadlock",
    "could not serialize",
    "lock wait timeout",
    "could not obtain lock",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id
    columns on Product, PurchaseRecord, Invoice and Shift turn a lost race
    into a StaleDataError that run_atomic() retries.
    """
    return query.with_for_update()


def is_conflict_error(exc: BaseException) -> bool:
    """True for errors that mean 'another transaction got there first'."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _CONFLICT_PGCODES:
            return True
        message = str(exc.orig).lower()
        return any(marker in message for marker in _CONFLICT_MARKERS)
    return False


def run_atomic(func, *, operation: str, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute func() and commit as a single atomic unit.

    Returns whatever func() returns. On failure the session is rolled back
    and a typed error is raised.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_CONFLICT_RETRIES", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.05)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if not is_conflict_error(exc):
                logger.error("%s: ledger store failure", operation, exc_info=True)
                raise StoreUnavailable(f"Ledger store unavailable during {operation}") from exc
            if attempt >= attempts - 1:
                logger.warning("%s: conflict persisted after %d attempts", operation, attempts)
                raise ConcurrencyConflict(
                    f"Concurrent update conflict during {operation}; retry the request",
                    details={"operation": operation, "attempts": attempts},
                ) from exc
            logger.info("%s: conflict on attempt %d, retrying", operation, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
        except (DisconnectionError, InterfaceError, PoolTimeoutError) as exc:
            db.session.rollback()
            logger.error("%s: ledger store failure", operation, exc_info=True)
            raise StoreUnavailable(f"Ledger store unavailable during {operation}") from exc
        except Exception:
            db.session.rollback()
            raise
