# Overview: Unit-of-work, row locking and bounded retry for ledger writes.

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 0.05

_log = logging.getLogger(__name__)


class StorageFailure(Exception):
    """
    Raised when the database cannot complete a unit of work.

    The transaction has already been rolled back when this is raised;
    no partial write is visible. Retrying is the caller's decision.
    """


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the optimistic version column is what serializes writers.
    """
    return query.with_for_update()


_CONFLICT_MARKERS = ("locked", "busy", "deadlock", "could not serialize", "lock wait timeout")


def is_write_conflict(exc: Exception) -> bool:
    """
    True for errors that mean "another writer got there first".

    StaleDataError is the optimistic version check; lock/deadlock
    OperationalErrors come from the database itself. Anything else
    (disk I/O, lost connection, ...) is a storage failure, not a conflict.
    """
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig or exc).lower()
        return any(marker in message for marker in _CONFLICT_MARKERS)
    return False


def run_unit_of_work(
    session: Session,
    work: Callable[[Session], T],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    backoff_base: float = DEFAULT_BACKOFF_BASE,
    logger: logging.Logger | None = None,
) -> T:
    """
    Run work(session) as one transaction.

    - Success: commit, return work's result.
    - Domain error (anything not a SQLAlchemy error): rollback, re-raise as-is.
    - Write conflict (StaleDataError, lock/deadlock OperationalError): rollback,
      back off, run work again from a fresh read. After `attempts` tries, raise
      StorageFailure.
    - IntegrityError: rollback, re-raise unmodified (a unique constraint is a
      conflict for the caller to map).
    - Any other SQLAlchemy error: rollback, raise StorageFailure (no retry).
    """
    log = logger or _log
    for attempt in range(attempts):
        try:
            result = work(session)
            session.commit()
            return result
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            if not is_write_conflict(exc):
                raise StorageFailure(f"Database error: {exc.__class__.__name__}") from exc
            if attempt >= attempts - 1:
                raise StorageFailure(
                    f"Transaction failed after {attempts} attempts: {exc.__class__.__name__}"
                ) from exc
            log.warning(
                "Concurrent update conflict (%s), retrying attempt %d/%d",
                exc.__class__.__name__, attempt + 2, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
    raise StorageFailure("Transaction was not attempted")


def read_snapshot(session: Session, work: Callable[[Session], T]) -> T:
    """
    Run read-only work inside a single transaction and end it afterwards.

    Every query in `work` shares one connection/transaction, so aggregates
    never mix state from before and after a concurrent commit on engines
    with snapshot reads.
    """
    try:
        result = work(session)
    except SQLAlchemyError:
        session.rollback()
        raise
    session.commit()
    return result
