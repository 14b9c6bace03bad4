"""Transaction wrapper: commit, rollback, conflict retry and storage failures."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DatabaseError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from chemflo.services.concurrency import (
    StorageFailure,
    is_write_conflict,
    read_snapshot,
    run_unit_of_work,
)


def _operational(message):
    return OperationalError("UPDATE inventory", {}, Exception(message))


def _failing(exc, calls):
    def work(session):
        calls.append(1)
        raise exc
    return work


def test_lock_conflicts_are_retried_until_attempts_run_out(db_session):
    calls = []

    with pytest.raises(StorageFailure):
        run_unit_of_work(db_session, _failing(_operational("database is locked"), calls),
                         attempts=3, backoff_base=0)

    assert len(calls) == 3


def test_stale_version_is_retried(db_session):
    calls = []

    def work(session):
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("version mismatch")
        return "done"

    assert run_unit_of_work(db_session, work, attempts=3, backoff_base=0) == "done"
    assert len(calls) == 2


@pytest.mark.parametrize("exc", [
    _operational("disk I/O error"),
    DatabaseError("INSERT INTO stock_movements", {}, Exception("malformed")),
])
def test_storage_errors_fail_without_retry(db_session, exc):
    calls = []

    with pytest.raises(StorageFailure):
        run_unit_of_work(db_session, _failing(exc, calls), attempts=3, backoff_base=0)

    assert len(calls) == 1


def test_integrity_errors_pass_through(db_session):
    exc = IntegrityError("INSERT INTO products", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        run_unit_of_work(db_session, _failing(exc, []), attempts=3, backoff_base=0)


def test_conflict_classification():
    assert is_write_conflict(StaleDataError("stale")) is True
    assert is_write_conflict(_operational("database is locked")) is True
    assert is_write_conflict(_operational("deadlock detected")) is True
    assert is_write_conflict(_operational("server closed the connection unexpectedly")) is False
    assert is_write_conflict(ValueError("nope")) is False


def test_read_snapshot_accepts_scoped_session(db_session):
    assert read_snapshot(db_session, lambda s: s.execute(text("SELECT 1")).scalar()) == 1
