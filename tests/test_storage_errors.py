import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.exceptions import (
    ConflictError,
    DuplicateCheckinError,
    InternalError,
    RequestCancelledError,
)
from app.crud.errors import (
    map_integrity_error,
    map_operational_error,
    translate_storage_errors,
    violated_unique_constraint,
)


class FakeDiag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class FakeDriverError(Exception):
    """Looks like a psycopg error: carries pgcode and diagnostics."""

    def __init__(self, message, pgcode=None, constraint_name=None):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = FakeDiag(constraint_name)


def integrity_error(orig):
    return IntegrityError("INSERT INTO checkins ...", {}, orig)


def test_postgres_checkin_constraint_maps_to_duplicate_checkin():
    error = integrity_error(
        FakeDriverError("duplicate key value", pgcode="23505", constraint_name="uq_checkins_event_participant")
    )

    mapped = map_integrity_error(error)

    assert isinstance(mapped, DuplicateCheckinError)
    assert isinstance(mapped, ConflictError)
    assert mapped.cause is error


def test_postgres_email_constraint_maps_to_conflict():
    error = integrity_error(
        FakeDriverError("duplicate key value", pgcode="23505", constraint_name="uq_participants_event_email")
    )
    mapped = map_integrity_error(error)
    assert type(mapped) is ConflictError
    assert "email" in mapped.message


def test_sqlite_constraint_is_recognised_by_columns():
    error = integrity_error(
        Exception("UNIQUE constraint failed: checkins.event_id, checkins.participant_id")
    )
    assert violated_unique_constraint(error) == "uq_checkins_event_participant"
    assert isinstance(map_integrity_error(error), DuplicateCheckinError)


def test_unknown_integrity_error_is_internal():
    error = integrity_error(FakeDriverError("null value in column", pgcode="23502"))
    mapped = map_integrity_error(error)
    assert type(mapped) is InternalError
    assert mapped.status_code == 500


def test_query_cancelled_maps_to_request_cancelled():
    error = OperationalError("SELECT ...", {}, FakeDriverError("canceling statement", pgcode="57014"))
    mapped = map_operational_error(error)
    assert isinstance(mapped, RequestCancelledError)
    assert mapped.retriable


def test_other_operational_errors_are_internal():
    error = OperationalError("SELECT ...", {}, FakeDriverError("connection refused"))
    assert type(map_operational_error(error)) is InternalError


def test_translate_storage_errors_rolls_back():
    class FakeSession:
        rolled_back = False

        def rollback(self):
            self.rolled_back = True

    session = FakeSession()
    error = integrity_error(
        FakeDriverError("duplicate key value", pgcode="23505", constraint_name="uq_participants_qr_code")
    )

    with pytest.raises(ConflictError) as exc_info:
        with translate_storage_errors(session):
            raise error

    assert session.rolled_back
    assert exc_info.value.message == "QR code already in use"
    assert exc_info.value.__cause__ is error
