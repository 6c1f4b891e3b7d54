"""Translation of storage-layer failures into application errors.

Constraint violations are recognised by constraint name (PostgreSQL reports
it in the error diagnostics) or, for SQLite which only reports the columns,
by the constrained column list. Everything else becomes an InternalError so
callers never see a raw driver exception.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AppError,
    ConflictError,
    DuplicateCheckinError,
    InternalError,
    RequestCancelledError,
)

logger = logging.getLogger(__name__)

PG_UNIQUE_VIOLATION = "23505"
PG_QUERY_CANCELED = "57014"

# constraint name -> (sqlite column signature, error factory)
UNIQUE_CONSTRAINTS = {
    "uq_checkins_event_participant": (
        "checkins.event_id, checkins.participant_id",
        lambda e: DuplicateCheckinError(cause=e),
    ),
    "uq_participants_event_email": (
        "participants.event_id, participants.email",
        lambda e: ConflictError("a participant with this email already exists for this event", cause=e),
    ),
    "uq_participants_qr_code": (
        "participants.qr_code",
        lambda e: ConflictError("QR code already in use", cause=e),
    ),
}


def _pg_code(error: Exception) -> Optional[str]:
    orig = getattr(error, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _pg_constraint_name(error: Exception) -> Optional[str]:
    diag = getattr(getattr(error, "orig", None), "diag", None)
    return getattr(diag, "constraint_name", None)


def violated_unique_constraint(error: IntegrityError) -> Optional[str]:
    """Name of the unique constraint behind ``error``, if it is a known one."""
    constraint = _pg_constraint_name(error)
    if constraint in UNIQUE_CONSTRAINTS:
        return constraint

    message = str(getattr(error, "orig", error))
    if "UNIQUE constraint failed" in message:
        failed_columns = message.split("UNIQUE constraint failed:", 1)[1].strip()
        for name, (columns, _) in UNIQUE_CONSTRAINTS.items():
            if failed_columns == columns:
                return name
    return None


def map_integrity_error(error: IntegrityError) -> AppError:
    constraint = violated_unique_constraint(error)
    if constraint is not None:
        logger.info(f"Unique constraint {constraint} rejected write")
        return UNIQUE_CONSTRAINTS[constraint][1](error)

    logger.error(f"Unexpected integrity error (pgcode={_pg_code(error)}): {error.orig}")
    return InternalError("database integrity error", cause=error)


def map_operational_error(error: OperationalError) -> AppError:
    if _pg_code(error) == PG_QUERY_CANCELED:
        logger.warning("Database statement cancelled (timeout or client cancel)")
        return RequestCancelledError("database operation cancelled", cause=error)

    logger.error(f"Database operational error: {error.orig}")
    return InternalError("database unavailable", cause=error)


@contextmanager
def translate_storage_errors(db: Optional[Session] = None):
    """Run a gateway operation, rolling back and mapping driver errors."""
    try:
        yield
    except IntegrityError as e:
        if db is not None:
            db.rollback()
        raise map_integrity_error(e) from e
    except OperationalError as e:
        if db is not None:
            db.rollback()
        raise map_operational_error(e) from e
