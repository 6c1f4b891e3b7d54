"""Check-in engine.

Admits participants to events (by QR token or manually), reports and lists
admissions, and undoes them. At most one admission may exist per
(event, participant): a cheap existence check gives the usual fast answer,
and the unique constraint on the check-ins table settles races. Both paths
end in the same ConflictError, so a caller cannot tell "lost the race" from
"already admitted".
"""
from typing import Optional
import logging
import uuid

from sqlalchemy.orm import Session

from app import crud
from app.core.cancellation import CancellationToken, checkpoint
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    DuplicateCheckinError,
    ForbiddenError,
    NotFoundError,
)
from app.core.permissions import can_manage_event, ensure_event_access
from app.models.base import utcnow
from app.models.checkin import Checkin, CheckinMethod
from app.models.event import Event
from app.models.participant import Participant
from app.schemas.checkin import (
    Checkin as CheckinSchema,
    CheckinCreate,
    CheckinList,
    CheckinStats,
    CheckinStatus,
)

logger = logging.getLogger(__name__)

ALREADY_CHECKED_IN = "participant has already checked in"


def _method_value(method) -> str:
    if isinstance(method, CheckinMethod):
        return method.value
    return method or ""


class CheckinService:
    def __init__(self, events=crud.event, participants=crud.participant, checkins=crud.checkin):
        self.events = events
        self.participants = participants
        self.checkins = checkins

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------
    def check_in(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        data: CheckinCreate,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CheckinSchema:
        method = _method_value(data.method)

        checkpoint(cancel_token)
        event = self._get_event(db, event_id)

        # Manual admission is a staff action. A QR scan already proves
        # possession of a token issued to the participant.
        if method == CheckinMethod.MANUAL.value and not can_manage_event(event, actor_id, is_admin):
            raise ForbiddenError(
                "you do not have permission to manually check in participants for this event"
            )

        checkpoint(cancel_token)
        participant = self._find_participant_for_check_in(db, method, data)

        if participant.event_id != event.id:
            raise BadRequestError("participant does not belong to this event")

        if not participant.is_admissible:
            raise BadRequestError(f"cannot check in: participant status is {participant.status}")

        checkpoint(cancel_token)
        if self.checkins.exists_by_participant(db, event_id=event.id, participant_id=participant.id):
            raise ConflictError(ALREADY_CHECKED_IN)

        record = Checkin(
            id=uuid.uuid4(),
            event_id=event.id,
            participant_id=participant.id,
            checked_in_at=utcnow(),
            checked_in_by=actor_id,
            method=method,
            device_info=data.device_info,
        )
        record.validate()

        checkpoint(cancel_token)
        try:
            self.checkins.create(db, db_obj=record)
        except DuplicateCheckinError as e:
            logger.info(f"Concurrent check-in rejected by constraint: participant={participant.id} event={event.id}")
            raise ConflictError(ALREADY_CHECKED_IN, cause=e) from e

        logger.info(
            f"✅ Checked in participant {participant.id} to event {event.id} "
            f"via {method} (by {actor_id or 'self-service'})"
        )
        return self._to_schema(record, participant.name, participant.email)

    def _find_participant_for_check_in(self, db: Session, method: str, data: CheckinCreate) -> Participant:
        if method == CheckinMethod.QRCODE.value:
            if not data.qr_code:
                raise BadRequestError("QR code is required for QR code check-in")
            participant = self.participants.get_by_qr_code(db, qr_code=data.qr_code)
            if participant is None:
                # Same message whether or not the token exists
                raise NotFoundError("invalid QR code or participant not found")
            return participant

        if method == CheckinMethod.MANUAL.value:
            if data.participant_id is None:
                raise BadRequestError("participant ID is required for manual check-in")
            participant = self.participants.get(db, data.participant_id)
            if participant is None:
                raise NotFoundError("participant not found")
            return participant

        raise BadRequestError("invalid check-in method")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_status(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        participant_id: uuid.UUID,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CheckinStatus:
        """Whether a participant is admitted. Not being admitted is not an error."""
        checkpoint(cancel_token)
        participant = self.participants.get(db, participant_id)
        if participant is None:
            raise NotFoundError("participant not found")

        event = self._get_event(db, participant.event_id)
        ensure_event_access(event, actor_id, is_admin, "view check-in status for this event")

        checkpoint(cancel_token)
        record = self.checkins.get_by_participant(db, participant_id=participant.id)

        return CheckinStatus(
            participant_id=participant.id,
            participant_name=participant.name,
            participant_email=participant.email,
            event_id=event.id,
            event_name=event.name,
            is_checked_in=record is not None,
            checkin=self._to_schema(record, participant.name, participant.email) if record else None,
        )

    def list_checkins(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        page: int = 1,
        per_page: int = 20,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CheckinList:
        checkpoint(cancel_token)
        event = self._get_event(db, event_id)
        ensure_event_access(event, actor_id, is_admin, "view check-ins for this event")

        checkpoint(cancel_token)
        offset = (page - 1) * per_page
        rows, total = self.checkins.get_by_event(db, event_id=event.id, skip=offset, limit=per_page)

        items = []
        for record, name, email in rows:
            if name is None:
                logger.warning(f"Skipping check-in {record.id}: participant {record.participant_id} no longer exists")
                total -= 1
                continue
            items.append(self._to_schema(record, name, email))

        return CheckinList(items=items, total=total, page=page, per_page=per_page)

    def get_event_stats(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
    ) -> CheckinStats:
        event = self._get_event(db, event_id)
        ensure_event_access(event, actor_id, is_admin, "view check-in statistics for this event")

        total, checked_in = self.checkins.get_event_stats(db, event_id=event.id)
        rate = round(checked_in / total * 100, 2) if total else 0.0
        return CheckinStats(
            event_id=event.id,
            total_participants=total,
            checked_in_count=checked_in,
            checkin_rate=rate,
        )

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------
    def cancel(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        checkin_id: uuid.UUID,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """Hard-delete an admission so the participant can be admitted again."""
        checkpoint(cancel_token)
        record = self.checkins.get(db, checkin_id)
        if record is None:
            raise NotFoundError("check-in not found")

        event = self._get_event(db, record.event_id)
        ensure_event_access(event, actor_id, is_admin, "cancel check-ins for this event")

        checkpoint(cancel_token)
        if self.checkins.remove(db, id=record.id) is None:
            raise NotFoundError("check-in not found")

        logger.info(f"↩️ Cancelled check-in {checkin_id} for participant {record.participant_id}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _get_event(self, db: Session, event_id: uuid.UUID) -> Event:
        event = self.events.get(db, event_id)
        if event is None:
            raise NotFoundError("event not found")
        return event

    @staticmethod
    def _to_schema(record: Checkin, name: str, email: str) -> CheckinSchema:
        return CheckinSchema(
            id=record.id,
            event_id=record.event_id,
            participant_id=record.participant_id,
            participant_name=name,
            participant_email=email,
            checked_in_at=record.checked_in_at,
            checked_in_by=record.checked_in_by,
            method=record.method,
        )


checkin_service = CheckinService()
