from typing import List, Optional, Tuple
import uuid

from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.crud.errors import translate_storage_errors
from app.crud.event import event as crud_event
from app.models.checkin import Checkin
from app.models.participant import Participant
from app.schemas.checkin import CheckinCreate

# (check-in, participant name, participant email); name/email are None when
# the participant row is gone
CheckinRow = Tuple[Checkin, Optional[str], Optional[str]]


class CRUDCheckin(CRUDBase[Checkin, CheckinCreate, CheckinCreate]):

    def create(self, db: Session, *, db_obj: Checkin) -> Checkin:
        """Insert an admission.

        The ``uq_checkins_event_participant`` constraint is the authoritative
        duplicate guard; a violation surfaces as DuplicateCheckinError.
        """
        return super().create(db, db_obj=db_obj)

    def get_by_participant(self, db: Session, *, participant_id: uuid.UUID) -> Optional[Checkin]:
        with translate_storage_errors(db):
            return db.query(Checkin).filter(Checkin.participant_id == participant_id).first()

    def exists_by_participant(self, db: Session, *, event_id: uuid.UUID, participant_id: uuid.UUID) -> bool:
        with translate_storage_errors(db):
            found = db.query(Checkin.id).filter(
                Checkin.event_id == event_id,
                Checkin.participant_id == participant_id,
            ).first()
        return found is not None

    def get_by_event(
        self, db: Session, *, event_id: uuid.UUID, skip: int = 0, limit: int = 20
    ) -> Tuple[List[CheckinRow], int]:
        """Admissions for an event, newest first, with participant display fields."""
        with translate_storage_errors(db):
            total = db.query(Checkin).filter(Checkin.event_id == event_id).count()
            rows = (
                db.query(Checkin, Participant.name, Participant.email)
                .outerjoin(Participant, Participant.id == Checkin.participant_id)
                .filter(Checkin.event_id == event_id)
                .order_by(Checkin.checked_in_at.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )
        return [(row[0], row[1], row[2]) for row in rows], total

    def get_event_stats(self, db: Session, *, event_id: uuid.UUID) -> Tuple[int, int]:
        return crud_event.get_stats(db, event_id=event_id)


checkin = CRUDCheckin(Checkin)
