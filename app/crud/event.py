# File: app/crud/event.py
from datetime import datetime
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.crud.errors import translate_storage_errors
from app.models.checkin import Checkin
from app.models.event import Event
from app.models.participant import Participant
from app.schemas.event import EventCreate, EventUpdate


class CRUDEvent(CRUDBase[Event, EventCreate, EventUpdate]):

    def get_multi_filtered(
        self,
        db: Session,
        *,
        organizer_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        search: str = "",
        starts_after: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Event], int]:
        query = db.query(Event)
        if organizer_id is not None:
            query = query.filter(Event.organizer_id == organizer_id)
        if status:
            query = query.filter(Event.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Event.name.ilike(pattern), Event.description.ilike(pattern)))
        if starts_after is not None:
            query = query.filter(Event.start_date >= starts_after)
        if starts_before is not None:
            query = query.filter(Event.start_date <= starts_before)

        with translate_storage_errors(db):
            total = query.count()
            events = query.order_by(Event.created_at.desc()).offset(skip).limit(limit).all()
        return events, total

    def get_stats(self, db: Session, *, event_id: uuid.UUID) -> Tuple[int, int]:
        """(total participants, checked-in participants) for an event."""
        with translate_storage_errors(db):
            total = db.query(func.count(Participant.id)).filter(Participant.event_id == event_id).scalar()
            checked_in = db.query(func.count(Checkin.id)).filter(Checkin.event_id == event_id).scalar()
        return total or 0, checked_in or 0


event = CRUDEvent(Event)
