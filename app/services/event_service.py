from datetime import datetime
from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy.orm import Session

from app import crud
from app.core.exceptions import DomainValidationError, NotFoundError
from app.core.permissions import ensure_event_access
from app.models.base import utcnow
from app.models.event import Event, EventStatus
from app.schemas.event import EventCreate, EventStats, EventUpdate

logger = logging.getLogger(__name__)


class EventService:
    def __init__(self, events=crud.event):
        self.events = events

    def _get_event_with_access(self, db: Session, event_id: uuid.UUID, actor_id, is_admin: bool, action: str) -> Event:
        event = self.events.get(db, event_id)
        if event is None:
            raise NotFoundError("event not found")
        ensure_event_access(event, actor_id, is_admin, action)
        return event

    def create_event(self, db: Session, *, organizer_id: uuid.UUID, data: EventCreate) -> Event:
        """New events always start as drafts owned by the caller."""
        event = Event(
            organizer_id=organizer_id,
            name=data.name,
            description=data.description or "",
            start_date=data.start_date,
            end_date=data.end_date,
            location=data.location or "",
            timezone=data.timezone or "Asia/Tokyo",
            status=EventStatus.DRAFT,
        )
        event.validate()
        self.events.create(db, db_obj=event)
        logger.info(f"✅ Created event {event.id} '{event.name}' for organizer {organizer_id}")
        return event

    def get_event(self, db: Session, *, actor_id: Optional[uuid.UUID], is_admin: bool, event_id: uuid.UUID) -> Event:
        return self._get_event_with_access(db, event_id, actor_id, is_admin, "view this event")

    def list_events(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        status: Optional[str] = None,
        search: str = "",
        starts_after: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Event], int]:
        # Organizers only ever see their own events
        organizer_id = None if is_admin else actor_id
        return self.events.get_multi_filtered(
            db,
            organizer_id=organizer_id,
            status=getattr(status, "value", status),
            search=search,
            starts_after=starts_after,
            starts_before=starts_before,
            skip=(page - 1) * per_page,
            limit=per_page,
        )

    def update_event(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        data: EventUpdate,
    ) -> Event:
        event = self._get_event_with_access(db, event_id, actor_id, is_admin, "update this event")

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "start_date"):
                continue
            setattr(event, field, value)
        try:
            event.validate()
        except DomainValidationError:
            db.rollback()
            raise

        event.updated_at = utcnow()
        self.events.update(db, db_obj=event)
        logger.info(f"Updated event {event.id}")
        return event

    def change_status(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        status,
    ) -> Event:
        event = self._get_event_with_access(db, event_id, actor_id, is_admin, "change the status of this event")
        previous = event.status
        event.transition_to(status)
        self.events.update(db, db_obj=event)
        logger.info(f"🔁 Event {event.id} status {previous} -> {event.status}")
        return event

    def delete_event(self, db: Session, *, actor_id: Optional[uuid.UUID], is_admin: bool, event_id: uuid.UUID) -> None:
        """Deleting an event removes its participants and check-ins with it."""
        event = self._get_event_with_access(db, event_id, actor_id, is_admin, "delete this event")
        self.events.remove(db, id=event.id)
        logger.info(f"🗑️ Deleted event {event_id}")

    def get_event_stats(
        self, db: Session, *, actor_id: Optional[uuid.UUID], is_admin: bool, event_id: uuid.UUID
    ) -> EventStats:
        event = self._get_event_with_access(db, event_id, actor_id, is_admin, "view statistics for this event")
        total, checked_in = self.events.get_stats(db, event_id=event.id)
        return EventStats(
            event_id=event.id,
            total_participants=total,
            checked_in_count=checked_in,
            checkin_rate=round(checked_in / total * 100, 2) if total else 0.0,
        )


event_service = EventService()
