# File: app/models/event.py
import enum
from typing import Union

from sqlalchemy import Column, String, Text, DateTime, Uuid
from sqlalchemy.orm import relationship

from app.core.exceptions import DomainValidationError, InvalidStatusTransitionError
from app.models.base import BaseModel, as_utc, utcnow

EVENT_NAME_MAX_LENGTH = 255
EVENT_DESCRIPTION_MAX_LENGTH = 5000
EVENT_LOCATION_MAX_LENGTH = 500
DEFAULT_TIMEZONE = "Asia/Tokyo"


class EventStatus(enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {EventStatus.COMPLETED.value, EventStatus.CANCELLED.value}

# Allowed forward moves; identity moves are always allowed and not listed
EVENT_TRANSITIONS = {
    EventStatus.DRAFT.value: {EventStatus.PUBLISHED.value, EventStatus.CANCELLED.value},
    EventStatus.PUBLISHED.value: {EventStatus.ONGOING.value, EventStatus.CANCELLED.value},
    EventStatus.ONGOING.value: {EventStatus.COMPLETED.value, EventStatus.CANCELLED.value},
    EventStatus.COMPLETED.value: set(),
    EventStatus.CANCELLED.value: set(),
}

VALID_EVENT_STATUSES = {s.value for s in EventStatus}


def _status_value(status: Union[EventStatus, str, None]) -> str:
    if isinstance(status, EventStatus):
        return status.value
    return status or ""


class Event(BaseModel):
    __tablename__ = "events"

    organizer_id = Column(Uuid, nullable=False, index=True)
    name = Column(String(EVENT_NAME_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=False, default="")
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(EVENT_LOCATION_MAX_LENGTH), nullable=False, default="")
    timezone = Column(String(100), nullable=False, default=DEFAULT_TIMEZONE)
    status = Column(String(50), nullable=False, default=EventStatus.DRAFT.value, index=True)

    # Relationships
    participants = relationship("Participant", back_populates="event", cascade="all", passive_deletes=True)
    checkins = relationship("Checkin", back_populates="event", cascade="all", passive_deletes=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("status", EventStatus.DRAFT.value)
        kwargs.setdefault("description", "")
        kwargs.setdefault("location", "")
        kwargs.setdefault("timezone", DEFAULT_TIMEZONE)
        if isinstance(kwargs.get("status"), EventStatus):
            kwargs["status"] = kwargs["status"].value
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Event(id={self.id}, name={self.name}, status={self.status})>"

    def validate(self) -> None:
        if not self.name:
            raise DomainValidationError("event name is required")
        if len(self.name) > EVENT_NAME_MAX_LENGTH:
            raise DomainValidationError("event name must not exceed 255 characters")
        if self.description and len(self.description) > EVENT_DESCRIPTION_MAX_LENGTH:
            raise DomainValidationError("event description must not exceed 5000 characters")
        if self.start_date is None:
            raise DomainValidationError("event start date is required")
        if self.end_date is not None and as_utc(self.end_date) < as_utc(self.start_date):
            raise DomainValidationError("event end date must be after start date")
        if self.location and len(self.location) > EVENT_LOCATION_MAX_LENGTH:
            raise DomainValidationError("event location must not exceed 500 characters")
        if not self.is_valid_status():
            raise DomainValidationError("invalid event status")

    def is_valid_status(self) -> bool:
        return self.status in VALID_EVENT_STATUSES

    # Status lifecycle: draft -> published -> ongoing -> completed,
    # any non-terminal status -> cancelled
    def can_transition_to(self, target: Union[EventStatus, str]) -> bool:
        target_value = _status_value(target)
        if target_value not in VALID_EVENT_STATUSES:
            return False
        if self.status == target_value:
            return True
        return target_value in EVENT_TRANSITIONS.get(self.status, set())

    def transition_to(self, target: Union[EventStatus, str]) -> None:
        target_value = _status_value(target)
        if not self.can_transition_to(target_value):
            raise InvalidStatusTransitionError(self.status, target_value)
        if self.status != target_value:
            self.status = target_value
            self.updated_at = utcnow()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_draft(self) -> bool:
        return self.status == EventStatus.DRAFT.value

    @property
    def is_published(self) -> bool:
        return self.status == EventStatus.PUBLISHED.value

    @property
    def is_ongoing(self) -> bool:
        return self.status == EventStatus.ONGOING.value

    @property
    def is_completed(self) -> bool:
        return self.status == EventStatus.COMPLETED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED.value
