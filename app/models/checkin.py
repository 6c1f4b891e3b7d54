import enum
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.exceptions import DomainValidationError
from app.db.database import Base
from app.models.base import utcnow

CHECKIN_UNIQUE_CONSTRAINT = "uq_checkins_event_participant"


class CheckinMethod(enum.Enum):
    QRCODE = "qrcode"
    MANUAL = "manual"


VALID_CHECKIN_METHODS = {m.value for m in CheckinMethod}


class Checkin(Base):
    """One admission of a participant to an event.

    Immutable once written; undoing an admission deletes the row so the
    participant can be admitted again.
    """
    __tablename__ = "checkins"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id = Column(Uuid, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False, index=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    checked_in_by = Column(Uuid, nullable=True, index=True)  # NULL for self-service kiosks
    method = Column("checkin_method", String(50), nullable=False, default=CheckinMethod.QRCODE.value)
    device_info = Column(JSON, nullable=True)

    # At most one live admission per (event, participant)
    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", name=CHECKIN_UNIQUE_CONSTRAINT),
    )

    # Relationships
    event = relationship("Event", back_populates="checkins")
    participant = relationship("Participant", back_populates="checkin")

    def __init__(self, **kwargs):
        if isinstance(kwargs.get("method"), CheckinMethod):
            kwargs["method"] = kwargs["method"].value
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Checkin(id={self.id}, participant_id={self.participant_id}, method={self.method})>"

    def validate(self) -> None:
        if self.event_id is None:
            raise DomainValidationError("event ID is required")
        if self.participant_id is None:
            raise DomainValidationError("participant ID is required")
        if self.method not in VALID_CHECKIN_METHODS:
            raise DomainValidationError("invalid checkin method")

    @property
    def is_qrcode_method(self) -> bool:
        return self.method == CheckinMethod.QRCODE.value

    @property
    def is_manual_method(self) -> bool:
        return self.method == CheckinMethod.MANUAL.value

    @property
    def is_self_service(self) -> bool:
        return self.checked_in_by is None
