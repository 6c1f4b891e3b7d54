import enum
import json

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, JSON, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.exceptions import DomainValidationError
from app.models.base import BaseModel, utcnow

PARTICIPANT_NAME_MAX_LENGTH = 255
PARTICIPANT_EMAIL_MAX_LENGTH = 255
PARTICIPANT_PHONE_MAX_LENGTH = 50
PARTICIPANT_EMPLOYEE_ID_MAX_LENGTH = 255
MAX_METADATA_SIZE = 10240  # 10KB


class ParticipantStatus(enum.Enum):
    TENTATIVE = "tentative"   # Registered, not confirmed yet
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


class PaymentStatus(enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


VALID_PARTICIPANT_STATUSES = {s.value for s in ParticipantStatus}
VALID_PAYMENT_STATUSES = {s.value for s in PaymentStatus}

# Participants in these states can never be admitted
NON_ADMISSIBLE_STATUSES = {ParticipantStatus.CANCELLED.value, ParticipantStatus.DECLINED.value}


def metadata_size(metadata) -> int:
    """Size in bytes of the JSON encoding of a metadata blob."""
    if metadata is None:
        return 0
    return len(json.dumps(metadata, separators=(",", ":"), default=str).encode("utf-8"))


class Participant(BaseModel):
    __tablename__ = "participants"

    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(PARTICIPANT_NAME_MAX_LENGTH), nullable=False)
    email = Column(String(PARTICIPANT_EMAIL_MAX_LENGTH), nullable=False, index=True)
    employee_id = Column(String(PARTICIPANT_EMPLOYEE_ID_MAX_LENGTH), nullable=True, index=True)
    phone = Column(String(PARTICIPANT_PHONE_MAX_LENGTH), nullable=True)
    qr_email = Column(String(PARTICIPANT_EMAIL_MAX_LENGTH), nullable=True)  # Alternative address for QR delivery
    status = Column(String(50), nullable=False, default=ParticipantStatus.TENTATIVE.value, index=True)

    # QR token, globally unique; only replaced by an explicit regeneration
    qr_code = Column(String(255), nullable=False)
    qr_code_generated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=True)

    # Payment
    payment_status = Column(String(50), nullable=False, default=PaymentStatus.UNPAID.value, index=True)
    payment_amount = Column(Numeric(10, 2), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("event_id", "email", name="uq_participants_event_email"),
        UniqueConstraint("qr_code", name="uq_participants_qr_code"),
    )

    # Relationships
    event = relationship("Event", back_populates="participants")
    checkin = relationship("Checkin", back_populates="participant", uselist=False, cascade="all", passive_deletes=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("status", ParticipantStatus.TENTATIVE.value)
        kwargs.setdefault("payment_status", PaymentStatus.UNPAID.value)
        for key, enum_cls in (("status", ParticipantStatus), ("payment_status", PaymentStatus)):
            if isinstance(kwargs.get(key), enum_cls):
                kwargs[key] = kwargs[key].value
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Participant(id={self.id}, email={self.email}, status={self.status})>"

    def validate(self) -> None:
        self._validate_required_fields()
        self._validate_optional_fields()

    def _validate_required_fields(self) -> None:
        if self.event_id is None:
            raise DomainValidationError("event ID is required")
        if not self.name:
            raise DomainValidationError("participant name is required")
        if len(self.name) > PARTICIPANT_NAME_MAX_LENGTH:
            raise DomainValidationError("participant name must not exceed 255 characters")
        if not self.email:
            raise DomainValidationError("participant email is required")
        if len(self.email) > PARTICIPANT_EMAIL_MAX_LENGTH or not _is_valid_email(self.email):
            raise DomainValidationError("participant email format is invalid")
        if not self.qr_code:
            raise DomainValidationError("QR code is required")
        if self.status not in VALID_PARTICIPANT_STATUSES:
            raise DomainValidationError("invalid participant status")
        if self.payment_status not in VALID_PAYMENT_STATUSES:
            raise DomainValidationError("invalid payment status")

    def _validate_optional_fields(self) -> None:
        if self.phone is not None and len(self.phone) > PARTICIPANT_PHONE_MAX_LENGTH:
            raise DomainValidationError("phone number must not exceed 50 characters")
        if self.employee_id is not None and len(self.employee_id) > PARTICIPANT_EMPLOYEE_ID_MAX_LENGTH:
            raise DomainValidationError("employee ID must not exceed 255 characters")
        if self.qr_email and not _is_valid_email(self.qr_email):
            raise DomainValidationError("QR email format is invalid")
        if metadata_size(self.extra_metadata) > MAX_METADATA_SIZE:
            raise DomainValidationError("metadata must not exceed 10KB")

    @property
    def is_admissible(self) -> bool:
        return self.status not in NON_ADMISSIBLE_STATUSES

    @property
    def is_confirmed(self) -> bool:
        return self.status == ParticipantStatus.CONFIRMED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == ParticipantStatus.CANCELLED.value

    @property
    def is_declined(self) -> bool:
        return self.status == ParticipantStatus.DECLINED.value

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value


def _is_valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True
