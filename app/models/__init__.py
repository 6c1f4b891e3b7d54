from .base import BaseModel
from .event import Event, EventStatus
from .participant import Participant, ParticipantStatus, PaymentStatus
from .checkin import Checkin, CheckinMethod

__all__ = [
    "BaseModel", "Event", "EventStatus", "Participant", "ParticipantStatus",
    "PaymentStatus", "Checkin", "CheckinMethod",
]
