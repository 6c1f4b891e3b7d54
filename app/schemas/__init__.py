from .event import Event, EventCreate, EventUpdate, EventStatusUpdate, EventList, EventStats
from .participant import (
    Participant, ParticipantCreate, ParticipantUpdate, ParticipantList,
    ParticipantStats, ParticipantQRResponse, BulkCreateResult, BulkCreateError,
)
from .checkin import Checkin, CheckinCreate, CheckinStatus, CheckinList, CheckinStats
