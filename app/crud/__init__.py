from .event import event
from .participant import participant
from .checkin import checkin

__all__ = ["event", "participant", "checkin"]
