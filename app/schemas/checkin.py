from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime
from uuid import UUID
from app.models.checkin import CheckinMethod

class CheckinCreate(BaseModel):
    method: CheckinMethod
    # Exactly one is required, depending on the method
    qr_code: Optional[str] = None
    participant_id: Optional[UUID] = None
    device_info: Optional[Dict[str, Any]] = None

class Checkin(BaseModel):
    id: UUID
    event_id: UUID
    participant_id: UUID
    participant_name: str
    participant_email: str
    checked_in_at: datetime
    checked_in_by: Optional[UUID] = None
    method: str

class CheckinStatus(BaseModel):
    participant_id: UUID
    participant_name: str
    participant_email: str
    event_id: UUID
    event_name: str
    is_checked_in: bool
    checkin: Optional[Checkin] = None

class CheckinList(BaseModel):
    items: List[Checkin]
    total: int
    page: int
    per_page: int

class CheckinStats(BaseModel):
    event_id: UUID
    total_participants: int
    checked_in_count: int
    checkin_rate: float  # Percentage, 0.0 - 100.0
