# File: app/schemas/event.py
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from app.models.event import EventStatus

class EventBase(BaseModel):
    name: str
    description: Optional[str] = ""
    start_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = ""
    timezone: Optional[str] = "Asia/Tokyo"

class EventCreate(EventBase):
    pass

class EventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    timezone: Optional[str] = None

class EventStatusUpdate(BaseModel):
    status: EventStatus

class Event(EventBase):
    id: UUID
    organizer_id: UUID
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class EventList(BaseModel):
    items: List[Event]
    total: int
    page: int
    per_page: int

class EventStats(BaseModel):
    event_id: UUID
    total_participants: int
    checked_in_count: int
    checkin_rate: float
