import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("QR_HMAC_SECRET", "test-qr-secret")
os.environ.setdefault("QR_DISTRIBUTION_BASE_URL", "https://checkin.example.com/")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db.database import Base, enable_sqlite_foreign_keys
from app.models.event import Event, EventStatus
from app.models.participant import ParticipantStatus
from app.schemas.participant import ParticipantCreate
from app.services.participant_service import ParticipantService

QR_SECRET = "test-qr-secret"
ORGANIZER_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
OTHER_USER_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")
ADMIN_ID = uuid.UUID("33333333-3333-4333-8333-333333333333")

engine = enable_sqlite_foreign_keys(
    create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def participant_service():
    return ParticipantService(secret=QR_SECRET, distribution_base_url="https://checkin.example.com/")


def make_event(db, organizer_id=ORGANIZER_ID, status=EventStatus.PUBLISHED, **overrides):
    start = datetime.now(timezone.utc) + timedelta(days=7)
    fields = dict(
        organizer_id=organizer_id,
        name="Annual Conference",
        description="Company-wide conference",
        start_date=start,
        end_date=start + timedelta(hours=8),
        location="Tokyo Big Sight",
        status=status,
    )
    fields.update(overrides)
    event = Event(**fields)
    event.validate()
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def make_participant(service, db, event, email="taro@acme.co.jp", status=ParticipantStatus.CONFIRMED, **overrides):
    data = ParticipantCreate(name=overrides.pop("name", "Taro Yamada"), email=email, status=status, **overrides)
    return service.create_participant(
        db, actor_id=event.organizer_id, is_admin=False, event_id=event.id, data=data
    )


@pytest.fixture
def event(db):
    return make_event(db)


@pytest.fixture
def participant(db, event, participant_service):
    return make_participant(participant_service, db, event)
