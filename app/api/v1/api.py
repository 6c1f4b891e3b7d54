# File: app/api/v1/api.py
from fastapi import APIRouter
from app.api.v1.endpoints import checkins, events, participants, qr

# Create main API router
api_router = APIRouter()

api_router.include_router(
    events.router,
    prefix="/events",
    tags=["events"]
)

api_router.include_router(
    participants.router,
    prefix="/events",
    tags=["participants"]
)

api_router.include_router(
    checkins.router,
    tags=["checkins"]
)

api_router.include_router(
    qr.router,
    prefix="/qr",
    tags=["qr-distribution"]
)
