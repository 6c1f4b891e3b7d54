# File: app/api/v1/endpoints/events.py
from typing import Any, Optional
from datetime import datetime
import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app import schemas
from app.api import deps
from app.db.database import get_db
from app.models.event import EventStatus
from app.services.event_service import event_service

router = APIRouter()


@router.post("", response_model=schemas.Event, status_code=status.HTTP_201_CREATED)
def create_event(
    *,
    db: Session = Depends(get_db),
    event_in: schemas.EventCreate,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    """Create a draft event owned by the caller."""
    return event_service.create_event(db, organizer_id=actor.id, data=event_in)


@router.get("", response_model=schemas.EventList)
def list_events(
    *,
    db: Session = Depends(get_db),
    actor: deps.Actor = Depends(deps.get_current_actor),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    search: str = "",
    starts_after: Optional[datetime] = None,
    starts_before: Optional[datetime] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Any:
    page, per_page = deps.pagination(page, per_page)
    events, total = event_service.list_events(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        status=status_filter,
        search=search,
        starts_after=starts_after,
        starts_before=starts_before,
        page=page,
        per_page=per_page,
    )
    return schemas.EventList(items=events, total=total, page=page, per_page=per_page)


@router.get("/{event_id}", response_model=schemas.Event)
def get_event(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return event_service.get_event(db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id)


@router.put("/{event_id}", response_model=schemas.Event)
def update_event(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    event_in: schemas.EventUpdate,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return event_service.update_event(
        db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id, data=event_in
    )


@router.put("/{event_id}/status", response_model=schemas.Event)
def change_event_status(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    status_in: schemas.EventStatusUpdate,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    """Move an event through its lifecycle (draft -> published -> ongoing -> completed, or cancelled)."""
    return event_service.change_status(
        db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id, status=status_in.status
    )


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Response:
    event_service.delete_event(db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/stats", response_model=schemas.EventStats)
def get_event_stats(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return event_service.get_event_stats(db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id)
