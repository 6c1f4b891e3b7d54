from typing import Any, Optional
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app import schemas
from app.api import deps
from app.core.cancellation import CancellationToken
from app.db.database import get_db
from app.services.checkin_service import checkin_service

router = APIRouter()


@router.post(
    "/events/{event_id}/checkins",
    response_model=schemas.Checkin,
    status_code=status.HTTP_201_CREATED,
)
def check_in(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    checkin_in: schemas.CheckinCreate,
    actor: Optional[deps.Actor] = Depends(deps.get_optional_actor),
    cancel_token: CancellationToken = Depends(deps.get_cancel_token),
) -> Any:
    """Admit a participant by QR token or manually.

    QR scans may come from an unauthenticated kiosk. Manual check-in
    requires the event organizer or an admin.
    """
    return checkin_service.check_in(
        db,
        actor_id=actor.id if actor else None,
        is_admin=actor.is_admin if actor else False,
        event_id=event_id,
        data=checkin_in,
        cancel_token=cancel_token,
    )


@router.get("/events/{event_id}/checkins", response_model=schemas.CheckinList)
def list_checkins(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    page: int = 1,
    per_page: Optional[int] = None,
    actor: deps.Actor = Depends(deps.get_current_actor),
    cancel_token: CancellationToken = Depends(deps.get_cancel_token),
) -> Any:
    page, per_page = deps.pagination(page, per_page)
    return checkin_service.list_checkins(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        event_id=event_id,
        page=page,
        per_page=per_page,
        cancel_token=cancel_token,
    )


@router.get("/events/{event_id}/checkin-stats", response_model=schemas.CheckinStats)
def get_checkin_stats(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return checkin_service.get_event_stats(db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id)


@router.get("/participants/{participant_id}/checkin-status", response_model=schemas.CheckinStatus)
def get_checkin_status(
    *,
    db: Session = Depends(get_db),
    participant_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    cancel_token: CancellationToken = Depends(deps.get_cancel_token),
) -> Any:
    return checkin_service.get_status(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        participant_id=participant_id,
        cancel_token=cancel_token,
    )


@router.delete("/checkins/{checkin_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_checkin(
    *,
    db: Session = Depends(get_db),
    checkin_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    cancel_token: CancellationToken = Depends(deps.get_cancel_token),
) -> Response:
    """Undo an admission so the participant can check in again."""
    checkin_service.cancel(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        checkin_id=checkin_id,
        cancel_token=cancel_token,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
