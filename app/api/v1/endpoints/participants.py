from typing import Any, List, Optional
import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app import schemas
from app.api import deps
from app.core.cancellation import CancellationToken
from app.db.database import get_db
from app.models.participant import ParticipantStatus, PaymentStatus
from app.services import qr_code_service
from app.services.participant_service import participant_service

router = APIRouter()


@router.post("/{event_id}/participants", response_model=schemas.Participant, status_code=status.HTTP_201_CREATED)
def create_participant(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participant_in: schemas.ParticipantCreate,
    actor: deps.Actor = Depends(deps.get_current_actor),
    cancel_token: CancellationToken = Depends(deps.get_cancel_token),
) -> Any:
    """Register a participant; a signed QR token is issued immediately."""
    return participant_service.create_participant(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        event_id=event_id,
        data=participant_in,
        cancel_token=cancel_token,
    )


@router.post("/{event_id}/participants/bulk", response_model=schemas.BulkCreateResult)
def bulk_create_participants(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participants_in: List[schemas.ParticipantCreate],
    actor: deps.Actor = Depends(deps.get_current_actor),
    cancel_token: CancellationToken = Depends(deps.get_cancel_token),
) -> Any:
    return participant_service.bulk_create_participants(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        event_id=event_id,
        rows=participants_in,
        cancel_token=cancel_token,
    )


@router.get("/{event_id}/participants", response_model=schemas.ParticipantList)
def list_participants(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
    status_filter: Optional[ParticipantStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    search: str = "",
    page: int = 1,
    per_page: Optional[int] = None,
) -> Any:
    page, per_page = deps.pagination(page, per_page)
    participants, total = participant_service.list_participants(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        event_id=event_id,
        status=status_filter,
        payment_status=payment_status,
        search=search,
        page=page,
        per_page=per_page,
    )
    return schemas.ParticipantList(items=participants, total=total, page=page, per_page=per_page)


@router.get("/{event_id}/participants/stats", response_model=schemas.ParticipantStats)
def get_participant_stats(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return participant_service.get_participant_stats(
        db, actor_id=actor.id, is_admin=actor.is_admin, event_id=event_id
    )


@router.get("/{event_id}/participants/{participant_id}", response_model=schemas.Participant)
def get_participant(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participant_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return participant_service.get_participant(
        db, actor_id=actor.id, is_admin=actor.is_admin, participant_id=participant_id, event_id=event_id
    )


@router.put("/{event_id}/participants/{participant_id}", response_model=schemas.Participant)
def update_participant(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participant_id: uuid.UUID,
    participant_in: schemas.ParticipantUpdate,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return participant_service.update_participant(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        participant_id=participant_id,
        event_id=event_id,
        data=participant_in,
    )


@router.delete("/{event_id}/participants/{participant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_participant(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participant_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Response:
    participant_service.delete_participant(
        db, actor_id=actor.id, is_admin=actor.is_admin, participant_id=participant_id, event_id=event_id
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{event_id}/participants/{participant_id}/regenerate-qr", response_model=schemas.Participant)
def regenerate_participant_qr(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participant_id: uuid.UUID,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    """Replace the participant's QR token. The old token stops working."""
    return participant_service.regenerate_qr_code(
        db, actor_id=actor.id, is_admin=actor.is_admin, participant_id=participant_id, event_id=event_id
    )


@router.get("/{event_id}/participants/{participant_id}/qr", response_model=schemas.ParticipantQRResponse)
def get_participant_qr(
    *,
    db: Session = Depends(get_db),
    event_id: uuid.UUID,
    participant_id: uuid.UUID,
    image_format: str = Query("png", alias="format"),
    size: int = qr_code_service.DEFAULT_QR_SIZE,
    actor: deps.Actor = Depends(deps.get_current_actor),
) -> Any:
    return participant_service.get_qr_code(
        db,
        actor_id=actor.id,
        is_admin=actor.is_admin,
        participant_id=participant_id,
        event_id=event_id,
        image_format=image_format,
        size=size,
    )
