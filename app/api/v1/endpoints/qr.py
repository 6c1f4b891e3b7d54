from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.services import qr_code_service
from app.services.participant_service import participant_service

router = APIRouter()


@router.get("/{encoded_token}")
def get_distributed_qr(
    encoded_token: str,
    size: int = qr_code_service.DEFAULT_QR_SIZE,
    db: Session = Depends(get_db),
) -> Response:
    """Public QR image behind a distribution link (no authentication)."""
    participant = participant_service.resolve_distribution_token(db, encoded=encoded_token)
    content, media_type = qr_code_service.render_qr(participant.qr_code, "png", size)
    return Response(content=content, media_type=media_type, headers={"Cache-Control": "no-store"})
