from typing import Dict, List, Optional, Tuple
import uuid

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.crud.errors import translate_storage_errors
from app.models.participant import Participant, ParticipantStatus, PaymentStatus
from app.schemas.participant import ParticipantCreate, ParticipantUpdate


class CRUDParticipant(CRUDBase[Participant, ParticipantCreate, ParticipantUpdate]):

    def get_by_qr_code(self, db: Session, *, qr_code: str) -> Optional[Participant]:
        """Exact-match lookup on the stored token."""
        with translate_storage_errors(db):
            return db.query(Participant).filter(Participant.qr_code == qr_code).first()

    def get_by_event(
        self,
        db: Session,
        *,
        event_id: uuid.UUID,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: str = "",
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Participant], int]:
        query = db.query(Participant).filter(Participant.event_id == event_id)
        if status:
            query = query.filter(Participant.status == status)
        if payment_status:
            query = query.filter(Participant.payment_status == payment_status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Participant.name.ilike(pattern),
                    Participant.email.ilike(pattern),
                    Participant.employee_id.ilike(pattern),
                )
            )

        with translate_storage_errors(db):
            total = query.count()
            participants = query.order_by(Participant.created_at.desc()).offset(skip).limit(limit).all()
        return participants, total

    def exists_by_email(self, db: Session, *, event_id: uuid.UUID, email: str) -> bool:
        with translate_storage_errors(db):
            found = db.query(Participant.id).filter(
                Participant.event_id == event_id,
                func.lower(Participant.email) == email.lower(),
            ).first()
        return found is not None

    def create_bulk(self, db: Session, *, participants: List[Participant]) -> int:
        """Insert all participants in one transaction; all or nothing."""
        if not participants:
            return 0
        with translate_storage_errors(db):
            db.add_all(participants)
            db.commit()
        return len(participants)

    def get_stats(self, db: Session, *, event_id: uuid.UUID) -> Dict[str, float]:
        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        with translate_storage_errors(db):
            row = db.query(
                func.count(Participant.id),
                count_where(Participant.status == ParticipantStatus.CONFIRMED.value),
                count_where(Participant.status == ParticipantStatus.TENTATIVE.value),
                count_where(Participant.status == ParticipantStatus.CANCELLED.value),
                count_where(Participant.status == ParticipantStatus.DECLINED.value),
                count_where(Participant.payment_status == PaymentStatus.PAID.value),
                count_where(Participant.payment_status == PaymentStatus.UNPAID.value),
                func.coalesce(func.sum(Participant.payment_amount), 0),
            ).filter(Participant.event_id == event_id).one()

        return {
            "total_count": int(row[0] or 0),
            "confirmed_count": int(row[1]),
            "tentative_count": int(row[2]),
            "cancelled_count": int(row[3]),
            "declined_count": int(row[4]),
            "paid_count": int(row[5]),
            "unpaid_count": int(row[6]),
            "total_payment_amount": float(row[7]),
        }


participant = CRUDParticipant(Participant)
