from typing import List, Optional, Sequence, Tuple
import logging
import uuid

from sqlalchemy.orm import Session

from app import crud
from app.core.cancellation import CancellationToken, checkpoint
from app.core.config import settings
from app.core.exceptions import (
    InternalError,
    ConflictError,
    DomainValidationError,
    NotFoundError,
)
from app.core.permissions import ensure_event_access
from app.core.qr_token import (
    QRTokenError,
    decode_qr_distribution_token,
    generate_participant_qr_token,
    generate_qr_distribution_url,
    verify_qr_token,
)
from app.models.base import utcnow
from app.models.event import Event
from app.models.participant import Participant
from app.schemas.participant import (
    BulkCreateError,
    BulkCreateResult,
    ParticipantCreate,
    ParticipantQRResponse,
    ParticipantStats,
    ParticipantUpdate,
)
from app.services import qr_code_service

logger = logging.getLogger(__name__)

EMAIL_EXISTS = "a participant with this email already exists for this event"


def _enum_value(value):
    return getattr(value, "value", value)


class ParticipantService:
    def __init__(self, events=crud.event, participants=crud.participant, secret=None, distribution_base_url=None):
        self.events = events
        self.participants = participants
        self._secret = secret
        self._distribution_base_url = distribution_base_url

    @property
    def secret(self) -> str:
        return self._secret or settings.QR_HMAC_SECRET

    @property
    def distribution_base_url(self) -> str:
        return self._distribution_base_url or settings.QR_DISTRIBUTION_BASE_URL

    def _issue_token(self, event_id: uuid.UUID, participant_id: uuid.UUID) -> str:
        try:
            return generate_participant_qr_token(event_id, participant_id, self.secret)
        except QRTokenError as e:
            logger.error(f"❌ Cannot issue QR token: {e}")
            raise InternalError("failed to generate QR code", cause=e) from e

    def _build_participant(self, event_id: uuid.UUID, data: ParticipantCreate) -> Participant:
        # The id is chosen up front so the token can embed it
        participant_id = uuid.uuid4()
        participant = Participant(
            id=participant_id,
            event_id=event_id,
            name=data.name,
            email=str(data.email),
            employee_id=data.employee_id,
            phone=data.phone,
            qr_email=str(data.qr_email) if data.qr_email else None,
            status=_enum_value(data.status),
            qr_code=self._issue_token(event_id, participant_id),
            qr_code_generated_at=utcnow(),
            extra_metadata=data.metadata,
            payment_status=_enum_value(data.payment_status),
            payment_amount=data.payment_amount,
            payment_date=data.payment_date,
        )
        participant.validate()
        return participant

    def _get_event(self, db: Session, event_id: uuid.UUID) -> Event:
        event = self.events.get(db, event_id)
        if event is None:
            raise NotFoundError("event not found")
        return event

    def _get_participant_with_access(
        self, db: Session, participant_id: uuid.UUID, actor_id, is_admin: bool, action: str, event_id=None
    ) -> Tuple[Participant, Event]:
        participant = self.participants.get(db, participant_id)
        # Addressed through another event counts as missing
        if participant is None or (event_id is not None and participant.event_id != event_id):
            raise NotFoundError("participant not found")
        event = self._get_event(db, participant.event_id)
        ensure_event_access(event, actor_id, is_admin, action)
        return participant, event

    def create_participant(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        data: ParticipantCreate,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Participant:
        checkpoint(cancel_token)
        event = self._get_event(db, event_id)
        ensure_event_access(event, actor_id, is_admin, "add participants to this event")

        checkpoint(cancel_token)
        if self.participants.exists_by_email(db, event_id=event.id, email=str(data.email)):
            raise ConflictError(EMAIL_EXISTS)

        participant = self._build_participant(event.id, data)

        checkpoint(cancel_token)
        self.participants.create(db, db_obj=participant)
        logger.info(f"✅ Registered participant {participant.id} ({participant.email}) for event {event.id}")
        return participant

    def bulk_create_participants(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        rows: Sequence[ParticipantCreate],
        cancel_token: Optional[CancellationToken] = None,
    ) -> BulkCreateResult:
        """Register many participants at once.

        Invalid rows and duplicate emails (in the batch or already stored)
        are reported per row; the remaining rows are inserted together.
        """
        checkpoint(cancel_token)
        event = self._get_event(db, event_id)
        ensure_event_access(event, actor_id, is_admin, "add participants to this event")

        errors: List[BulkCreateError] = []
        accepted: List[Participant] = []
        seen_emails = set()

        for index, row in enumerate(rows):
            checkpoint(cancel_token)
            email = str(row.email)
            key = email.lower()
            if key in seen_emails:
                errors.append(BulkCreateError(index=index, email=email, error="duplicate email in upload"))
                continue
            if self.participants.exists_by_email(db, event_id=event.id, email=email):
                errors.append(BulkCreateError(index=index, email=email, error=EMAIL_EXISTS))
                continue
            try:
                participant = self._build_participant(event.id, row)
            except DomainValidationError as e:
                errors.append(BulkCreateError(index=index, email=email, error=e.message))
                continue
            seen_emails.add(key)
            accepted.append(participant)

        checkpoint(cancel_token)
        created = self.participants.create_bulk(db, participants=accepted)

        if errors:
            logger.warning(f"⚠️ Bulk upload for event {event.id}: {len(errors)} row(s) rejected")
        logger.info(f"✅ Bulk registered {created} participant(s) for event {event.id}")
        return BulkCreateResult(created_count=created, failed_count=len(errors), errors=errors)

    def get_participant(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        participant_id: uuid.UUID,
        event_id: Optional[uuid.UUID] = None,
    ) -> Participant:
        participant, _ = self._get_participant_with_access(
            db, participant_id, actor_id, is_admin, "view this participant", event_id
        )
        return participant

    def list_participants(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        event_id: uuid.UUID,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: str = "",
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Participant], int]:
        event = self._get_event(db, event_id)
        ensure_event_access(event, actor_id, is_admin, "view participants of this event")
        return self.participants.get_by_event(
            db,
            event_id=event.id,
            status=_enum_value(status),
            payment_status=_enum_value(payment_status),
            search=search,
            skip=(page - 1) * per_page,
            limit=per_page,
        )

    def update_participant(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        participant_id: uuid.UUID,
        event_id: Optional[uuid.UUID] = None,
        data: ParticipantUpdate,
    ) -> Participant:
        participant, event = self._get_participant_with_access(
            db, participant_id, actor_id, is_admin, "update this participant", event_id
        )

        update_data = data.model_dump(exclude_unset=True)
        if "metadata" in update_data:
            update_data["extra_metadata"] = update_data.pop("metadata")
        for key in ("status", "payment_status"):
            if key in update_data:
                update_data[key] = _enum_value(update_data[key])
        for key in ("email", "qr_email"):
            if update_data.get(key) is not None:
                update_data[key] = str(update_data[key])

        new_email = update_data.get("email")
        if new_email and new_email.lower() != participant.email.lower():
            if self.participants.exists_by_email(db, event_id=event.id, email=new_email):
                raise ConflictError(EMAIL_EXISTS)

        for field, value in update_data.items():
            setattr(participant, field, value)
        try:
            participant.validate()
        except DomainValidationError:
            db.rollback()
            raise

        participant.updated_at = utcnow()
        self.participants.update(db, db_obj=participant)
        logger.info(f"Updated participant {participant.id}")
        return participant

    def delete_participant(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        participant_id: uuid.UUID,
        event_id: Optional[uuid.UUID] = None,
    ) -> None:
        participant, _ = self._get_participant_with_access(
            db, participant_id, actor_id, is_admin, "delete this participant", event_id
        )
        self.participants.remove(db, id=participant.id)
        logger.info(f"🗑️ Deleted participant {participant_id}")

    def regenerate_qr_code(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        participant_id: uuid.UUID,
        event_id: Optional[uuid.UUID] = None,
    ) -> Participant:
        """Issue a fresh token; the previous one stops admitting immediately."""
        participant, event = self._get_participant_with_access(
            db, participant_id, actor_id, is_admin, "regenerate QR codes for this event", event_id
        )
        participant.qr_code = self._issue_token(event.id, participant.id)
        participant.qr_code_generated_at = utcnow()
        participant.updated_at = utcnow()
        self.participants.update(db, db_obj=participant)
        logger.info(f"🔄 Regenerated QR code for participant {participant.id}")
        return participant

    def get_qr_code(
        self,
        db: Session,
        *,
        actor_id: Optional[uuid.UUID],
        is_admin: bool,
        participant_id: uuid.UUID,
        event_id: Optional[uuid.UUID] = None,
        image_format: str = "png",
        size: int = qr_code_service.DEFAULT_QR_SIZE,
    ) -> ParticipantQRResponse:
        participant, _ = self._get_participant_with_access(
            db, participant_id, actor_id, is_admin, "view QR codes for this event", event_id
        )
        content, media_type = qr_code_service.render_qr(participant.qr_code, image_format, size)
        return ParticipantQRResponse(
            qr_token=participant.qr_code,
            format=media_type.split("/")[1].split("+")[0],
            qr_data_url=qr_code_service.to_data_url(content, media_type),
            distribution_url=generate_qr_distribution_url(self.distribution_base_url, participant.qr_code),
        )

    def resolve_distribution_token(self, db: Session, *, encoded: str) -> Participant:
        """Look up the participant behind a distribution link.

        Forged or altered tokens are rejected by signature before any lookup.
        """
        try:
            qr_token = decode_qr_distribution_token(encoded)
        except QRTokenError:
            raise NotFoundError("QR code not found")
        if not verify_qr_token(self.secret, qr_token):
            logger.warning("Rejected distribution link with an invalid signature")
            raise NotFoundError("QR code not found")

        participant = self.participants.get_by_qr_code(db, qr_code=qr_token)
        if participant is None:
            # Signed but superseded by a regeneration
            raise NotFoundError("QR code not found")
        return participant

    def get_participant_stats(
        self, db: Session, *, actor_id: Optional[uuid.UUID], is_admin: bool, event_id: uuid.UUID
    ) -> ParticipantStats:
        event = self._get_event(db, event_id)
        ensure_event_access(event, actor_id, is_admin, "view participant statistics for this event")
        return ParticipantStats(**self.participants.get_stats(db, event_id=event.id))


participant_service = ParticipantService()
