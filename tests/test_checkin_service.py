import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.cancellation import CancellationToken
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RequestCancelledError,
)
from app.crud.checkin import CRUDCheckin
from app.crud.participant import CRUDParticipant
from app.db.database import Base, enable_sqlite_foreign_keys
from app.models.checkin import Checkin, CheckinMethod
from app.models.participant import Participant, ParticipantStatus
from app.schemas.checkin import CheckinCreate
from app.services.checkin_service import CheckinService
from app.services.participant_service import ParticipantService
from tests.conftest import ADMIN_ID, ORGANIZER_ID, OTHER_USER_ID, QR_SECRET, make_event, make_participant


@pytest.fixture
def service():
    return CheckinService()


def qr_request(participant, device_info=None):
    return CheckinCreate(method=CheckinMethod.QRCODE, qr_code=participant.qr_code, device_info=device_info)


def manual_request(participant_id):
    return CheckinCreate(method=CheckinMethod.MANUAL, participant_id=participant_id)


def count_checkins(db, participant_id):
    return db.query(Checkin).filter(Checkin.participant_id == participant_id).count()


# ---------------------------------------------------------------------------
# Admission scenarios
# ---------------------------------------------------------------------------

def test_qr_check_in_records_admission(db, service, event, participant):
    result = service.check_in(
        db,
        actor_id=None,
        is_admin=False,
        event_id=event.id,
        data=qr_request(participant, device_info={"kiosk": "gate-1"}),
    )

    assert result.method == "qrcode"
    assert result.participant_id == participant.id
    assert result.event_id == event.id
    assert result.participant_name == "Taro Yamada"
    assert result.participant_email == "taro@acme.co.jp"
    assert result.checked_in_by is None

    stored = db.query(Checkin).filter(Checkin.id == result.id).one()
    assert stored.device_info == {"kiosk": "gate-1"}
    assert stored.is_self_service


def test_repeat_qr_check_in_conflicts(db, service, event, participant):
    service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    with pytest.raises(ConflictError) as exc_info:
        service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    assert exc_info.value.message == "participant has already checked in"
    assert exc_info.value.status_code == 409
    assert count_checkins(db, participant.id) == 1


def test_declined_participant_cannot_check_in(db, service, event, participant_service):
    declined = make_participant(
        participant_service, db, event, email="declined@acme.co.jp", status=ParticipantStatus.DECLINED
    )

    with pytest.raises(BadRequestError) as exc_info:
        service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(declined))

    assert exc_info.value.message == "cannot check in: participant status is declined"
    assert count_checkins(db, declined.id) == 0


def test_cancelled_participant_cannot_check_in(db, service, event, participant_service):
    cancelled = make_participant(
        participant_service, db, event, email="cancelled@acme.co.jp", status=ParticipantStatus.CANCELLED
    )
    with pytest.raises(BadRequestError):
        service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(cancelled))


def test_tentative_participant_can_check_in(db, service, event, participant_service):
    tentative = make_participant(
        participant_service, db, event, email="maybe@acme.co.jp", status=ParticipantStatus.TENTATIVE
    )
    result = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(tentative))
    assert result.participant_id == tentative.id


def test_non_organizer_manual_forbidden_but_qr_allowed(db, service, event, participant):
    with pytest.raises(ForbiddenError):
        service.check_in(
            db, actor_id=OTHER_USER_ID, is_admin=False, event_id=event.id, data=manual_request(participant.id)
        )
    assert count_checkins(db, participant.id) == 0

    result = service.check_in(
        db, actor_id=OTHER_USER_ID, is_admin=False, event_id=event.id, data=qr_request(participant)
    )
    assert result.method == "qrcode"
    assert result.checked_in_by == OTHER_USER_ID


def test_cancel_frees_the_slot(db, service, event, participant):
    first = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    service.cancel(db, actor_id=ORGANIZER_ID, is_admin=False, checkin_id=first.id)
    assert count_checkins(db, participant.id) == 0

    second = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))
    assert second.id != first.id
    assert count_checkins(db, participant.id) == 1


def test_manual_check_in_by_organizer(db, service, event, participant):
    result = service.check_in(
        db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id, data=manual_request(participant.id)
    )
    assert result.method == "manual"
    assert result.checked_in_by == ORGANIZER_ID


def test_manual_check_in_by_admin(db, service, event, participant):
    result = service.check_in(
        db, actor_id=ADMIN_ID, is_admin=True, event_id=event.id, data=manual_request(participant.id)
    )
    assert result.checked_in_by == ADMIN_ID


def test_manual_check_in_without_actor_is_forbidden(db, service, event, participant):
    with pytest.raises(ForbiddenError):
        service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=manual_request(participant.id))


# ---------------------------------------------------------------------------
# Lookup failures
# ---------------------------------------------------------------------------

def test_unknown_event(db, service, participant):
    with pytest.raises(NotFoundError) as exc_info:
        service.check_in(db, actor_id=None, is_admin=False, event_id=uuid.uuid4(), data=qr_request(participant))
    assert exc_info.value.message == "event not found"


def test_qr_method_requires_a_code(db, service, event):
    with pytest.raises(BadRequestError) as exc_info:
        service.check_in(
            db, actor_id=None, is_admin=False, event_id=event.id, data=CheckinCreate(method=CheckinMethod.QRCODE)
        )
    assert exc_info.value.message == "QR code is required for QR code check-in"


def test_unknown_qr_code_is_reported_generically(db, service, event, participant):
    forged = participant.qr_code[:-1] + ("A" if participant.qr_code[-1] != "A" else "B")
    data = CheckinCreate(method=CheckinMethod.QRCODE, qr_code=forged)

    with pytest.raises(NotFoundError) as exc_info:
        service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=data)
    assert exc_info.value.message == "invalid QR code or participant not found"


def test_manual_method_requires_participant_id(db, service, event):
    data = CheckinCreate(method=CheckinMethod.MANUAL)
    with pytest.raises(BadRequestError) as exc_info:
        service.check_in(db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id, data=data)
    assert exc_info.value.message == "participant ID is required for manual check-in"


def test_manual_unknown_participant(db, service, event):
    with pytest.raises(NotFoundError):
        service.check_in(
            db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id, data=manual_request(uuid.uuid4())
        )


def test_participant_from_another_event(db, service, event, participant):
    other_event = make_event(db, name="Other Event")
    with pytest.raises(BadRequestError) as exc_info:
        service.check_in(db, actor_id=None, is_admin=False, event_id=other_event.id, data=qr_request(participant))
    assert exc_info.value.message == "participant does not belong to this event"


def test_regenerated_token_replaces_the_old_one(db, service, event, participant, participant_service):
    old_token = participant.qr_code
    participant_service.regenerate_qr_code(
        db, actor_id=ORGANIZER_ID, is_admin=False, participant_id=participant.id
    )

    stale = CheckinCreate(method=CheckinMethod.QRCODE, qr_code=old_token)
    with pytest.raises(NotFoundError):
        service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=stale)

    fresh = db.query(Participant).filter(Participant.id == participant.id).one()
    result = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(fresh))
    assert result.participant_id == participant.id


# ---------------------------------------------------------------------------
# Races
# ---------------------------------------------------------------------------

class BlindCheckinGateway(CRUDCheckin):
    """Pre-check that always misses, as when two requests pass it together."""

    def exists_by_participant(self, db, *, event_id, participant_id):
        return False


def test_constraint_rejection_reads_like_the_pre_check(db, event, participant):
    racing = CheckinService(checkins=BlindCheckinGateway(Checkin))
    racing.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    with pytest.raises(ConflictError) as exc_info:
        racing.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    assert type(exc_info.value) is ConflictError
    assert exc_info.value.message == "participant has already checked in"
    assert count_checkins(db, participant.id) == 1

    # The session stays usable after the rollback
    assert db.query(Participant).filter(Participant.id == participant.id).one().name == "Taro Yamada"


@pytest.mark.parametrize("pre_check", [True, False], ids=["with-pre-check", "constraint-only"])
def test_concurrent_admissions_admit_exactly_once(tmp_path, pre_check):
    engine = enable_sqlite_foreign_keys(
        create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = Session()
    event = make_event(setup)
    participant = make_participant(ParticipantService(secret=QR_SECRET), setup, event)
    event_id, token = event.id, participant.qr_code
    setup.close()

    service = CheckinService() if pre_check else CheckinService(checkins=BlindCheckinGateway(Checkin))
    attempts = 8
    barrier = threading.Barrier(attempts)
    successes, conflicts, other_errors = [], [], []

    def attempt():
        session = Session()
        try:
            barrier.wait()
            result = service.check_in(
                session,
                actor_id=None,
                is_admin=False,
                event_id=event_id,
                data=CheckinCreate(method=CheckinMethod.QRCODE, qr_code=token),
            )
            successes.append(result.id)
        except ConflictError as e:
            conflicts.append(e)
        except Exception as e:
            other_errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(attempts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert other_errors == []
    assert len(successes) == 1
    assert len(conflicts) == attempts - 1
    assert {e.message for e in conflicts} == {"participant has already checked in"}

    verify = Session()
    assert verify.query(Checkin).filter(Checkin.event_id == event_id).count() == 1
    verify.close()
    engine.dispose()


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

def test_cancelled_token_stops_before_any_work(db, service, event, participant):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(RequestCancelledError) as exc_info:
        service.check_in(
            db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant), cancel_token=token
        )

    assert exc_info.value.retriable
    assert exc_info.value.status_code == 503
    assert count_checkins(db, participant.id) == 0


def test_expired_deadline_is_reported_as_cancellation(db, service, event, participant):
    token = CancellationToken.with_timeout(0)

    with pytest.raises(RequestCancelledError) as exc_info:
        service.check_in(
            db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant), cancel_token=token
        )
    assert exc_info.value.message == "request deadline exceeded"


def test_cancellation_mid_request_skips_the_insert(db, event, participant):
    token = CancellationToken()

    class CancellingParticipantGateway(CRUDParticipant):
        def get_by_qr_code(self, db, *, qr_code):
            found = super().get_by_qr_code(db, qr_code=qr_code)
            token.cancel("client disconnected")
            return found

    service = CheckinService(participants=CancellingParticipantGateway(Participant))

    with pytest.raises(RequestCancelledError) as exc_info:
        service.check_in(
            db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant), cancel_token=token
        )

    assert exc_info.value.message == "client disconnected"
    assert count_checkins(db, participant.id) == 0


# ---------------------------------------------------------------------------
# Status, listing, stats, undo
# ---------------------------------------------------------------------------

def test_status_before_and_after_check_in(db, service, event, participant):
    status = service.get_status(db, actor_id=ORGANIZER_ID, is_admin=False, participant_id=participant.id)
    assert status.is_checked_in is False
    assert status.checkin is None
    assert status.event_name == event.name

    admitted = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    status = service.get_status(db, actor_id=ORGANIZER_ID, is_admin=False, participant_id=participant.id)
    assert status.is_checked_in is True
    assert status.checkin.id == admitted.id


def test_status_requires_owner_or_admin(db, service, participant):
    with pytest.raises(ForbiddenError):
        service.get_status(db, actor_id=OTHER_USER_ID, is_admin=False, participant_id=participant.id)

    status = service.get_status(db, actor_id=ADMIN_ID, is_admin=True, participant_id=participant.id)
    assert status.participant_id == participant.id


def test_status_unknown_participant_is_not_found_before_forbidden(db, service):
    with pytest.raises(NotFoundError):
        service.get_status(db, actor_id=OTHER_USER_ID, is_admin=False, participant_id=uuid.uuid4())


def test_list_is_newest_first_and_paginated(db, service, event, participant_service):
    base = datetime(2026, 11, 1, 9, 0, tzinfo=timezone.utc)
    admitted = []
    for i in range(5):
        p = make_participant(participant_service, db, event, email=f"guest{i}@acme.co.jp", name=f"Guest {i}")
        result = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(p))
        record = db.query(Checkin).filter(Checkin.id == result.id).one()
        record.checked_in_at = base + timedelta(minutes=i)
        admitted.append(result.id)
    db.commit()

    page_one = service.list_checkins(db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id, page=1, per_page=2)
    page_three = service.list_checkins(db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id, page=3, per_page=2)

    assert page_one.total == 5
    assert [item.id for item in page_one.items] == [admitted[4], admitted[3]]
    assert [item.participant_name for item in page_one.items] == ["Guest 4", "Guest 3"]
    assert [item.id for item in page_three.items] == [admitted[0]]
    assert page_three.page == 3
    assert page_three.per_page == 2


def test_list_requires_owner_or_admin(db, service, event):
    with pytest.raises(ForbiddenError):
        service.list_checkins(db, actor_id=OTHER_USER_ID, is_admin=False, event_id=event.id)


def test_list_skips_admissions_without_participant(db, event, participant, caplog):
    orphan = Checkin(id=uuid.uuid4(), event_id=event.id, participant_id=uuid.uuid4(), method="qrcode")

    class GatewayWithOrphan(CRUDCheckin):
        def get_by_event(self, db, *, event_id, skip=0, limit=20):
            rows, total = super().get_by_event(db, event_id=event_id, skip=skip, limit=limit)
            return rows + [(orphan, None, None)], total + 1

    service = CheckinService(checkins=GatewayWithOrphan(Checkin))
    service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    with caplog.at_level(logging.WARNING, logger="app.services.checkin_service"):
        listing = service.list_checkins(db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id)

    assert [item.participant_id for item in listing.items] == [participant.id]
    assert listing.total == 1
    assert str(orphan.id) in caplog.text


def test_event_stats(db, service, event, participant, participant_service):
    make_participant(participant_service, db, event, email="second@acme.co.jp")
    make_participant(participant_service, db, event, email="third@acme.co.jp")
    service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    stats = service.get_event_stats(db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id)

    assert stats.total_participants == 3
    assert stats.checked_in_count == 1
    assert stats.checkin_rate == 33.33


def test_event_stats_with_no_participants(db, service, event):
    stats = service.get_event_stats(db, actor_id=ORGANIZER_ID, is_admin=False, event_id=event.id)
    assert stats.checkin_rate == 0.0


def test_cancel_unknown_checkin(db, service):
    with pytest.raises(NotFoundError) as exc_info:
        service.cancel(db, actor_id=ORGANIZER_ID, is_admin=False, checkin_id=uuid.uuid4())
    assert exc_info.value.message == "check-in not found"


def test_cancel_by_stranger_is_forbidden(db, service, event, participant):
    admitted = service.check_in(db, actor_id=None, is_admin=False, event_id=event.id, data=qr_request(participant))

    with pytest.raises(ForbiddenError):
        service.cancel(db, actor_id=OTHER_USER_ID, is_admin=False, checkin_id=admitted.id)
    assert count_checkins(db, participant.id) == 1

    service.cancel(db, actor_id=ADMIN_ID, is_admin=True, checkin_id=admitted.id)
    assert count_checkins(db, participant.id) == 0
