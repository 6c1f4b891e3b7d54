from dataclasses import dataclass
from typing import Optional
import uuid

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.cancellation import CancellationToken
from app.core.config import settings
from app.core.exceptions import UnauthorizedError
from app.core.security import decode_token, is_admin_role

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: str = "organizer"

    @property
    def is_admin(self) -> bool:
        return is_admin_role(self.role)


def _actor_from_credentials(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[Actor]:
    if credentials is None:
        return None

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError("could not validate credentials")

    subject = payload.get("sub")
    try:
        actor_id = uuid.UUID(str(subject))
    except ValueError:
        raise UnauthorizedError("could not validate credentials")

    return Actor(id=actor_id, role=payload.get("role") or "organizer")


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    actor = _actor_from_credentials(credentials)
    if actor is None:
        raise UnauthorizedError("not authenticated")
    return actor


def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Actor]:
    """Kiosk and self-service endpoints accept anonymous callers."""
    return _actor_from_credentials(credentials)


def get_cancel_token() -> CancellationToken:
    return CancellationToken.with_timeout(settings.REQUEST_TIMEOUT_SECONDS)


def pagination(page: int, per_page: Optional[int]) -> tuple:
    """Clamp paging parameters to sane bounds."""
    page = max(page, 1)
    if per_page is None or per_page < 1:
        per_page = settings.DEFAULT_PAGE_SIZE
    return page, min(per_page, settings.MAX_PAGE_SIZE)
