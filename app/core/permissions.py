from typing import Optional
import uuid

from app.core.exceptions import ForbiddenError
from app.models.event import Event


def can_manage_event(event: Event, actor_id: Optional[uuid.UUID], is_admin: bool) -> bool:
    """Organizer of the event or an admin. A missing actor never passes."""
    if is_admin:
        return True
    if actor_id is None:
        return False
    return event.organizer_id == actor_id


def ensure_event_access(
    event: Event,
    actor_id: Optional[uuid.UUID],
    is_admin: bool,
    action: str = "manage this event",
) -> None:
    """Raise ForbiddenError unless the actor may act on the event.

    Call only after the event (and any participant/check-in) has been loaded,
    so missing resources are reported as not found first.
    """
    if not can_manage_event(event, actor_id, is_admin):
        raise ForbiddenError(f"you do not have permission to {action}")
