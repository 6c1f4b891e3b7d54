import threading
import time
from typing import Optional

from app.core.exceptions import RequestCancelledError


class CancellationToken:
    """Cooperative cancellation for a single unit of work.

    A token is cancelled either explicitly through ``cancel()`` or implicitly
    once its deadline passes. Services call ``raise_if_cancelled()`` between
    steps so that a caller who gave up never has later steps run on its
    behalf.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason = "request cancelled"

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(timeout=seconds)

    def cancel(self, reason: str = "request cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "request deadline exceeded"
            return True
        return False

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelledError(self._reason)


def checkpoint(token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()
