"""Deadline and cancellation token threaded through pipeline entry points"""

import threading
import time
from typing import Optional

from salary_advance.domain.exceptions import OperationCancelledError


class CancellationToken:
    """
    Cooperative cancellation with an optional deadline.

    Long-running loops call `raise_if_cancelled()` between records so a
    cancelled or expired batch stops at a record boundary.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise OperationCancelledError("operation cancelled")
        if self.expired:
            raise OperationCancelledError("operation deadline exceeded")


def ensure_token(token: Optional[CancellationToken]) -> CancellationToken:
    """Callers may omit the token; an unbounded one is used instead"""
    return token if token is not None else CancellationToken()
