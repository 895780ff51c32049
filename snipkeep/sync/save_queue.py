from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SaveCoalescer:
    """Collapse overlapping full-state saves into one trailing write.

    The first caller performs the save. Anyone calling while it is in flight
    is parked; once it finishes, a single follow-up save carrying the state at
    that moment runs, and every parked caller gets that follow-up's outcome.
    """

    def __init__(self, save: Callable[[T], None], snapshot: Callable[[], T]) -> None:
        self._save = save
        self._snapshot = snapshot
        self._lock = threading.Lock()
        self._saving = False
        self._waiters: list[Future[None]] = []

    @property
    def saving(self) -> bool:
        with self._lock:
            return self._saving

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._waiters)

    def save(self, timeout_s: float | None = None) -> None:
        """Save the current state, blocking until the covering write finishes."""
        waiter: Future[None] | None = None
        with self._lock:
            if self._saving:
                waiter = Future()
                self._waiters.append(waiter)
            else:
                self._saving = True
        if waiter is not None:
            waiter.result(timeout=timeout_s)
            return
        self._drive()

    def _drive(self) -> None:
        error: BaseException | None = None
        try:
            self._save(self._snapshot())
        except Exception as exc:
            error = exc
        while True:
            with self._lock:
                queued = self._waiters
                self._waiters = []
                if not queued:
                    self._saving = False
                    break
            logger.debug("coalescing %d queued saves into one", len(queued))
            try:
                self._save(self._snapshot())
            except Exception as exc:
                for waiter in queued:
                    waiter.set_exception(exc)
            else:
                for waiter in queued:
                    waiter.set_result(None)
        if error is not None:
            raise error
