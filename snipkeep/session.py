from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .store import SnippetStore, normalize_id

logger = logging.getLogger(__name__)


class ViewingState:
    """Tracks what a background refresh must not disturb.

    A snippet is "viewing" while an interaction on it is in flight (``active``)
    or during the cooldown after it was revealed (``hold``). Open dialogs and
    the persistent flag suppress refreshes as well.
    """

    def __init__(self, cooldown_s: float = 30.0) -> None:
        self.cooldown_s = cooldown_s
        self._lock = threading.Lock()
        self._active: dict[int, int] = {}
        self._holds: dict[int, threading.Timer] = {}
        self._dialogs = 0
        self._persistent = False
        self._pending_refresh = False
        self._idle_listeners: list[Callable[[], None]] = []

    @property
    def viewing_ids(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._active) | frozenset(self._holds)

    @property
    def dialog_open(self) -> bool:
        with self._lock:
            return self._dialogs > 0

    @property
    def pending_refresh(self) -> bool:
        with self._lock:
            return self._pending_refresh

    def is_active(self) -> bool:
        with self._lock:
            return self._is_active_locked()

    def _is_active_locked(self) -> bool:
        return bool(self._dialogs or self._persistent or self._active or self._holds)

    def add_idle_listener(self, listener: Callable[[], None]) -> None:
        with self._lock:
            self._idle_listeners.append(listener)

    def hold(self, snippet_id: object, cooldown_s: float | None = None) -> None:
        key = normalize_id(snippet_id)
        delay = self.cooldown_s if cooldown_s is None else cooldown_s
        if delay <= 0:
            return
        with self._lock:
            existing = self._holds.pop(key, None)
            if existing:
                existing.cancel()
            timer = threading.Timer(delay, self.release, args=(key,))
            timer.daemon = True
            self._holds[key] = timer
            timer.start()

    def release(self, snippet_id: object) -> None:
        key = normalize_id(snippet_id)
        with self._lock:
            timer = self._holds.pop(key, None)
        if timer:
            timer.cancel()
        self._notify_if_idle()

    @contextlib.contextmanager
    def viewing(self, snippet_id: object) -> Iterator[None]:
        key = normalize_id(snippet_id)
        with self._lock:
            self._active[key] = self._active.get(key, 0) + 1
        try:
            yield
        finally:
            with self._lock:
                remaining = self._active.get(key, 1) - 1
                if remaining > 0:
                    self._active[key] = remaining
                else:
                    self._active.pop(key, None)
            self._notify_if_idle()

    @contextlib.contextmanager
    def dialog(self) -> Iterator[None]:
        with self._lock:
            self._dialogs += 1
        try:
            yield
        finally:
            with self._lock:
                self._dialogs = max(0, self._dialogs - 1)
            self._notify_if_idle()

    def set_persistent(self, active: bool) -> None:
        with self._lock:
            self._persistent = active
        if not active:
            self._notify_if_idle()

    def defer_refresh(self) -> None:
        with self._lock:
            self._pending_refresh = True

    def take_pending(self) -> bool:
        with self._lock:
            pending = self._pending_refresh
            self._pending_refresh = False
            return pending

    def _notify_if_idle(self) -> None:
        with self._lock:
            if self._is_active_locked() or not self._pending_refresh:
                return
            listeners = list(self._idle_listeners)
        for listener in listeners:
            try:
                listener()
            except Exception as exc:
                logger.warning("deferred refresh listener failed", exc_info=exc)

    def close(self) -> None:
        with self._lock:
            timers = list(self._holds.values())
            self._holds.clear()
        for timer in timers:
            timer.cancel()


@dataclass
class SessionContext:
    """Process-wide state for one front-end session.

    ``lock`` serialises store mutations with the suppression checks that
    guard them, standing in for the browser's single event loop.
    """

    store: SnippetStore = field(default_factory=SnippetStore)
    viewing: ViewingState = field(default_factory=ViewingState)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def close(self) -> None:
        self.viewing.close()
