from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..session import SessionContext
from ..store import Snippet, newest_first
from .remote import RemoteStoreClient

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 5.0


@dataclass(frozen=True)
class RefreshEvent:
    delta: int
    total: int


def _triple(item: Snippet | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(item, Snippet):
        return {"id": item.id, "title": item.title, "timestamp": item.timestamp}
    return {"id": item.get("id"), "title": item.get("title"), "timestamp": item.get("timestamp")}


def snapshot_hash(snippets: Iterable[Snippet | Mapping[str, Any]]) -> str:
    """Order-sensitive digest over (id, title, timestamp) of each item."""
    projection = [_triple(item) for item in snippets]
    encoded = json.dumps(projection, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def update_message(delta: int) -> str | None:
    if delta > 0:
        return f"Data updated (+{delta} new)"
    if delta < 0:
        return f"Data updated ({abs(delta)} removed)"
    return None


class LiveSyncPoller:
    """Background reconciliation of the session store against the remote list.

    Each tick is skipped outright while a dialog is open, something is being
    viewed, the front-end is hidden, or the add form was typed in recently.
    A change that lands while viewing started mid-fetch is dropped and
    flagged as pending; it is replayed once viewing ends.
    """

    def __init__(
        self,
        session: SessionContext,
        remote: RemoteStoreClient,
        *,
        interval_s: float = DEFAULT_INTERVAL_S,
        input_quiet_s: float = 10.0,
        page_size: int = 50,
        lightweight: bool = False,
        on_refresh: Callable[[RefreshEvent], None] | None = None,
        notify: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._remote = remote
        self._interval_s = interval_s
        self._input_quiet_s = input_quiet_s
        self._page_size = page_size
        self._lightweight = lightweight
        self._on_refresh = on_refresh
        self._notify = notify
        self._clock = clock
        self._lock = threading.Lock()
        self._check_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._running = False
        self._visible = True
        self._quiet_until = 0.0
        self._last_hash: str | None = None
        session.viewing.add_idle_listener(self._replay_deferred)

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def last_hash(self) -> str | None:
        return self._last_hash

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def status(self) -> str:
        return "Active" if self.running and self.skip_reason() is None else "Paused"

    def start(self, interval_s: float | None = None) -> None:
        self.stop()
        with self._lock:
            if interval_s is not None:
                self._interval_s = max(0.5, float(interval_s))
            self._last_hash = snapshot_hash(self._session.store.snapshot())
            self._running = True
            self._stop = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop,), name="snipkeep-poller", daemon=True
            )
            self._thread.start()
        logger.info("live sync started (every %.1fs)", self._interval_s)

    def stop(self) -> None:
        with self._lock:
            thread = self._thread
            was_running = self._running
            self._running = False
            self._thread = None
            self._stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        if was_running:
            logger.info("live sync stopped")

    def set_interval(self, seconds: float) -> None:
        self.start(seconds)

    def set_visible(self, visible: bool) -> None:
        with self._lock:
            became_visible = visible and not self._visible
            self._visible = visible
        if became_visible and self.running:
            self.check_now()

    def note_input_activity(self) -> None:
        with self._lock:
            self._quiet_until = self._clock() + self._input_quiet_s

    def skip_reason(self) -> str | None:
        with self._lock:
            if not self._visible:
                return "hidden"
            if self._clock() < self._quiet_until:
                return "typing"
        viewing = self._session.viewing
        if viewing.dialog_open:
            return "dialog"
        if viewing.is_active():
            return "viewing"
        return None

    def tick(self) -> bool:
        reason = self.skip_reason()
        if reason is not None:
            logger.debug("live sync tick skipped: %s", reason)
            return False
        return self._check()

    def check_now(self) -> bool:
        """Fetch immediately, ignoring pauses; viewing still defers the apply."""
        return self._check()

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self._interval_s):
            self.tick()

    def _replay_deferred(self) -> None:
        if not self.running:
            return
        threading.Thread(target=self.tick, name="snipkeep-replay", daemon=True).start()

    def _check(self) -> bool:
        if not self._check_lock.acquire(blocking=False):
            return False
        try:
            return self._check_locked()
        finally:
            self._check_lock.release()

    def _check_locked(self) -> bool:
        try:
            fetched = self._remote.list_all(
                page_size=self._page_size, lightweight=self._lightweight
            )
        except Exception as exc:
            logger.warning("live sync check failed", exc_info=exc)
            return False
        fresh = newest_first(fetched)
        new_hash = snapshot_hash(fresh)
        session = self._session
        with session.lock:
            if self._last_hash is None:
                self._last_hash = snapshot_hash(session.store.snapshot())
            if new_hash == self._last_hash:
                session.viewing.take_pending()
                return False
            if session.viewing.is_active():
                session.viewing.defer_refresh()
                logger.debug("remote change deferred while viewing")
                return False
            previous = len(session.store)
            session.store.replace_all(fresh)
            self._last_hash = new_hash
            session.viewing.take_pending()
        event = RefreshEvent(delta=len(fresh) - previous, total=len(fresh))
        if self._on_refresh is not None:
            try:
                self._on_refresh(event)
            except Exception as exc:
                logger.warning("refresh callback failed", exc_info=exc)
        message = update_message(event.delta)
        if message and self._notify is not None:
            self._notify(message)
        return True
