"""
Background persistence sync.

Finalized session records are written to the local cache first and then
pushed to the gateway by a worker thread. Each record gets up to
``retry_attempts`` tries with exponential backoff (base, 2*base, 4*base...).
When retries are exhausted, or the error is not retryable, the record stays
in the cache as ``local_only``. Records the cache cannot write are held in
memory and go through the same retries. No exception escapes to the caller.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from loguru import logger

from neurotrack.core.errors import PersistenceError
from neurotrack.persistence.gateway import PersistenceGateway
from neurotrack.persistence.local_cache import LOCAL_ONLY, PENDING, LocalReportCache


@dataclass
class SyncStatus:
    """Current sync status."""

    is_running: bool = False
    saved: int = 0
    local_only: int = 0
    retries: int = 0
    last_sync_at: datetime | None = None
    error_message: str | None = None


@dataclass
class BackgroundPersistenceSync:
    """
    Retrying persistence worker.

    Usage:
        sync = BackgroundPersistenceSync(gateway, cache)
        sync.start()
        sync.submit(record)
        # ...
        sync.stop()
    """

    gateway: PersistenceGateway
    cache: LocalReportCache
    retry_attempts: int = 3
    base_delay_seconds: float = 1.0
    on_saved: Callable[[str], None] | None = None

    _status: SyncStatus = field(default_factory=SyncStatus)
    _queue: queue.Queue = field(default_factory=queue.Queue, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _held: dict[str, dict[str, Any]] = field(default_factory=dict, repr=False)
    _held_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def status(self) -> SyncStatus:
        return self._status

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay_seconds * (2 ** (attempt - 1))

    def start(self) -> None:
        if self._status.is_running:
            logger.warning("Persistence sync already running")
            return

        self._status.is_running = True
        self._stop_event.clear()

        # Records left pending by a previous run
        for entry in self.cache.entries(PENDING):
            self._queue.put(entry.session_id)

        self._thread = threading.Thread(
            target=self._sync_loop,
            name="neurotrack-persistence-sync",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Persistence sync started (attempts: {}, base delay: {}s)",
            self.retry_attempts,
            self.base_delay_seconds,
        )

    def stop(self) -> None:
        """Stop the worker. Unsent records stay pending in the cache."""
        if not self._status.is_running:
            return

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

        self._status.is_running = False
        logger.info("Persistence sync stopped")

    def submit(self, record: dict[str, Any]) -> None:
        """Cache a record and queue it for the worker."""
        session_id = str(record["session_id"])
        try:
            self.cache.put(record)
        except OSError as e:
            logger.error(f"Could not cache session {session_id}, holding it in memory: {e}")
            self._hold(session_id, record)
        self._queue.put(session_id)

    def held_records(self, user_id: str | None = None) -> list[dict[str, Any]]:
        """Records kept in memory because the local cache could not store them."""
        with self._held_lock:
            records = list(self._held.values())
        return [r for r in records if user_id is None or r.get("user_id") == user_id]

    def _hold(self, session_id: str, record: dict[str, Any]) -> None:
        with self._held_lock:
            self._held[session_id] = record

    def _record_for(self, session_id: str) -> dict[str, Any] | None:
        with self._held_lock:
            held = self._held.get(session_id)
        if held is not None:
            return held
        entry = self.cache.get(session_id)
        return entry.record if entry is not None else None

    def flush(self) -> None:
        """Process every queued record in the calling thread."""
        while True:
            try:
                session_id = self._queue.get_nowait()
            except queue.Empty:
                return
            self._process(session_id)

    def retry_local_only(self) -> int:
        """Re-queue records that previously exhausted their retries."""
        session_ids = [entry.session_id for entry in self.cache.entries(LOCAL_ONLY)]
        with self._held_lock:
            session_ids += [sid for sid in self._held if sid not in session_ids]
        for session_id in session_ids:
            self._queue.put(session_id)
        return len(session_ids)

    def _sync_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                session_id = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._process(session_id)

    def _process(self, session_id: str) -> bool:
        record = self._record_for(session_id)
        if record is None:
            logger.debug(f"Session {session_id} no longer cached - skipping")
            return False

        last_error: Exception | None = None
        attempt = 0
        for attempt in range(1, self.retry_attempts + 1):
            try:
                self.gateway.save_session(record)
            except PersistenceError as e:
                last_error = e
                if not e.retryable:
                    logger.error(f"Non-retryable persistence error for {session_id}: {e}")
                    break
            except Exception as e:
                last_error = e
                logger.exception(f"Unexpected gateway failure for {session_id}: {e}")
            else:
                with self._held_lock:
                    self._held.pop(session_id, None)
                try:
                    self.cache.remove(session_id)
                except OSError as e:
                    logger.warning(f"Could not drop cached copy of {session_id}: {e}")
                self._status.saved += 1
                self._status.last_sync_at = datetime.now()
                logger.info(f"Session {session_id} persisted (attempt {attempt}/{self.retry_attempts})")
                if self.on_saved:
                    self.on_saved(session_id)
                return True

            if attempt < self.retry_attempts:
                wait_time = self.backoff_delay(attempt)
                self._status.retries += 1
                logger.warning(
                    f"Saving {session_id} failed on attempt {attempt}/{self.retry_attempts}. "
                    f"Retrying in {wait_time}s..."
                )
                if self._stop_event.wait(timeout=wait_time):
                    logger.info(f"Sync stopping - {session_id} stays pending")
                    return False

        try:
            self.cache.mark_local_only(session_id, attempts=attempt, error=str(last_error))
        except OSError as e:
            logger.error(f"Could not update cache entry for {session_id}, holding it in memory: {e}")
            self._hold(session_id, record)
        self._status.local_only += 1
        self._status.error_message = str(last_error)
        logger.warning(f"Session {session_id} kept locally only after {attempt} attempts: {last_error}")
        return False
