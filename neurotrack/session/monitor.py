"""
Background session monitor.

Periodically recomputes the derived monitoring signals (fatigue decline,
distraction events, performance consistency, cognitive load) of every active
session and sweeps sessions that have been idle for too long.

Signals are computed on a snapshot, outside the session lock, and stored
next to the session. The event log and the aggregates are never touched.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from neurotrack.core.errors import SessionLifecycleError
from neurotrack.core.models import SessionSignals
from neurotrack.session.aggregates import compute_signals
from neurotrack.session.store import SessionStore

# Early-warning thresholds
FATIGUE_WARNING = 30.0
DISTRACTION_WARNING = 3


@dataclass
class MonitorStatus:
    """Current monitor status."""

    is_running: bool = False
    cycles: int = 0
    last_active_count: int = 0
    abandoned_total: int = 0
    error_message: str | None = None


@dataclass
class SessionMonitor:
    """
    Background signal recomputation for active sessions.

    Usage:
        monitor = SessionMonitor(store, interval_seconds=10)
        monitor.start()
        # ... sessions run ...
        monitor.stop()
    """

    store: SessionStore
    interval_seconds: float = 10.0
    inactivity_timeout_seconds: float = 900.0
    on_signals: Callable[[str, SessionSignals], None] | None = None
    # Called with the session id when an idle session must be finalized;
    # defaults to store.abandon
    on_idle: Callable[[str], object] | None = None

    _status: MonitorStatus = field(default_factory=MonitorStatus)
    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def status(self) -> MonitorStatus:
        return self._status

    def start(self) -> None:
        if self._status.is_running:
            logger.warning("Session monitor already running")
            return

        self._status.is_running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._monitor_loop,
            name="neurotrack-session-monitor",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Session monitor started (interval: {}s, inactivity timeout: {}s)",
            self.interval_seconds,
            self.inactivity_timeout_seconds,
        )

    def stop(self) -> None:
        """Stop the monitor gracefully."""
        if not self._status.is_running:
            return

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

        self._status.is_running = False
        logger.info("Session monitor stopped")

    def _monitor_loop(self) -> None:
        while not self._stop_event.is_set():
            if self._stop_event.wait(timeout=self.interval_seconds):
                break
            try:
                self.run_cycle()
            except Exception as exc:
                self._status.error_message = str(exc)
                logger.exception(f"Session monitor cycle failed: {exc}")

    def run_cycle(self) -> dict[str, SessionSignals]:
        """
        Run one monitoring cycle synchronously.

        Returns:
            Signals computed for every session that was active
        """
        computed: dict[str, SessionSignals] = {}
        active = self.store.active_sessions()

        for session_id in active:
            try:
                snapshot = self.store.snapshot(session_id)
            except SessionLifecycleError:
                continue
            if not snapshot.is_active:
                continue

            signals = compute_signals(
                snapshot.events,
                snapshot.start_time,
                snapshot.last_activity,
                self.store.distraction_gap_ms,
                prior=snapshot.signals,
            )
            self.store.update_signals(session_id, signals)
            computed[session_id] = signals
            self._warn(session_id, signals)

            if self.on_signals:
                self.on_signals(session_id, signals)

        self._sweep_idle()

        self._status.cycles += 1
        self._status.last_active_count = len(active)
        return computed

    def _warn(self, session_id: str, signals: SessionSignals) -> None:
        if signals.fatigue_decline > FATIGUE_WARNING:
            logger.warning(f"Fatigue detected in {session_id}: decline {signals.fatigue_decline:.0f}%")
        if signals.distraction_events > DISTRACTION_WARNING:
            logger.warning(f"Frequent distraction in {session_id}: {signals.distraction_events} events")
        if signals.load_level == "critical":
            logger.warning(f"Critical cognitive load in {session_id} ({signals.cognitive_load}%)")

    def _sweep_idle(self) -> None:
        timeout_ms = int(self.inactivity_timeout_seconds * 1000)
        finalize = self.on_idle or self.store.abandon

        for session_id in self.store.idle_sessions(timeout_ms):
            logger.info(f"Abandoning idle session {session_id}")
            try:
                finalize(session_id)
            except SessionLifecycleError as exc:
                logger.debug(f"Idle session {session_id} already gone: {exc}")
                continue
            self._status.abandoned_total += 1
