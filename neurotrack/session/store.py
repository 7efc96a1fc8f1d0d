"""
In-memory registry of live sessions.

Concurrency:
- one registry lock guards the session maps (held only for lookups/inserts)
- one lock per session serializes append + aggregate update for that session
- monitoring signals live in a separate map so the background monitor never
  waits on a session lock

Lifecycle: active -> completed | abandoned. After end_session no further
interaction is accepted and the finalized snapshot is returned on every
subsequent end_session call.
"""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from loguru import logger

from neurotrack.core.errors import (
    DuplicateActiveSessionError,
    SessionClosedError,
    SessionNotFoundError,
    ValidationError,
)
from neurotrack.core.events import AdaptiveUpdateEvent, BaseEvent, DifficultyChangeEvent
from neurotrack.core.models import (
    RESULT_OK,
    Aggregates,
    Difficulty,
    DifficultyChange,
    InteractionResult,
    Session,
    SessionSignals,
    SessionStatus,
    now_ms,
)
from neurotrack.session.aggregates import compute_aggregates, compute_signals, session_score

# Finalized sessions kept around to answer SessionClosed / idempotent end_session
MAX_CLOSED_SESSIONS = 1000


class DuplicatePolicy(str, Enum):
    """What start_session does for an already active (user, activity) pair."""

    REJECT = "reject"
    RESUME = "resume"


@dataclass
class _SessionRecord:
    """Live, mutable session state. Only touched while holding ``lock``."""

    session_id: str
    user_id: str
    activity_id: str
    difficulty: Difficulty
    start_time: int
    last_activity: int
    user_age: Optional[int] = None
    status: SessionStatus = SessionStatus.ACTIVE
    end_time: Optional[int] = None
    events: list[BaseEvent] = field(default_factory=list)
    aggregates: Aggregates = field(default_factory=Aggregates)
    score: int = 0
    difficulty_changes: list[DifficultyChange] = field(default_factory=list)
    adaptive_parameters: dict[str, Any] = field(default_factory=dict)
    activity_data: dict[str, Any] = field(default_factory=dict)
    final_signals: Optional[SessionSignals] = None
    finalized: Optional[Session] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def snapshot(self, signals: SessionSignals) -> Session:
        return Session(
            session_id=self.session_id,
            user_id=self.user_id,
            activity_id=self.activity_id,
            difficulty=self.difficulty,
            start_time=self.start_time,
            status=self.status,
            aggregates=self.aggregates,
            events=tuple(self.events),
            end_time=self.end_time,
            score=self.score,
            difficulty_changes=tuple(self.difficulty_changes),
            adaptive_parameters=dict(self.adaptive_parameters),
            activity_data=dict(self.activity_data),
            signals=self.final_signals or signals,
            last_activity=self.last_activity,
            user_age=self.user_age,
        )


class SessionStore:
    """
    Owns every session from start to finalization.

    Usage:
        store = SessionStore(duplicate_policy=DuplicatePolicy.REJECT)
        session_id = store.start_session("user-1", "memory-game", "easy")
        store.record_interaction(session_id, parse_event("attempt", {...}))
        session = store.end_session(session_id)
    """

    def __init__(
        self,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.RESUME,
        clock: Optional[Callable[[], int]] = None,
        distraction_gap_ms: int = 30000,
        max_closed_sessions: int = MAX_CLOSED_SESSIONS,
    ):
        self.duplicate_policy = DuplicatePolicy(duplicate_policy)
        self.distraction_gap_ms = distraction_gap_ms
        self.max_closed_sessions = max_closed_sessions
        self._clock = clock or now_ms

        self._registry_lock = threading.Lock()
        self._sessions: dict[str, _SessionRecord] = {}
        self._active_index: dict[tuple[str, str], str] = {}
        self._closed: OrderedDict[str, None] = OrderedDict()

        self._signals_lock = threading.Lock()
        self._signals: dict[str, SessionSignals] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start_session(
        self,
        user_id: str,
        activity_id: str,
        difficulty: Difficulty | str = Difficulty.EASY,
        user_age: Optional[int] = None,
    ) -> str:
        """
        Register a new active session.

        Returns:
            The new session ID, or the existing one under the RESUME policy

        Raises:
            ValidationError: Missing user/activity or unknown difficulty
            DuplicateActiveSessionError: Under the REJECT policy
        """
        if not user_id or not activity_id:
            raise ValidationError(
                f"user_id and activity_id are required (user_id={user_id!r}, activity_id={activity_id!r})"
            )
        try:
            level = Difficulty(difficulty)
        except ValueError as e:
            raise ValidationError(f"Invalid difficulty: {difficulty!r}") from e

        key = (str(user_id), str(activity_id))
        with self._registry_lock:
            existing = self._active_index.get(key)
            if existing is not None:
                if self.duplicate_policy == DuplicatePolicy.REJECT:
                    logger.warning(f"Rejected duplicate session for {key}: {existing} is active")
                    raise DuplicateActiveSessionError(existing, *key)
                logger.info(f"Resuming active session {existing} for user={key[0]} activity={key[1]}")
                return existing

            now = self._clock()
            session_id = f"session_{now}_{uuid.uuid4().hex[:9]}"
            self._sessions[session_id] = _SessionRecord(
                session_id=session_id,
                user_id=key[0],
                activity_id=key[1],
                difficulty=level,
                start_time=now,
                last_activity=now,
                user_age=user_age,
            )
            self._active_index[key] = session_id

        logger.info(f"Session started: {session_id} (user={key[0]}, activity={key[1]}, difficulty={level.value})")
        return session_id

    def record_interaction(self, session_id: str, event: BaseEvent) -> InteractionResult:
        """
        Append an event and refresh the aggregates atomically.

        Never raises for lifecycle problems; they are logged and returned.
        """
        record = self._get(session_id)
        if record is None:
            logger.warning(f"Interaction for unknown session: {session_id}")
            return InteractionResult(ok=False, error=SessionNotFoundError.code, detail=session_id)

        with record.lock:
            if record.status != SessionStatus.ACTIVE:
                logger.warning(f"Interaction for closed session {session_id} ignored ({event.type})")
                return InteractionResult(ok=False, error=SessionClosedError.code, detail=session_id)

            record.events.append(event)
            record.last_activity = self._clock()
            self._apply_side_effects(record, event)
            record.score = session_score(record.events)
            record.aggregates = compute_aggregates(
                record.events, record.start_time, max(record.last_activity, event.timestamp)
            )

        logger.debug(f"Recorded {event.type} for {session_id} (accuracy={record.aggregates.accuracy})")
        return RESULT_OK

    def end_session(
        self,
        session_id: str,
        extra: Optional[dict[str, Any]] = None,
        status: SessionStatus = SessionStatus.COMPLETED,
    ) -> Session:
        """
        Finalize a session and freeze its log.

        Calling it again returns the same frozen snapshot.

        Raises:
            SessionNotFoundError: Unknown session ID
        """
        record = self._get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)

        with record.lock:
            if record.finalized is not None:
                logger.debug(f"Session {session_id} already finalized ({record.status.value})")
                return record.finalized

            end_time = max(self._clock(), record.last_activity)
            record.end_time = end_time
            record.status = status
            record.activity_data.update(extra or {})
            record.aggregates = compute_aggregates(record.events, record.start_time, end_time)
            record.final_signals = compute_signals(
                record.events,
                record.start_time,
                end_time,
                self.distraction_gap_ms,
                prior=self.signals(session_id),
            )
            record.finalized = record.snapshot(record.final_signals)

        with self._registry_lock:
            key = (record.user_id, record.activity_id)
            if self._active_index.get(key) == session_id:
                del self._active_index[key]
            self._closed[session_id] = None
            self._evict_closed()

        with self._signals_lock:
            self._signals.pop(session_id, None)

        logger.info(
            f"Session {status.value}: {session_id} "
            f"({record.aggregates.attempts} attempts, accuracy={record.aggregates.accuracy}%)"
        )
        return record.finalized

    def abandon(self, session_id: str) -> Session:
        """Force-finalize a session as abandoned."""
        return self.end_session(session_id, status=SessionStatus.ABANDONED)

    # =========================================================================
    # Read access
    # =========================================================================

    def snapshot(self, session_id: str) -> Session:
        """
        Consistent frozen copy of a session.

        Raises:
            SessionNotFoundError: Unknown session ID
        """
        record = self._get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        with record.lock:
            if record.finalized is not None:
                return record.finalized
            return record.snapshot(self.signals(session_id))

    def finalized(self, session_id: str) -> Optional[Session]:
        """Frozen session if it has been ended, otherwise None."""
        record = self._get(session_id)
        if record is None:
            return None
        with record.lock:
            return record.finalized

    def get_status(self, session_id: str) -> Optional[SessionStatus]:
        record = self._get(session_id)
        return record.status if record else None

    def active_sessions(self) -> list[str]:
        with self._registry_lock:
            return list(self._active_index.values())

    def idle_sessions(self, timeout_ms: int) -> list[str]:
        """Active sessions without any interaction for longer than ``timeout_ms``."""
        now = self._clock()
        idle = []
        for session_id in self.active_sessions():
            record = self._get(session_id)
            if record is not None and now - record.last_activity > timeout_ms:
                idle.append(session_id)
        return idle

    # =========================================================================
    # Monitoring signals
    # =========================================================================

    def signals(self, session_id: str) -> SessionSignals:
        with self._signals_lock:
            return self._signals.get(session_id, SessionSignals())

    def update_signals(self, session_id: str, signals: SessionSignals) -> None:
        """
        Store monitor output. Ignored once the session left the active set.

        The status is read under the signals lock; end_session changes the
        status before it drops the entry under the same lock, so no stale
        signals outlive a finalized session.
        """
        record = self._get(session_id)
        if record is None:
            return
        with self._signals_lock:
            if record.status != SessionStatus.ACTIVE:
                return
            self._signals[session_id] = signals

    # =========================================================================
    # Internals
    # =========================================================================

    def _get(self, session_id: str) -> Optional[_SessionRecord]:
        with self._registry_lock:
            return self._sessions.get(session_id)

    def _apply_side_effects(self, record: _SessionRecord, event: BaseEvent) -> None:
        if isinstance(event, DifficultyChangeEvent):
            record.difficulty_changes.append(
                DifficultyChange(event.new_difficulty, event.timestamp, event.reason)
            )
            record.difficulty = event.new_difficulty
        elif isinstance(event, AdaptiveUpdateEvent):
            record.adaptive_parameters.update(event.parameters)

    def _evict_closed(self) -> None:
        """Drop the oldest finalized sessions beyond the retention bound. Registry lock held."""
        while len(self._closed) > self.max_closed_sessions:
            old_id, _ = self._closed.popitem(last=False)
            self._sessions.pop(old_id, None)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._sessions)
