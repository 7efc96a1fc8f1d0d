"""
MetricsService - the facade used by activities and dashboards.

Wires the pipeline together:

    record_interaction -> parse_event -> SessionStore
    end_session -> extract_metrics -> ScoringStrategy -> RecommendationEngine
                -> ProgressionTracker -> ReportAssembler -> persistence (async)

The report is returned to the caller even when persistence fails; records
are cached locally and pushed by the background sync.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Optional

from loguru import logger

from config import Settings, get_settings
from neurotrack.analysis.insights import (
    DashboardInsights,
    OverallStats,
    dashboard_insights,
    overall_stats,
)
from neurotrack.analysis.metrics import SessionMetrics, extract_metrics
from neurotrack.analysis.progression import ProgressionTracker
from neurotrack.analysis.recommendations import RecommendationEngine
from neurotrack.analysis.report import ReportAssembler
from neurotrack.analysis.scoring import RuleBasedScoringStrategy, ScoringStrategy, overall_score
from neurotrack.core.errors import PersistenceError, SessionLifecycleError, ValidationError
from neurotrack.core.events import parse_event
from neurotrack.core.models import (
    AnalysisReport,
    Difficulty,
    InteractionResult,
    Session,
    SessionStatus,
    SessionSummary,
    as_int,
    now_ms,
)
from neurotrack.core.serialization import to_serializable
from neurotrack.core.validator import RecordValidator
from neurotrack.persistence import build_gateway
from neurotrack.persistence.gateway import PersistenceGateway
from neurotrack.persistence.local_cache import LocalReportCache
from neurotrack.persistence.sync import BackgroundPersistenceSync
from neurotrack.session.monitor import SessionMonitor
from neurotrack.session.store import DuplicatePolicy, SessionStore

DAY_MS = 24 * 60 * 60 * 1000
MAX_CACHED_REPORTS = 1000


class MetricsService:
    """
    Session telemetry service.

    Usage:
        service = MetricsService()
        service.start()
        session_id = service.start_session("user-1", "memory-game", "easy")
        service.record_interaction(session_id, "success", {"timestamp": ..., "responseTime": 2300})
        report = service.end_session(session_id)
        service.stop()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[SessionStore] = None,
        gateway: Optional[PersistenceGateway] = None,
        cache: Optional[LocalReportCache] = None,
        scoring: Optional[ScoringStrategy] = None,
        recommendation_engine: Optional[RecommendationEngine] = None,
        tracker: Optional[ProgressionTracker] = None,
        assembler: Optional[ReportAssembler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.settings = settings or get_settings()
        self._clock = clock or now_ms

        self.store = store if store is not None else SessionStore(
            duplicate_policy=DuplicatePolicy(self.settings.duplicate_policy),
            clock=self._clock,
            distraction_gap_ms=self.settings.distraction_gap_ms,
        )
        self.gateway = gateway if gateway is not None else build_gateway(self.settings)
        self.cache = cache if cache is not None else LocalReportCache(
            self.settings.local_cache_dir, self.settings.local_cache_max_entries
        )
        self.sync = BackgroundPersistenceSync(
            gateway=self.gateway,
            cache=self.cache,
            retry_attempts=self.settings.retry_attempts,
            base_delay_seconds=self.settings.retry_base_delay_seconds,
        )
        self.monitor = SessionMonitor(
            store=self.store,
            interval_seconds=self.settings.monitor_interval_seconds,
            inactivity_timeout_seconds=self.settings.inactivity_timeout_seconds,
            on_idle=self._abandon_idle,
        )

        self.scoring: ScoringStrategy = scoring or RuleBasedScoringStrategy()
        self.recommendations = recommendation_engine or RecommendationEngine()
        self.tracker = tracker or ProgressionTracker()
        self.assembler = assembler or ReportAssembler()
        self.validator = RecordValidator()

        self._reports: OrderedDict[str, AnalysisReport] = OrderedDict()
        self._reports_lock = threading.Lock()
        self._end_locks: dict[str, threading.Lock] = {}

    # =========================================================================
    # Background workers
    # =========================================================================

    def start(self) -> None:
        """Start the session monitor and the persistence sync."""
        self.monitor.start()
        self.sync.start()

    def stop(self) -> None:
        self.monitor.stop()
        self.sync.stop()

    def flush(self) -> None:
        """Push queued records synchronously (used when workers are not running)."""
        self.sync.flush()

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def start_session(
        self,
        user_id: str,
        activity_id: str,
        difficulty: Difficulty | str = Difficulty.EASY,
        user_age: Optional[int] = None,
    ) -> str:
        """
        Start a session.

        Raises:
            ValidationError: Missing ids or unknown difficulty
            DuplicateActiveSessionError: Under the reject policy
        """
        return self.store.start_session(user_id, activity_id, difficulty, user_age=user_age)

    def record_interaction(
        self,
        session_id: str,
        event_type: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> InteractionResult:
        """Validate and record one event. Failures are returned, never raised."""
        data = dict(payload or {})
        data.setdefault("timestamp", self._clock())
        try:
            event = parse_event(event_type, data)
        except ValidationError as e:
            logger.warning(f"Rejected {event_type!r} event for {session_id}: {e}")
            return InteractionResult(ok=False, error=ValidationError.code, detail=str(e))
        return self.store.record_interaction(session_id, event)

    def record_attempt(self, session_id: str, response_time: Optional[float] = None, **data: Any) -> InteractionResult:
        return self.record_interaction(session_id, "attempt", {"response_time": response_time, **data})

    def record_success(
        self, session_id: str, points: int = 10, response_time: Optional[float] = None, **data: Any
    ) -> InteractionResult:
        return self.record_interaction(
            session_id, "success", {"points": points, "response_time": response_time, **data}
        )

    def record_error(
        self,
        session_id: str,
        error_type: str = "unknown",
        response_time: Optional[float] = None,
        **data: Any,
    ) -> InteractionResult:
        return self.record_interaction(
            session_id, "error", {"error_type": error_type, "response_time": response_time, **data}
        )

    def record_difficulty_change(
        self, session_id: str, new_difficulty: Difficulty | str, reason: str = "unspecified"
    ) -> InteractionResult:
        return self.record_interaction(
            session_id, "difficulty_change", {"new_difficulty": new_difficulty, "reason": reason}
        )

    def record_adaptive_update(self, session_id: str, parameters: dict[str, Any]) -> InteractionResult:
        return self.record_interaction(session_id, "adaptive_update", {"parameters": parameters})

    def end_session(self, session_id: str, extra: Optional[dict[str, Any]] = None) -> AnalysisReport:
        """
        Finalize a session and analyse it.

        Idempotent: a second call returns the same report.

        Raises:
            SessionNotFoundError: Unknown session ID
        """
        return self._finalize(session_id, extra, SessionStatus.COMPLETED)

    def get_report(self, session_id: str) -> Optional[AnalysisReport]:
        with self._reports_lock:
            return self._reports.get(session_id)

    def _abandon_idle(self, session_id: str) -> AnalysisReport:
        return self._finalize(session_id, None, SessionStatus.ABANDONED)

    def _end_lock(self, session_id: str) -> threading.Lock:
        with self._reports_lock:
            return self._end_locks.setdefault(session_id, threading.Lock())

    def _finalize(
        self, session_id: str, extra: Optional[dict[str, Any]], status: SessionStatus
    ) -> AnalysisReport:
        with self._end_lock(session_id):
            cached = self.get_report(session_id)
            if cached is not None:
                return cached

            try:
                session = self.store.end_session(session_id, extra, status=status)
            except SessionLifecycleError:
                with self._reports_lock:
                    self._end_locks.pop(session_id, None)
                raise
            report, metrics = self.analyse(session)

            with self._reports_lock:
                self._reports[session_id] = report
                self._end_locks.pop(session_id, None)
                while len(self._reports) > MAX_CACHED_REPORTS:
                    self._reports.popitem(last=False)

        self._persist(session, report, metrics)
        return report

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyse(self, session: Session) -> tuple[AnalysisReport, SessionMetrics]:
        """Run the full analysis over a (finalized) session. No side effects."""
        try:
            history = self._load_history(session.user_id, exclude=session.session_id)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"History for {session.user_id} unreadable, analysing without it: {e}")
            history = []

        metrics = extract_metrics(session, history, self.settings.default_user_age)
        domain_scores = self.scoring.score(metrics)
        recommendations = self.recommendations.from_domain_scores(domain_scores)
        trend = self.tracker.trend(history, overall_score(domain_scores))

        report = self.assembler.assemble(
            session, domain_scores, recommendations, trend, timestamp=self._clock()
        )
        logger.info(
            f"Session {session.session_id} analysed: overall={report.overall_score}, "
            f"style={report.learning_style.value}, trend={trend.value}"
        )
        return report, metrics

    def build_record(self, session: Session, report: AnalysisReport, metrics: SessionMetrics) -> dict[str, Any]:
        """Flat, JSON-compatible record handed to the persistence gateway."""
        agg = session.aggregates
        return to_serializable(
            {
                "session_id": session.session_id,
                "user_id": session.user_id,
                "activity_id": session.activity_id,
                "start_time": session.start_time,
                "end_time": session.end_time,
                "duration": session.duration_ms,
                "status": session.status,
                "difficulty": session.difficulty,
                "attempts": agg.attempts,
                "successes": agg.successes,
                "errors": agg.errors,
                "accuracy": agg.accuracy,
                "score": session.score,
                "learning_rate": agg.learning_rate,
                "engagement_score": agg.engagement_score,
                "response_latency": agg.response_latency,
                "average_response_time": agg.average_response_time,
                "pause_patterns": agg.pause_patterns,
                "adaptive_data": {
                    "difficulty_changes": session.difficulty_changes,
                    "parameters": session.adaptive_parameters,
                },
                "activity_data": session.activity_data,
                "metrics": metrics,
                "report": report.to_dict(),
            }
        )

    def _persist(self, session: Session, report: AnalysisReport, metrics: SessionMetrics) -> None:
        record = self.build_record(session, report, metrics)
        try:
            self.validator.validate(record)
        except ValidationError as e:
            logger.warning(f"Session {session.session_id} not persisted: {e.errors}")
            return
        self.sync.submit(record)

    # =========================================================================
    # History
    # =========================================================================

    def _load_records(self, user_id: str, since_ms: int, limit: int) -> list[dict[str, Any]]:
        """Gateway records merged with records still waiting to be persisted."""
        try:
            loaded = self.gateway.load_recent_sessions(user_id, since_ms, limit)
        except PersistenceError as e:
            logger.warning(f"History unavailable for {user_id}, using local cache: {e}")
            loaded = []

        loaded = list(loaded or ())
        records = [r for r in loaded if isinstance(r, dict)]
        if len(records) < len(loaded):
            logger.warning(f"Skipped {len(loaded) - len(records)} non-object history records for {user_id}")

        seen = {r.get("session_id") for r in records}
        for record in self.cache.records_for_user(user_id) + self.sync.held_records(user_id):
            if record.get("session_id") not in seen and as_int(record.get("start_time")) >= since_ms:
                seen.add(record.get("session_id"))
                records.append(record)
        records.sort(key=lambda r: as_int(r.get("start_time")))
        return records[-limit:]

    def _summaries(self, records: list[dict[str, Any]], exclude: Optional[str] = None) -> list[SessionSummary]:
        summaries = []
        for record in records:
            if record.get("session_id") == exclude:
                continue
            try:
                summaries.append(SessionSummary.from_record(record))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed history record {record.get('session_id')}: {e}")
        return summaries

    def _load_history(self, user_id: str, exclude: Optional[str] = None) -> list[SessionSummary]:
        since = self._clock() - self.settings.history_lookback_days * DAY_MS
        records = self._load_records(user_id, max(0, since), self.settings.history_limit)
        return self._summaries(records, exclude=exclude)

    def get_user_history(
        self,
        user_id: str,
        activity_filter: Optional[str] = None,
        limit: int = 20,
    ) -> list[SessionSummary]:
        """Stored sessions of a user, most recent first."""
        fetch = max(limit, self.settings.history_limit) if activity_filter else limit
        summaries = self._summaries(self._load_records(user_id, 0, fetch))
        if activity_filter:
            summaries = [s for s in summaries if s.activity_id == activity_filter]
        summaries.reverse()
        return summaries[:limit]

    def get_overall_stats(self, user_id: str, activity_id: Optional[str] = None) -> OverallStats:
        history = self.get_user_history(user_id, activity_id, limit=self.settings.history_limit)
        stats = overall_stats(history)
        logger.info(f"Overall stats for {user_id}: {stats.total_sessions} sessions")
        return stats

    def get_dashboard_insights(self, user_id: str) -> DashboardInsights:
        return dashboard_insights(
            self._load_history(user_id),
            engine=self.recommendations,
            tracker=self.tracker,
        )
