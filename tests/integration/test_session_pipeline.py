"""
Integration tests for the full MetricsService pipeline:
start -> record -> end -> analyse -> persist -> history/insights.
"""

import threading

import pytest

from neurotrack.core.errors import DuplicateActiveSessionError, SessionNotFoundError
from neurotrack.core.models import (
    AnalysisReport,
    Difficulty,
    Domain,
    ProgressionTrend,
    SessionStatus,
)
from neurotrack.persistence.local_cache import LOCAL_ONLY
from neurotrack.service import MetricsService


def play(service, clock, kinds, user_id="kid-1", activity_id="memory-game", step=2000):
    session_id = service.start_session(user_id, activity_id, "medium", user_age=8)
    for kind in kinds:
        clock.advance(step)
        service.record_interaction(session_id, kind, {"responseTime": 3500})
    clock.advance(step)
    return session_id, service.end_session(session_id, {"round": 1})


class TestEndToEnd:
    def test_report_and_persisted_record(self, service, gateway, clock):
        session_id, report = play(
            service, clock, ["attempt", "error", "attempt", "success", "attempt", "success", "attempt", "success"]
        )

        assert isinstance(report, AnalysisReport)
        assert list(report.domain_scores) == list(Domain)
        assert all(0 <= s.score <= 100 for s in report.domain_scores.values())
        assert report.session_summary["accuracy"] == 75
        assert report.progression_trend == ProgressionTrend.MAINTAINING
        assert len(report.recommendations) <= 5

        service.flush()
        stored = gateway.load_recent_sessions("kid-1")

        assert len(stored) == 1
        assert stored[0]["session_id"] == session_id
        assert stored[0]["accuracy"] == 75
        assert stored[0]["difficulty"] == "medium"
        assert stored[0]["activity_data"] == {"round": 1}
        assert stored[0]["report"]["overall_score"] == report.overall_score

    def test_uses_injected_components(self, service, gateway, cache):
        assert service.gateway is gateway
        assert service.cache is cache
        assert service.sync.cache is cache

    def test_end_session_is_idempotent(self, service, clock):
        session_id, report = play(service, clock, ["attempt", "success"])

        assert service.end_session(session_id) is report
        assert service.get_report(session_id) is report

    def test_unknown_session(self, service):
        with pytest.raises(SessionNotFoundError):
            service.end_session("nope")

    def test_duplicate_session_rejected(self, service):
        service.start_session("kid-1", "memory-game")
        with pytest.raises(DuplicateActiveSessionError):
            service.start_session("kid-1", "memory-game")

    def test_invalid_event_is_reported_not_raised(self, service):
        session_id = service.start_session("kid-1", "memory-game")

        result = service.record_interaction(session_id, "success", {"responseTime": -1})

        assert not result
        assert result.error == "ValidationError"

    def test_events_after_end_are_rejected(self, service, clock):
        session_id, _ = play(service, clock, ["attempt", "success"])

        assert service.record_attempt(session_id).error == "SessionClosed"

    def test_convenience_recorders(self, service, clock):
        session_id = service.start_session("kid-1", "memory-game")
        service.record_attempt(session_id, response_time=2000)
        service.record_success(session_id, points=20, response_time=2000)
        service.record_difficulty_change(session_id, "hard", reason="streak")
        service.record_adaptive_update(session_id, {"pairs": 8})

        snapshot = service.store.snapshot(session_id)
        assert snapshot.score == 20
        assert snapshot.difficulty == Difficulty.HARD
        assert snapshot.adaptive_parameters == {"pairs": 8}

    def test_concurrent_end_session_produces_one_report(self, service, clock):
        session_id = service.start_session("kid-1", "memory-game")
        service.record_attempt(session_id)
        reports = []

        threads = [threading.Thread(target=lambda: reports.append(service.end_session(session_id))) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(r) for r in reports}) == 1
        service.flush()
        assert len(service.gateway) == 1


class TestHistoryAndProgression:
    def test_progression_uses_stored_history(self, service, clock):
        kinds_by_session = [
            ["attempt", "error"] * 4,
            ["attempt", "error", "attempt", "success"] * 2,
            ["attempt", "success"] * 4,
        ]
        reports = []
        for kinds in kinds_by_session:
            _, report = play(service, clock, kinds)
            service.flush()
            reports.append(report)

        scores = [r.overall_score for r in reports]
        assert scores[0] < scores[2]
        assert reports[2].progression_trend in (ProgressionTrend.ADVANCING, ProgressionTrend.MASTERED)

    def test_user_history_most_recent_first(self, service, clock):
        first, _ = play(service, clock, ["attempt", "success"])
        second, _ = play(service, clock, ["attempt", "error"], activity_id="puzzle")
        service.flush()

        history = service.get_user_history("kid-1")
        assert [s.session_id for s in history] == [second, first]

        filtered = service.get_user_history("kid-1", activity_filter="puzzle")
        assert [s.session_id for s in filtered] == [second]

    def test_overall_stats_and_insights(self, service, clock):
        for _ in range(3):
            play(service, clock, ["attempt", "success", "attempt", "error"])
        service.flush()

        stats = service.get_overall_stats("kid-1")
        assert stats.total_sessions == 3
        assert stats.total_attempts == 6
        assert stats.average_accuracy == 50
        assert stats.difficulty_distribution["medium"] == 3

        insights = service.get_dashboard_insights("kid-1")
        assert insights.total_sessions == 3
        assert insights.summary.startswith("Análise baseada em 3 sessões.")
        assert insights.cognitive_profile


class TestPersistenceFailure:
    def test_report_survives_backend_outage(self, settings, cache, clock, failing_gateway):
        service = MetricsService(settings=settings, gateway=failing_gateway, cache=cache, clock=clock)

        session_id, report = play(service, clock, ["attempt", "success"])
        service.flush()

        assert report.session_id == session_id
        assert failing_gateway.save_calls == settings.retry_attempts
        assert cache.get(session_id).status == LOCAL_ONLY

    def test_cached_records_feed_history(self, settings, cache, clock, failing_gateway):
        service = MetricsService(settings=settings, gateway=failing_gateway, cache=cache, clock=clock)

        session_id, _ = play(service, clock, ["attempt", "success"])
        service.flush()

        assert [s.session_id for s in service.get_user_history("kid-1")] == [session_id]


class TestIdleSessions:
    def test_monitor_abandons_and_analyses_idle_session(self, service, clock):
        session_id = service.start_session("kid-1", "memory-game")
        service.record_attempt(session_id)
        clock.advance(int(service.settings.inactivity_timeout_seconds * 1000) + 1)

        service.monitor.run_cycle()

        assert service.store.get_status(session_id) == SessionStatus.ABANDONED
        report = service.get_report(session_id)
        assert report is not None
        assert report.session_summary["status"] == "abandoned"


class StaticHistoryGateway:
    """Gateway serving a fixed (possibly malformed) history."""

    def __init__(self, records):
        self.records = records
        self.saved = []

    def save_session(self, record):
        self.saved.append(record)

    def load_recent_sessions(self, user_id, since_ms=0, limit=50):
        return list(self.records)


class BrokenHistoryGateway(StaticHistoryGateway):
    def load_recent_sessions(self, user_id, since_ms=0, limit=50):
        raise ValueError("unexpected payload")


class TestMalformedHistory:
    def make(self, settings, cache, clock, gateway):
        return MetricsService(settings=settings, gateway=gateway, cache=cache, clock=clock)

    def malformed_records(self, clock):
        return [
            {
                "session_id": "old-1",
                "user_id": "kid-1",
                "activity_id": "memory-game",
                "start_time": clock.now - 60_000,
                "report": {"domain_scores": {"visual": 72.5}, "overall_score": 60},
            },
            "not a record",
            {"session_id": "old-2", "user_id": "kid-1", "start_time": "bad", "report": {"domain_scores": [1, 2]}},
        ]

    def test_end_session_returns_report(self, settings, cache, clock):
        gateway = StaticHistoryGateway(self.malformed_records(clock))
        service = self.make(settings, cache, clock, gateway)

        session_id, report = play(service, clock, ["attempt", "success"])

        assert report.session_id == session_id
        assert service.end_session(session_id) is report
        service.flush()
        assert [r["session_id"] for r in gateway.saved] == [session_id]

    def test_history_skips_unreadable_records(self, settings, cache, clock):
        service = self.make(settings, cache, clock, StaticHistoryGateway(self.malformed_records(clock)))

        history = service.get_user_history("kid-1")

        assert [s.session_id for s in history] == ["old-1", "old-2"]
        assert history[0].domain_scores == {"visual": 72.5}
        assert history[1].start_time == 0

    def test_unreadable_history_is_treated_as_empty(self, settings, cache, clock):
        service = self.make(settings, cache, clock, BrokenHistoryGateway([]))

        _, report = play(service, clock, ["attempt", "success"])

        assert report.progression_trend == ProgressionTrend.MAINTAINING


class TestUnwritableCache:
    def test_record_reaches_backend(self, settings, gateway, clock, unwritable_cache):
        service = MetricsService(settings=settings, gateway=gateway, cache=unwritable_cache, clock=clock)

        session_id, _ = play(service, clock, ["attempt", "success"])
        service.flush()

        assert [r["session_id"] for r in gateway.load_recent_sessions("kid-1")] == [session_id]

    def test_held_record_feeds_history(self, settings, clock, failing_gateway, unwritable_cache):
        service = MetricsService(settings=settings, gateway=failing_gateway, cache=unwritable_cache, clock=clock)

        session_id, _ = play(service, clock, ["attempt", "success"])
        service.flush()

        assert [s.session_id for s in service.get_user_history("kid-1")] == [session_id]
