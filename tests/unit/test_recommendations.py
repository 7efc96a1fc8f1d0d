"""
Unit tests for recommendation aggregation and progression classification.
"""

import pytest

from neurotrack.analysis.progression import ProgressionTracker
from neurotrack.analysis.recommendations import RecommendationEngine
from neurotrack.core.models import (
    Domain,
    DomainScore,
    Level,
    Priority,
    ProgressionTrend,
    Recommendation,
    RecommendationType,
    SessionSummary,
)


def rec(description, priority=Priority.MEDIA, rec_type=RecommendationType.INTERVENTION, domain=None):
    return Recommendation(type=rec_type, priority=priority, description=description, domain=domain)


class TestAggregate:
    def test_duplicates_merge_and_outrank(self):
        engine = RecommendationEngine()
        first = rec("Sessões curtas e frequentes", domain=Domain.VISUAL)
        dup_a = rec("Estratégias de consolidação A", domain=Domain.MEMORY)
        dup_b = rec("Estratégias de consolidação B", domain=Domain.ATTENTION)

        result = engine.aggregate([first, dup_a, dup_b])

        assert len(result) == 2
        assert result[0].description == dup_a.description
        assert result[0].frequency == 2
        assert result[1] is first

    def test_type_is_part_of_the_key(self):
        engine = RecommendationEngine()
        a = rec("Tempo adicional para processamento")
        b = rec("Tempo adicional para processamento", rec_type=RecommendationType.ACCOMMODATION)

        assert len(engine.aggregate([a, b])) == 2

    def test_priority_before_frequency(self):
        engine = RecommendationEngine()
        low = [rec("Recurso sonoro extra", priority=Priority.BAIXA)] * 3
        high = rec("Intervenção prioritária", priority=Priority.ALTA)

        result = engine.aggregate(low + [high])

        assert result[0] is high

    def test_first_appearance_breaks_ties(self):
        engine = RecommendationEngine()
        a, b = rec("Primeira recomendação"), rec("Segunda recomendação")
        assert engine.aggregate([a, b]) == [a, b]

    def test_top_n(self):
        engine = RecommendationEngine()
        recs = [rec(f"{i:02d} recomendação distinta") for i in range(8)]

        assert len(engine.aggregate(recs)) == 5
        assert len(RecommendationEngine(top_n=2).aggregate(recs)) == 2

    def test_from_domain_scores_uses_domain_order(self):
        engine = RecommendationEngine()
        speed = rec("Tempo adicional", domain=Domain.SPEED)
        visual = rec("Discriminação visual", domain=Domain.VISUAL)
        scores = {
            Domain.SPEED: DomainScore(Domain.SPEED, 30, Level.NECESSITA_SUPORTE, (speed,)),
            Domain.VISUAL: DomainScore(Domain.VISUAL, 30, Level.NECESSITA_SUPORTE, (visual,)),
        }

        assert engine.from_domain_scores(scores) == [visual, speed]

    def test_from_reports_skips_malformed(self):
        engine = RecommendationEngine()
        good = rec("Sessões mais curtas com pausas").to_dict()
        reports = [
            {"recommendations": [good]},
            {"recommendations": [{"type": "unknown", "priority": "alta"}]},
            {"recommendations": [good]},
        ]

        result = engine.from_reports(reports)

        assert len(result) == 1
        assert result[0].frequency == 2

    def test_from_reports_only_latest(self):
        engine = RecommendationEngine()
        old = {"recommendations": [rec("Recomendação antiga demais").to_dict()]}
        new = {"recommendations": [rec("Recomendação recente agora").to_dict()]}

        result = engine.from_reports([old, new, new, new], last_n=3)

        assert [r.description for r in result] == ["Recomendação recente agora"]


def summary(start_time, overall):
    return SessionSummary(
        session_id=f"s{start_time}",
        user_id="kid-1",
        activity_id="memory-game",
        start_time=start_time,
        end_time=start_time + 1,
        status="completed",
        difficulty="easy",
        overall_score=overall,
    )


class TestProgression:
    @pytest.fixture
    def tracker(self):
        return ProgressionTracker()

    def test_short_series_is_maintaining(self, tracker):
        assert tracker.classify([]) == ProgressionTrend.MAINTAINING
        assert tracker.classify([10, 90]) == ProgressionTrend.MAINTAINING

    def test_advancing(self, tracker):
        assert tracker.classify([40, 50, 60]) == ProgressionTrend.ADVANCING

    def test_needs_support(self, tracker):
        assert tracker.classify([70, 60, 50]) == ProgressionTrend.NEEDS_SUPPORT

    def test_mastered(self, tracker):
        assert tracker.classify([88, 90, 89]) == ProgressionTrend.MASTERED

    def test_maintaining(self, tracker):
        assert tracker.classify([60, 62, 61]) == ProgressionTrend.MAINTAINING

    def test_only_last_five_scores(self, tracker):
        # early collapse is outside the window
        assert tracker.classify([100, 0, 60, 61, 60, 62, 61]) == ProgressionTrend.MAINTAINING

    def test_trend_sorts_history(self, tracker):
        history = [summary(3, 60), summary(1, 40), summary(2, 50)]

        assert tracker.score_series(history, 70) == [40, 50, 60, 70]
        assert tracker.trend(history, 70) == ProgressionTrend.ADVANCING
