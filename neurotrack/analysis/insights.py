"""
Cross-session insights.

Aggregates persisted session summaries into:
- overall statistics (totals, averages, improvement trend, distributions)
- a per-domain cognitive profile over the latest sessions
- a dashboard view (summary text, prioritized recommendations, trend)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger

from neurotrack.analysis.progression import ProgressionTracker
from neurotrack.analysis.recommendations import RecommendationEngine
from neurotrack.analysis.windowed_stats import round_half_up
from neurotrack.core.models import (
    Difficulty,
    Domain,
    Level,
    ProgressionTrend,
    Recommendation,
    SessionSummary,
)

# Sessions needed before recent/older accuracy are compared
IMPROVEMENT_MIN_SESSIONS = 10
IMPROVEMENT_WINDOW = 5
PROFILE_SESSIONS = 5
SUMMARY_SESSIONS = 3


@dataclass
class OverallStats:
    """Totals and averages over a user's stored sessions."""

    total_sessions: int = 0
    total_duration: int = 0  # ms
    total_attempts: int = 0
    total_successes: int = 0
    total_errors: int = 0
    average_accuracy: int = 0
    average_score: int = 0
    improvement_trend: int = 0
    average_learning_rate: int = 0
    average_response_latency: int = 0
    average_engagement_score: int = 0
    # 0 = Monday ... 6 = Sunday (UTC)
    engagement_by_day: dict[int, int] = field(default_factory=lambda: {d: 0 for d in range(7)})
    difficulty_distribution: dict[str, int] = field(
        default_factory=lambda: {d.value: 0 for d in Difficulty}
    )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DomainProfile:
    average_score: float
    trend: float  # % change between first and last score
    level: Level

    def to_dict(self) -> dict[str, Any]:
        return {"average_score": self.average_score, "trend": self.trend, "level": self.level.value}


@dataclass
class DashboardInsights:
    summary: str
    recommendations: list[Recommendation] = field(default_factory=list)
    cognitive_profile: dict[Domain, DomainProfile] = field(default_factory=dict)
    progression_trend: ProgressionTrend = ProgressionTrend.MAINTAINING
    total_sessions: int = 0
    last_analysis: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "cognitive_profile": {d.value: p.to_dict() for d, p in self.cognitive_profile.items()},
            "progression_trend": self.progression_trend.value,
            "total_sessions": self.total_sessions,
            "last_analysis": self.last_analysis,
        }


def _chronological(summaries: Sequence[SessionSummary]) -> list[SessionSummary]:
    return sorted(summaries, key=lambda s: s.start_time)


def _mean_int(values: Sequence[float]) -> int:
    return round_half_up(sum(values) / len(values)) if values else 0


def overall_stats(summaries: Sequence[SessionSummary]) -> OverallStats:
    """
    Compute overall statistics for a user.

    The improvement trend compares the mean accuracy of the 5 most recent
    sessions with the 5 oldest, once at least 10 sessions exist.
    """
    stats = OverallStats()
    if not summaries:
        return stats

    ordered = _chronological(summaries)
    stats.total_sessions = len(ordered)
    stats.total_duration = sum(max(0, (s.end_time or s.start_time) - s.start_time) for s in ordered)
    stats.total_attempts = sum(s.attempts for s in ordered)
    stats.total_successes = sum(s.successes for s in ordered)
    stats.total_errors = sum(max(0, s.attempts - s.successes) for s in ordered)

    if stats.total_attempts > 0:
        stats.average_accuracy = round_half_up(stats.total_successes / stats.total_attempts * 100)

    stats.average_score = _mean_int([s.score for s in ordered])
    stats.average_learning_rate = _mean_int([s.learning_rate for s in ordered])
    stats.average_response_latency = _mean_int([s.response_latency for s in ordered])
    stats.average_engagement_score = _mean_int([s.engagement_score for s in ordered])

    if len(ordered) >= IMPROVEMENT_MIN_SESSIONS:
        recent = ordered[-IMPROVEMENT_WINDOW:]
        older = ordered[:IMPROVEMENT_WINDOW]
        stats.improvement_trend = round_half_up(
            sum(s.accuracy for s in recent) / IMPROVEMENT_WINDOW
            - sum(s.accuracy for s in older) / IMPROVEMENT_WINDOW
        )

    for s in ordered:
        day = datetime.fromtimestamp(s.start_time / 1000, tz=timezone.utc).weekday()
        stats.engagement_by_day[day] += 1
        if s.difficulty in stats.difficulty_distribution:
            stats.difficulty_distribution[s.difficulty] += 1
        else:
            logger.debug(f"Unknown difficulty in stored session {s.session_id}: {s.difficulty}")

    return stats


def cognitive_profile(summaries: Sequence[SessionSummary]) -> dict[Domain, DomainProfile]:
    """Average, trend and latest level per domain over the last 5 sessions."""
    recent = _chronological(summaries)[-PROFILE_SESSIONS:]
    profile = {}
    for domain in Domain:
        scores = [s.domain_scores[domain.value] for s in recent if s.domain_scores.get(domain.value, 0) > 0]
        if not scores:
            continue
        first, last = scores[0], scores[-1]
        profile[domain] = DomainProfile(
            average_score=round(sum(scores) / len(scores), 1),
            trend=round((last - first) / first * 100, 1) if len(scores) > 1 else 0.0,
            level=Level.from_score(last),
        )
    return profile


def insight_summary(summaries: Sequence[SessionSummary]) -> str:
    """Short text naming strengths and concerns over the last 3 sessions."""
    ordered = _chronological(summaries)
    recent = ordered[-SUMMARY_SESSIONS:]
    if not recent:
        return "Aguardando mais sessões para gerar insights."

    strong: list[str] = []
    weak: list[str] = []
    for s in recent:
        for area, level in s.levels.items():
            if level in (Level.EXCELENTE.value, Level.BOM.value) and area not in strong:
                strong.append(area)
            elif level == Level.NECESSITA_SUPORTE.value and area not in weak:
                weak.append(area)

    text = f"Análise baseada em {len(ordered)} sessões."
    if strong:
        text += f" Pontos fortes: {', '.join(strong)}."
    if weak:
        text += f" Áreas de atenção: {', '.join(weak)}."
    return text


def dashboard_insights(
    summaries: Sequence[SessionSummary],
    engine: Optional[RecommendationEngine] = None,
    tracker: Optional[ProgressionTracker] = None,
) -> DashboardInsights:
    """Dashboard view over a user's stored sessions."""
    if not summaries:
        return DashboardInsights(summary="Nenhuma análise disponível")

    engine = engine or RecommendationEngine()
    tracker = tracker or ProgressionTracker()
    ordered = _chronological(summaries)

    return DashboardInsights(
        summary=insight_summary(ordered),
        recommendations=engine.from_reports(
            [{"recommendations": s.recommendations} for s in ordered], last_n=SUMMARY_SESSIONS
        ),
        cognitive_profile=cognitive_profile(ordered),
        progression_trend=tracker.trend(ordered),
        total_sessions=len(ordered),
        last_analysis=ordered[-1].end_time or ordered[-1].start_time,
    )
