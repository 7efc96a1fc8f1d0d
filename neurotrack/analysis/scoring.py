"""
Cognitive domain scoring.

Six independent scorers turn a SessionMetrics vector into a DomainScore.
Each one:
- combines a handful of weighted sub-signals into a raw score
- clamps to [0, 100] and rounds to one decimal
- maps the rounded score to a Level
- emits threshold-gated recommendations for its domain

All scorers are pure and total (the all-zero vector is valid input).
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Protocol

from neurotrack.analysis.metrics import SessionMetrics
from neurotrack.core.models import (
    Domain,
    DomainScore,
    Level,
    Priority,
    Recommendation,
    RecommendationType,
)

# Response time band for visual tasks (ms)
VISUAL_RT_MIN = 2000
VISUAL_RT_MAX = 8000
VISUAL_SLOW_RT = 10000

# Planning time band for executive function (ms)
PLANNING_MIN = 1000
PLANNING_MAX = 5000

SUSTAINED_ATTENTION_MIN_MS = 5 * 60 * 1000


def ideal_response_time(age: int) -> int:
    """Expected response time (ms) for a user of the given age."""
    if age <= 5:
        return 8000
    elif age <= 7:
        return 6000
    elif age <= 9:
        return 4000
    elif age <= 12:
        return 3000
    return 2500


def _clamp(raw: float) -> float:
    if math.isnan(raw):
        return 0.0
    return round(max(0.0, min(100.0, raw)), 1)


def _finalize(domain: Domain, raw: float, recommendations: list[Recommendation]) -> DomainScore:
    score = _clamp(raw)
    return DomainScore(
        domain=domain,
        score=score,
        level=Level.from_score(score),
        recommendations=tuple(recommendations),
    )


def _rec(
    domain: Domain,
    rec_type: RecommendationType,
    priority: Priority,
    description: str,
    activities: tuple[str, ...],
) -> Recommendation:
    return Recommendation(
        type=rec_type,
        priority=priority,
        description=description,
        activities=activities,
        domain=domain,
    )


# =============================================================================
# Domain scorers
# =============================================================================


def score_visual(m: SessionMetrics) -> DomainScore:
    """Response-time band + visual success rate - discrimination errors."""
    rt = m.average_response_time
    if VISUAL_RT_MIN <= rt <= VISUAL_RT_MAX:
        raw = 30.0
    elif rt > VISUAL_RT_MAX:
        raw = 10.0  # slow processing
    else:
        raw = 20.0  # very fast, possibly impulsive

    raw += math.floor(m.visual_task_success_rate * 50)
    raw -= m.visual_discrimination_errors * 5

    recs = []
    if _clamp(raw) < 50:
        recs.append(_rec(
            Domain.VISUAL, RecommendationType.INTERVENTION, Priority.ALTA,
            "Atividades de discriminação visual com apoio multimodal",
            ("contrast_exercises", "visual_tracking", "pattern_recognition"),
        ))
    if rt > VISUAL_SLOW_RT:
        recs.append(_rec(
            Domain.VISUAL, RecommendationType.ACCOMMODATION, Priority.MEDIA,
            "Permitir tempo adicional para processamento visual",
            ("extended_time", "visual_cues"),
        ))
    return _finalize(Domain.VISUAL, raw, recs)


def score_auditory(m: SessionMetrics) -> DomainScore:
    """Sound preference + TTS reliance band + auditory accuracy."""
    raw = 20.0 if m.sound_enabled else 0.0

    if m.tts_usage_frequency > 0.7:
        raw += 40
    elif m.tts_usage_frequency > 0.3:
        raw += 25
    else:
        raw += 10

    raw += m.auditory_task_accuracy * 30

    recs = []
    if m.tts_usage_frequency > 0.8:
        recs.append(_rec(
            Domain.AUDITORY, RecommendationType.STRENGTH, Priority.BAIXA,
            "Forte preferência auditiva - maximizar recursos sonoros",
            ("audio_stories", "sound_games", "verbal_instructions"),
        ))
    if _clamp(raw) < 40:
        recs.append(_rec(
            Domain.AUDITORY, RecommendationType.INTERVENTION, Priority.ALTA,
            "Desenvolver habilidades de processamento auditivo",
            ("sound_discrimination", "auditory_memory", "listening_skills"),
        ))
    return _finalize(Domain.AUDITORY, raw, recs)


def score_executive(m: SessionMetrics) -> DomainScore:
    """Planning band + error variety + strategy adaptation + accuracy - impulsivity."""
    if PLANNING_MIN <= m.task_planning_time <= PLANNING_MAX:
        raw = 25.0
    elif m.task_planning_time < PLANNING_MIN:
        raw = 10.0
    else:
        raw = 0.0

    raw += (100 - m.error_pattern_consistency) * 0.2
    raw += min(30, m.strategy_change_frequency * 15)
    raw += (m.accuracy / 100) * 25
    raw -= m.impulsive_responses * 10

    recs = []
    if m.impulsive_responses > 5:
        recs.append(_rec(
            Domain.EXECUTIVE, RecommendationType.INTERVENTION, Priority.ALTA,
            "Estratégias para controle de impulsividade",
            ("pause_reflect", "self_monitoring", "planning_practice"),
        ))
    if _clamp(raw) < 45:
        recs.append(_rec(
            Domain.EXECUTIVE, RecommendationType.INTERVENTION, Priority.MEDIA,
            "Desenvolvimento de habilidades executivas",
            ("task_planning", "problem_solving", "cognitive_flexibility"),
        ))
    return _finalize(Domain.EXECUTIVE, raw, recs)


def score_memory(m: SessionMetrics) -> DomainScore:
    """Inter-session retention + flat forgetting curve + repeated-item accuracy."""
    raw = m.intersession_retention * 40
    raw += max(0.0, 100 - abs(m.forgetting_curve_slope)) * 0.3
    raw += m.repeated_items_accuracy * 30

    recs = []
    if m.intersession_retention < 0.5:
        recs.append(_rec(
            Domain.MEMORY, RecommendationType.INTERVENTION, Priority.ALTA,
            "Estratégias de consolidação de memória",
            ("spaced_repetition", "memory_strategies", "review_sessions"),
        ))
    return _finalize(Domain.MEMORY, raw, recs)


def score_attention(m: SessionMetrics) -> DomainScore:
    """Consistency + (low) fatigue + (few) distractions + sustained minutes."""
    raw = m.performance_consistency / 100 * 30
    raw += max(0.0, 30 - m.fatigue_decline * 0.3)
    raw += max(0, 20 - m.distraction_events * 3)
    raw += min(20.0, m.sustained_attention_duration / 60000 * 10)

    recs = []
    if m.sustained_attention_duration < SUSTAINED_ATTENTION_MIN_MS:
        recs.append(_rec(
            Domain.ATTENTION, RecommendationType.ACCOMMODATION, Priority.MEDIA,
            "Sessões mais curtas com pausas frequentes",
            ("break_reminders", "shorter_sessions", "attention_cues"),
        ))
    if m.distraction_events > 3:
        recs.append(_rec(
            Domain.ATTENTION, RecommendationType.INTERVENTION, Priority.MEDIA,
            "Estratégias para reduzir distrações",
            ("focus_exercises", "environmental_modifications"),
        ))
    return _finalize(Domain.ATTENTION, raw, recs)


def score_speed(m: SessionMetrics) -> DomainScore:
    """Closeness to the age-ideal response time + efficiency + steadiness."""
    ideal = ideal_response_time(m.user_age)
    deviation = abs(m.average_response_time - ideal)

    raw = max(0.0, 40 - deviation / 1000 * 5)
    raw += m.processing_efficiency * 30
    raw += max(0.0, 30 - m.response_time_variability / 1000 * 10)

    recs = []
    if m.average_response_time > ideal * 1.5:
        recs.append(_rec(
            Domain.SPEED, RecommendationType.ACCOMMODATION, Priority.MEDIA,
            "Tempo adicional para processamento",
            ("extended_time", "processing_support"),
        ))
    return _finalize(Domain.SPEED, raw, recs)


DOMAIN_SCORERS: dict[Domain, Callable[[SessionMetrics], DomainScore]] = {
    Domain.VISUAL: score_visual,
    Domain.AUDITORY: score_auditory,
    Domain.EXECUTIVE: score_executive,
    Domain.MEMORY: score_memory,
    Domain.ATTENTION: score_attention,
    Domain.SPEED: score_speed,
}


# =============================================================================
# Strategy seam
# =============================================================================


class ScoringStrategy(Protocol):
    """Interface for domain scoring models."""

    def score(self, metrics: SessionMetrics) -> dict[Domain, DomainScore]:
        """Score every domain, in Domain declaration order."""
        ...


class RuleBasedScoringStrategy:
    """Default deterministic threshold scoring."""

    def __init__(self, scorers: dict[Domain, Callable[[SessionMetrics], DomainScore]] | None = None):
        self.scorers = dict(DOMAIN_SCORERS)
        if scorers:
            self.scorers.update(scorers)

    def score(self, metrics: SessionMetrics) -> dict[Domain, DomainScore]:
        return {domain: self.scorers[domain](metrics) for domain in Domain}


def overall_score(domain_scores: dict[Domain, DomainScore]) -> float:
    """Mean of the domain scores, one decimal."""
    if not domain_scores:
        return 0.0
    return round(sum(s.score for s in domain_scores.values()) / len(domain_scores), 1)
