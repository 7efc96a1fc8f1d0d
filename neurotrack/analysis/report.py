"""
Analysis report assembly.

Pure composition of the scorer, recommendation and progression outputs into
an immutable AnalysisReport. Nothing here performs I/O.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Optional

from neurotrack.analysis.scoring import overall_score
from neurotrack.core.models import (
    AnalysisReport,
    Difficulty,
    DifficultyAdjustment,
    Domain,
    DomainScore,
    LearningStyle,
    Level,
    NextSessionSuggestion,
    ProgressionTrend,
    Recommendation,
    Session,
    now_ms,
)

MIXED_STYLE_SPREAD = 15
MODALITY_GAP = 20

# Difficulty adjustment thresholds
INCREASE_ACCURACY = 90
INCREASE_MAX_DURATION_MS = 5 * 60 * 1000
DECREASE_ACCURACY = 40

PROGRESSION_NOTES = {
    ProgressionTrend.ADVANCING: "Progressão consistente - considerar aumentar a complexidade.",
    ProgressionTrend.NEEDS_SUPPORT: "Declínio no desempenho observado - revisar estratégias e possíveis fatores interferentes.",
    ProgressionTrend.MASTERED: "Domínio da atividade atual atingido - pronto para o próximo nível de desafio.",
}


def learning_style(domain_scores: Mapping[Domain, DomainScore]) -> LearningStyle:
    """
    Dominant modality among visual, auditory and executive.

    A spread below 15 points between the best and worst is ``mixed``;
    ties go to visual, then auditory.
    """

    def _score(domain: Domain) -> float:
        entry = domain_scores.get(domain)
        return entry.score if entry else 0.0

    visual = _score(Domain.VISUAL)
    auditory = _score(Domain.AUDITORY)
    executive = _score(Domain.EXECUTIVE)

    best = max(visual, auditory, executive)
    if best - min(visual, auditory, executive) < MIXED_STYLE_SPREAD:
        return LearningStyle.MIXED
    if best == visual:
        return LearningStyle.VISUAL
    if best == auditory:
        return LearningStyle.AUDITORY
    return LearningStyle.KINESTHETIC


def strengths(domain_scores: Mapping[Domain, DomainScore]) -> list[Domain]:
    return [d for d in Domain if d in domain_scores and domain_scores[d].level.is_strength]


def concerns(domain_scores: Mapping[Domain, DomainScore]) -> list[Domain]:
    return [d for d in Domain if d in domain_scores and domain_scores[d].level.is_concern]


def therapist_notes(
    domain_scores: Mapping[Domain, DomainScore],
    trend: ProgressionTrend,
) -> list[str]:
    notes = []

    strong = strengths(domain_scores)
    if strong:
        notes.append(f"Pontos fortes identificados: {', '.join(d.value for d in strong)}")

    weak = concerns(domain_scores)
    if weak:
        notes.append(f"Áreas que necessitam atenção: {', '.join(d.value for d in weak)}")

    if trend in PROGRESSION_NOTES:
        notes.append(PROGRESSION_NOTES[trend])
    return notes


def next_session(
    domain_scores: Mapping[Domain, DomainScore],
    trend: ProgressionTrend,
    current_difficulty: Difficulty = Difficulty.MEDIUM,
) -> NextSessionSuggestion:
    """Suggested duration, difficulty, modalities and accommodations for the next session."""
    duration = 15
    accommodations: list[str] = []

    attention = domain_scores.get(Domain.ATTENTION)
    if attention is not None and attention.level == Level.NECESSITA_SUPORTE:
        duration = 10
        accommodations.append("frequent_breaks")
    elif attention is not None and attention.level == Level.EXCELENTE:
        duration = 20

    if trend == ProgressionTrend.ADVANCING:
        difficulty = Difficulty.HARD
    elif trend == ProgressionTrend.NEEDS_SUPPORT:
        difficulty = Difficulty.EASY
    else:
        difficulty = current_difficulty

    visual = domain_scores[Domain.VISUAL].score if Domain.VISUAL in domain_scores else 0.0
    auditory = domain_scores[Domain.AUDITORY].score if Domain.AUDITORY in domain_scores else 0.0
    modalities: tuple[str, ...] = ("visual", "auditory")
    if visual > auditory + MODALITY_GAP:
        modalities = ("visual",)
    elif auditory > visual + MODALITY_GAP:
        modalities = ("auditory",)

    return NextSessionSuggestion(
        duration_minutes=duration,
        difficulty=difficulty,
        modalities=modalities,
        accommodations=tuple(accommodations),
        focus_areas=tuple(d.value for d in concerns(domain_scores)),
    )


def difficulty_adjustment(session: Session) -> DifficultyAdjustment:
    """
    Immediate difficulty move based on this session alone.

    Sessions without attempts, or whose accuracy lies between the thresholds,
    keep their difficulty.
    """
    agg = session.aggregates
    if agg.attempts == 0:
        return DifficultyAdjustment.MAINTAIN
    if agg.accuracy > INCREASE_ACCURACY and session.duration_ms < INCREASE_MAX_DURATION_MS:
        return DifficultyAdjustment.INCREASE
    if agg.accuracy < DECREASE_ACCURACY or session.signals.load_level == "critical":
        return DifficultyAdjustment.DECREASE
    return DifficultyAdjustment.MAINTAIN


def session_summary(session: Session) -> dict[str, Any]:
    """Flat snapshot of the session totals carried inside the report."""
    summary = session.aggregates.to_dict()
    summary.pop("pause_patterns", None)
    summary.update(
        {
            "status": session.status.value,
            "difficulty": session.difficulty.value,
            "duration": session.duration_ms,
            "score": session.score,
            "pauses": len(session.aggregates.pause_patterns),
            "fatigue_decline": session.signals.fatigue_decline,
            "distraction_events": session.signals.distraction_events,
            "performance_consistency": session.signals.performance_consistency,
            "cognitive_load": session.signals.cognitive_load,
        }
    )
    return summary


class ReportAssembler:
    """Builds the immutable AnalysisReport for a finalized session."""

    def assemble(
        self,
        session: Session,
        domain_scores: Mapping[Domain, DomainScore],
        recommendations: Sequence[Recommendation],
        trend: ProgressionTrend,
        timestamp: Optional[int] = None,
    ) -> AnalysisReport:
        ordered = {d: domain_scores[d] for d in Domain if d in domain_scores}
        return AnalysisReport(
            session_id=session.session_id,
            user_id=session.user_id,
            activity_id=session.activity_id,
            timestamp=timestamp if timestamp is not None else now_ms(),
            domain_scores=ordered,
            learning_style=learning_style(ordered),
            progression_trend=trend,
            recommendations=tuple(recommendations),
            therapist_notes=tuple(therapist_notes(ordered, trend)),
            overall_score=overall_score(ordered),
            next_session=next_session(ordered, trend, session.difficulty),
            difficulty_adjustment=difficulty_adjustment(session),
            session_summary=session_summary(session),
        )
