"""
Per-session metrics vector.

Collapses a finalized session (and the user's recent history) into the flat
set of signals the domain scorers consume. Every field has a neutral value so
that an empty session still produces a valid vector.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from typing import Any, Optional

from neurotrack.analysis import windowed_stats as ws
from neurotrack.core.events import (
    AuditoryTaskEvent,
    BaseEvent,
    MemoryTaskEvent,
    PlanningPhaseEvent,
    SoundToggleEvent,
    StrategyChangeEvent,
    TtsUsageEvent,
    VisualTaskEvent,
)
from neurotrack.core.models import Session, SessionSummary

DEFAULT_USER_AGE = 8
# Past sessions used for the forgetting-curve slope
FORGETTING_CURVE_SESSIONS = 5


@dataclass(frozen=True)
class SessionMetrics:
    """
    Flat signal vector for one session.

    Ratios are in [0, 1]; accuracy, consistency and fatigue are on the
    0-100 scale; times are milliseconds.
    """

    session_id: str = ""
    user_id: str = ""
    activity_id: str = ""
    attempts: int = 0
    accuracy: float = 0.0

    # Visual
    average_response_time: float = 0.0
    visual_discrimination_errors: int = 0
    visual_task_success_rate: float = 0.0

    # Auditory
    tts_usage_frequency: float = 0.0
    auditory_task_accuracy: float = 0.0
    sound_enabled: bool = False

    # Executive
    task_planning_time: float = 0.0
    error_pattern_consistency: float = 0.0
    strategy_change_frequency: int = 0
    impulsive_responses: int = 0

    # Memory
    intersession_retention: float = 0.0
    forgetting_curve_slope: float = 0.0
    repeated_items_accuracy: float = 0.0

    # Attention
    performance_consistency: float = 100.0
    fatigue_decline: float = 0.0
    distraction_events: int = 0
    sustained_attention_duration: int = 0

    # Speed
    processing_efficiency: float = 0.0
    response_time_variability: float = 0.0
    user_age: int = DEFAULT_USER_AGE

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _task_accuracy(events: Sequence[BaseEvent]) -> Optional[float]:
    results = ws.outcomes(events)
    if not results:
        return None
    return sum(1 for r in results if r) / len(results)


def _of_type(events: Iterable[BaseEvent], kind: type) -> list:
    return [e for e in events if isinstance(e, kind)]


def _retention(current: float, history: Sequence[SessionSummary]) -> float:
    """Current accuracy relative to the mean of past sessions, capped at 1."""
    past = [h.accuracy / 100 for h in history if h.attempts > 0]
    if not past:
        return current
    baseline = sum(past) / len(past)
    if baseline <= 0:
        return current
    return min(1.0, current / baseline)


def _forgetting_slope(current: float, history: Sequence[SessionSummary]) -> float:
    series = [float(h.accuracy) for h in history if h.attempts > 0]
    series = series[-(FORGETTING_CURVE_SESSIONS - 1):] + [current * 100]
    return ws.least_squares_slope(series)


def extract_metrics(
    session: Session,
    history: Sequence[SessionSummary] = (),
    default_user_age: int = DEFAULT_USER_AGE,
) -> SessionMetrics:
    """
    Build the metrics vector for a session.

    Args:
        session: Finalized (or snapshot) session
        history: Past session summaries of the same user, any order
        default_user_age: Age used when the session carries none
    """
    events = list(session.events)
    agg = session.aggregates
    accuracy_ratio = agg.accuracy / 100
    interactions = len(events)

    visual = _of_type(events, VisualTaskEvent)
    auditory = _of_type(events, AuditoryTaskEvent)
    memory = _of_type(events, MemoryTaskEvent)
    repeated = [e for e in memory if e.item_repeated]

    visual_rate = _task_accuracy(visual)
    auditory_rate = _task_accuracy(auditory)
    repeated_rate = _task_accuracy(repeated)
    if repeated_rate is None:
        repeated_rate = _task_accuracy(memory)

    toggles = _of_type(events, SoundToggleEvent)
    planning = _of_type(events, PlanningPhaseEvent)
    tts_uses = len(_of_type(events, TtsUsageEvent))

    same_activity = sorted(
        (h for h in history if h.activity_id == session.activity_id and h.session_id != session.session_id),
        key=lambda h: h.start_time,
    )

    signals = session.signals
    return SessionMetrics(
        session_id=session.session_id,
        user_id=session.user_id,
        activity_id=session.activity_id,
        attempts=agg.attempts,
        accuracy=float(agg.accuracy),
        average_response_time=agg.average_response_time,
        visual_discrimination_errors=sum(1 for e in visual if not e.is_correct),
        visual_task_success_rate=accuracy_ratio if visual_rate is None else visual_rate,
        tts_usage_frequency=min(1.0, tts_uses / interactions) if interactions else 0.0,
        auditory_task_accuracy=accuracy_ratio if auditory_rate is None else auditory_rate,
        sound_enabled=toggles[-1].enabled if toggles else False,
        task_planning_time=planning[-1].planning_time if planning else 0.0,
        error_pattern_consistency=ws.error_pattern_consistency(events),
        strategy_change_frequency=len(_of_type(events, StrategyChangeEvent)),
        impulsive_responses=ws.impulsive_responses(events),
        intersession_retention=_retention(accuracy_ratio, same_activity),
        forgetting_curve_slope=_forgetting_slope(accuracy_ratio, same_activity),
        repeated_items_accuracy=accuracy_ratio if repeated_rate is None else repeated_rate,
        performance_consistency=signals.performance_consistency,
        fatigue_decline=signals.fatigue_decline,
        distraction_events=signals.distraction_events,
        sustained_attention_duration=session.duration_ms,
        processing_efficiency=accuracy_ratio,
        response_time_variability=ws.response_time_variability(ws.response_times(events)),
        user_age=session.user_age or default_user_age,
    )
