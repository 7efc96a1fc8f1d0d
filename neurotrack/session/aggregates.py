"""
Aggregate and signal derivation for a session event log.

Aggregates are always recomputed from the log so that no value can drift
from the events it summarises (accuracy in particular is never stored on
its own).
"""

from __future__ import annotations

from collections.abc import Sequence

from neurotrack.analysis import windowed_stats as ws
from neurotrack.core.events import BaseEvent, SuccessEvent
from neurotrack.core.models import Aggregates, SessionSignals

# Cognitive load thresholds (0-100 load percent)
LOAD_LEVELS = [
    (30, "low"),
    (50, "moderate"),
    (75, "high"),
]


def accuracy_percent(successes: int, attempts: int) -> int:
    """100 * successes / attempts rounded half up, 0 without attempts, kept in [0, 100]."""
    if attempts <= 0:
        return 0
    return max(0, min(100, ws.round_half_up(successes / attempts * 100)))


def count_outcomes(events: Sequence[BaseEvent]) -> tuple[int, int, int]:
    """Return (attempts, successes, errors)."""
    attempts = successes = errors = 0
    for event in events:
        if event.counts_as_attempt:
            attempts += 1
        if event.outcome is True:
            successes += 1
        elif event.outcome is False:
            errors += 1
    return attempts, successes, errors


def session_score(events: Sequence[BaseEvent]) -> int:
    """Points collected by success events."""
    return sum(e.points for e in events if isinstance(e, SuccessEvent))


def compute_aggregates(events: Sequence[BaseEvent], start_time: int, now: int) -> Aggregates:
    """
    Derive the running aggregates of a session.

    Args:
        events: Event log in arrival order
        start_time: Session start (ms epoch)
        now: Reference time for the duration (end time once finalized)
    """
    attempts, successes, errors = count_outcomes(events)
    accuracy = accuracy_percent(successes, attempts)

    times = ws.response_times(events)
    timestamps = [e.timestamp for e in events]
    attempt_timestamps = [e.timestamp for e in events if e.type == "attempt"]

    duration_ms = max(0, now - start_time)
    average_response_time = sum(times) / len(times) if times else 0.0

    return Aggregates(
        attempts=attempts,
        successes=successes,
        errors=errors,
        accuracy=accuracy,
        average_response_time=average_response_time,
        response_latency_variance=ws.variance(times),
        response_latency=ws.mean_gap(attempt_timestamps),
        engagement_score=ws.engagement_score(
            len(events), duration_ms, accuracy, successes, attempts
        ),
        pause_patterns=ws.pause_patterns(timestamps, start_time),
        learning_rate=ws.learning_trend(ws.outcomes(events)),
        interactions=len(events),
    )


def _error_streak(results: Sequence[bool]) -> int:
    streak = 0
    for correct in reversed(results):
        if correct:
            break
        streak += 1
    return streak


def cognitive_load(events: Sequence[BaseEvent], duration_ms: int) -> tuple[int, str]:
    """
    Estimate current cognitive load from the last 10 interactions.

    Four factors of up to 25 points each: response time, error rate,
    session duration and current error streak.

    Returns:
        (load_percent, load_level)
    """
    recent = list(events[-10:])
    if not recent:
        return 0, "low"

    times = ws.response_times(recent)
    avg_rt = sum(times) / len(times) if times else 3000
    rt_factor = min(25, avg_rt / 400)  # 10s -> 25 points

    results = ws.outcomes(recent)
    error_rate = (results.count(False) / len(results)) if results else 0.0
    error_factor = error_rate * 25

    session_minutes = duration_ms / 60000
    duration_factor = min(25, session_minutes / 2)  # 50 min -> 25 points

    streak_factor = min(25, _error_streak(results) * 5)  # 5 errors -> 25 points

    load = ws.round_half_up(min(100, rt_factor + error_factor + duration_factor + streak_factor))
    for limit, level in LOAD_LEVELS:
        if load < limit:
            return load, level
    return load, "critical"


def compute_signals(
    events: Sequence[BaseEvent],
    start_time: int,
    now: int,
    distraction_gap_ms: int = ws.DISTRACTION_GAP_MS,
    prior: SessionSignals | None = None,
) -> SessionSignals:
    """Derive the monitoring signals (fatigue, distraction, consistency, load)."""
    results = ws.outcomes(events)
    load, level = cognitive_load(events, max(0, now - start_time))
    return SessionSignals(
        fatigue_decline=ws.fatigue_decline(results, prior.fatigue_decline if prior else 0.0),
        distraction_events=ws.distraction_events([e.timestamp for e in events], distraction_gap_ms),
        performance_consistency=ws.performance_consistency(results),
        response_time_variability=ws.response_time_variability(ws.response_times(events)),
        cognitive_load=load,
        load_level=level,
        computed_at=now,
    )
