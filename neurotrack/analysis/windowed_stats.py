"""
Windowed statistics over a session event log.

All functions are pure and total: when there are not enough samples they
return the neutral value instead of raising (trend 0, fatigue 0,
consistency 100, variability 0).

Thresholds:
- trend needs >= 5 scorable events, split into 3 contiguous windows
- fatigue compares both halves of every trailing 10-event window
- consistency slides a 5-event window over outcomes
- a gap > 30s between consecutive events is a distraction
- a gap > 2s from the previous event (or session start) is a pause
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Optional

from neurotrack.core.events import BaseEvent
from neurotrack.core.models import PausePattern

TREND_MIN_EVENTS = 5
FATIGUE_WINDOW = 10
CONSISTENCY_WINDOW = 5
DISTRACTION_GAP_MS = 30000
PAUSE_GAP_MS = 2000
IMPULSIVE_RESPONSE_MS = 1000


def outcomes(events: Iterable[BaseEvent]) -> list[bool]:
    """Correctness of every scorable event, in arrival order."""
    return [e.outcome for e in events if e.outcome is not None]


def response_times(events: Iterable[BaseEvent]) -> list[float]:
    return [e.response_time for e in events if e.response_time is not None]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (12.5 -> 13, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def _accuracy(values: Sequence[bool]) -> float:
    return sum(1 for v in values if v) / len(values) if values else 0.0


def _pstdev(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def variance(values: Sequence[float]) -> float:
    """Population variance; 0 with fewer than 2 samples."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def response_time_variability(times: Sequence[float], last_n: Optional[int] = None) -> float:
    """Standard deviation of the last N (or all) response times."""
    sample = list(times[-last_n:]) if last_n else list(times)
    return _pstdev(sample)


def learning_trend(results: Sequence[bool]) -> int:
    """
    Change in accuracy between the first and last third of the outcomes.

    Windows are [0, w), [w, 2w), [2w, n) with w = n // 3, so the last window
    absorbs the remainder.

    Returns:
        Percentage points in [-100, 100]; 0 with fewer than 5 outcomes
    """
    n = len(results)
    if n < TREND_MIN_EVENTS:
        return 0

    w = n // 3
    first = results[:w]
    last = results[2 * w:]
    trend = (_accuracy(last) - _accuracy(first)) * 100
    return round_half_up(max(-100.0, min(100.0, trend)))


def window_fatigue(window: Sequence[bool]) -> float:
    """Accuracy drop between both halves of one window (0-100)."""
    half = len(window) // 2
    first_half = _accuracy(window[:half])
    second_half = _accuracy(window[half:])
    return max(0.0, first_half - second_half) * 100


def fatigue_decline(results: Sequence[bool], prior: float = 0.0) -> float:
    """
    Running fatigue decline.

    Every trailing window of the last 10 outcomes that existed while the
    session progressed is evaluated; the result is the maximum decline seen
    (and never less than ``prior``). Fewer than 10 outcomes keeps ``prior``.
    """
    decline = prior
    for end in range(FATIGUE_WINDOW, len(results) + 1):
        decline = max(decline, window_fatigue(results[end - FATIGUE_WINDOW:end]))
    return decline


def distraction_events(timestamps: Sequence[int], gap_ms: int = DISTRACTION_GAP_MS) -> int:
    """Number of consecutive-event gaps longer than ``gap_ms``."""
    return sum(1 for prev, cur in zip(timestamps, timestamps[1:]) if cur - prev > gap_ms)


def performance_consistency(results: Sequence[bool]) -> float:
    """
    Stability of accuracy across sliding 5-outcome windows (0-100).

    Returns 100 with fewer than 5 outcomes.
    """
    if len(results) < CONSISTENCY_WINDOW:
        return 100.0

    window_accuracies = [
        _accuracy(results[i:i + CONSISTENCY_WINDOW])
        for i in range(len(results) - CONSISTENCY_WINDOW + 1)
    ]
    return max(0.0, 100 - _pstdev(window_accuracies) * 100)


def pause_patterns(timestamps: Sequence[int], start_time: int, gap_ms: int = PAUSE_GAP_MS) -> tuple[PausePattern, ...]:
    pauses = []
    last = start_time
    for ts in timestamps:
        gap = ts - last
        if gap > gap_ms:
            pauses.append(PausePattern(start=last, end=ts, duration=gap))
        last = ts
    return tuple(pauses)


def mean_gap(timestamps: Sequence[int]) -> int:
    """Average gap between consecutive timestamps (0 with fewer than 2)."""
    if len(timestamps) < 2:
        return 0
    gaps = [cur - prev for prev, cur in zip(timestamps, timestamps[1:])]
    return round_half_up(sum(gaps) / len(gaps))


def engagement_score(
    event_count: int,
    duration_ms: int,
    accuracy: float,
    successes: int,
    attempts: int,
) -> int:
    """
    Engagement estimate (0-100) from event frequency and success.

    ``accuracy`` is on the 0-100 scale.
    """
    duration_seconds = duration_ms / 1000 or 1
    event_frequency = event_count / duration_seconds
    raw = event_frequency * 20 + accuracy * 0.5 + (successes / (attempts or 1)) * 30
    return max(0, min(100, round_half_up(raw)))


def error_pattern_consistency(events: Iterable[BaseEvent]) -> float:
    """
    Share of the most frequent error type among incorrect outcomes (0-100).

    Needs at least 2 errors, otherwise 0.
    """
    error_types = [e.error_type or "unknown" for e in events if e.outcome is False]
    if len(error_types) < 2:
        return 0.0
    _, most_common = Counter(error_types).most_common(1)[0]
    return most_common / len(error_types) * 100


def impulsive_responses(events: Iterable[BaseEvent], threshold_ms: int = IMPULSIVE_RESPONSE_MS) -> int:
    """Incorrect outcomes answered faster than ``threshold_ms``."""
    return sum(
        1
        for e in events
        if e.outcome is False and e.response_time is not None and e.response_time < threshold_ms
    )


def least_squares_slope(values: Sequence[float]) -> float:
    """
    Slope of the least-squares line through (1, v1) ... (n, vn).

    Returns 0 for fewer than 2 values.
    """
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n + 1) / 2
    sum_y = sum(values)
    sum_xy = sum((i + 1) * y for i, y in enumerate(values))
    sum_x2 = n * (n + 1) * (2 * n + 1) / 6
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
