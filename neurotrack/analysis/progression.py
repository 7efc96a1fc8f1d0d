"""
Cross-session progression classification.

The trend is recomputed from the score series every time; no transition
history is stored.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from neurotrack.analysis.windowed_stats import least_squares_slope
from neurotrack.core.models import ProgressionTrend, SessionSummary

MIN_POINTS = 3
SLOPE_WINDOW = 5
SLOPE_THRESHOLD = 5.0
MASTERY_SCORE = 85.0


class ProgressionTracker:
    """
    Classifies the overall-score series of a user.

    Transition rule over the last (up to) 5 scores:
    - slope > +5 -> advancing
    - slope < -5 -> needs_support
    - latest > 85 -> mastered
    - otherwise -> maintaining (also with fewer than 3 points)
    """

    def __init__(
        self,
        slope_window: int = SLOPE_WINDOW,
        slope_threshold: float = SLOPE_THRESHOLD,
        mastery_score: float = MASTERY_SCORE,
    ):
        self.slope_window = slope_window
        self.slope_threshold = slope_threshold
        self.mastery_score = mastery_score

    def classify(self, scores: Sequence[float]) -> ProgressionTrend:
        if len(scores) < MIN_POINTS:
            return ProgressionTrend.MAINTAINING

        window = list(scores[-self.slope_window:])
        slope = least_squares_slope(window)
        logger.debug(f"Progression slope {slope:.2f} over {len(window)} scores")

        if slope > self.slope_threshold:
            return ProgressionTrend.ADVANCING
        if slope < -self.slope_threshold:
            return ProgressionTrend.NEEDS_SUPPORT
        if window[-1] > self.mastery_score:
            return ProgressionTrend.MASTERED
        return ProgressionTrend.MAINTAINING

    def score_series(self, history: Sequence[SessionSummary], current: float | None = None) -> list[float]:
        """Chronological overall scores of the history, followed by ``current``."""
        ordered = sorted(history, key=lambda h: h.start_time)
        series = [h.overall_score for h in ordered]
        if current is not None:
            series.append(current)
        return series

    def trend(self, history: Sequence[SessionSummary], current: float | None = None) -> ProgressionTrend:
        return self.classify(self.score_series(history, current))
