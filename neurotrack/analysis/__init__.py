"""
Analysis Module - Session statistics, domain scoring and reporting.

Components:
- windowed_stats: Sliding-window accuracy, trend, fatigue and consistency
- metrics: Per-session metrics vector
- scoring: Six cognitive domain scorers (ScoringStrategy)
- recommendations: Recommendation merging and ranking
- progression: Cross-session progression trend
- report: AnalysisReport assembly
- insights: Overall statistics and dashboard insights
"""

from neurotrack.analysis.metrics import SessionMetrics, extract_metrics
from neurotrack.analysis.progression import ProgressionTracker
from neurotrack.analysis.recommendations import RecommendationEngine
from neurotrack.analysis.report import ReportAssembler
from neurotrack.analysis.scoring import RuleBasedScoringStrategy, ScoringStrategy

__all__ = [
    "ProgressionTracker",
    "RecommendationEngine",
    "ReportAssembler",
    "RuleBasedScoringStrategy",
    "ScoringStrategy",
    "SessionMetrics",
    "extract_metrics",
]
