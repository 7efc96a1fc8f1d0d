"""
Recommendation aggregation and ranking.

Recommendations coming from several domains (or several sessions) are merged
when they share a type and the first 20 characters of their description.
Merged entries sum their frequencies.

Ordering: priority (alta > média > baixa), then frequency (desc), then first
appearance. Domain scores are walked in Domain declaration order, so first
appearance is deterministic.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace

from loguru import logger

from neurotrack.core.models import Domain, DomainScore, Recommendation

DEFAULT_TOP_N = 5


class RecommendationEngine:
    """
    Merges and ranks recommendations.

    Usage:
        engine = RecommendationEngine()
        top = engine.from_domain_scores(domain_scores)
    """

    def __init__(self, top_n: int = DEFAULT_TOP_N):
        self.top_n = top_n

    def aggregate(self, recommendations: Iterable[Recommendation]) -> list[Recommendation]:
        """
        Merge duplicates and return the top N by rank.

        Args:
            recommendations: Recommendations in first-appearance order
        """
        grouped: dict[tuple[str, str], Recommendation] = {}
        for rec in recommendations:
            key = rec.group_key
            existing = grouped.get(key)
            if existing is None:
                grouped[key] = rec
            else:
                grouped[key] = replace(existing, frequency=existing.frequency + rec.frequency)

        # dict preserves insertion order, which is the first-appearance index
        ranked = sorted(
            enumerate(grouped.values()),
            key=lambda item: (-item[1].priority.rank, -item[1].frequency, item[0]),
        )
        result = [rec for _, rec in ranked[: self.top_n]]

        if len(grouped) > len(result):
            logger.debug(f"Dropped {len(grouped) - len(result)} lower-ranked recommendations")
        return result

    def from_domain_scores(self, domain_scores: Mapping[Domain, DomainScore]) -> list[Recommendation]:
        """Flatten per-domain recommendations in canonical domain order, then aggregate."""
        flat = [
            rec
            for domain in Domain
            if domain in domain_scores
            for rec in domain_scores[domain].recommendations
        ]
        return self.aggregate(flat)

    def from_reports(self, reports: Iterable[Mapping], last_n: int = 3) -> list[Recommendation]:
        """
        Aggregate the recommendations of the latest persisted reports.

        Args:
            reports: Report dicts (AnalysisReport.to_dict shape), chronological
            last_n: How many of the latest reports to consider
        """
        recent = list(reports)[-last_n:] if last_n else list(reports)
        flat = []
        for report in recent:
            for data in report.get("recommendations") or ():
                try:
                    flat.append(Recommendation.from_dict(data))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed stored recommendation: {e}")
        return self.aggregate(flat)
