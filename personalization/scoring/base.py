"""
Scoring strategy capability.

A strategy scores one content item for one learner and explains why.
``score_batch`` exists so strategies that need per-request setup
(neighbour search, batch normalization) can do it once per request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from personalization.models import (
    ContentItem,
    LearnerProfile,
    RecommendationContext,
    ScoringStrategyResult,
)


class ScoringStrategy(ABC):
    """Independent, swappable relevance scorer."""

    strategy_id: str = "strategy"

    @abstractmethod
    def score(
        self,
        item: ContentItem,
        profile: LearnerProfile,
        context: RecommendationContext,
    ) -> tuple[float, str]:
        """Return (score in [0, 1], rationale)."""

    def score_batch(
        self,
        items: Sequence[ContentItem],
        profile: LearnerProfile,
        context: RecommendationContext,
    ) -> list[ScoringStrategyResult]:
        results = []
        for item in items:
            value, rationale = self.score(item, profile, context)
            results.append(ScoringStrategyResult(self.strategy_id, item.content_id, value, rationale))
        return results
