"""
Fusion & Ranker.

fused = sum(score_s * weight_s) * multiplier
multiplier = clamp(0.5 + 0.3 * cultural_relevance + 0.2 * accessibility_score, 0, 1.5)

One Recommendation per content id carrying the union of rationales;
ordered by fused score descending, then content id ascending.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime

from personalization import __version__
from personalization.models import ContentItem, LearnerProfile, Recommendation, ScoringStrategyResult
from personalization.scoring.scorer import ScoringBatch

MULTIPLIER_CAP = 1.5


def cultural_accessibility_multiplier(item: ContentItem) -> float:
    cultural = max(0.0, min(1.0, item.cultural_relevance))
    accessibility = max(0.0, min(1.0, item.accessibility_score))
    return max(0.0, min(MULTIPLIER_CAP, 0.5 + 0.3 * cultural + 0.2 * accessibility))


# Items missing from the catalog get the neutral defaults (relevance 0.5, accessibility 0.7)
DEFAULT_MULTIPLIER = 0.5 + 0.3 * 0.5 + 0.2 * 0.7


class FusionRanker:
    def __init__(self, clock: Callable[[], datetime] | None = None, engine_version: str = __version__):
        self._clock = clock or datetime.now
        self.engine_version = engine_version

    def fuse(
        self,
        strategy_results: ScoringBatch | Sequence[Sequence[ScoringStrategyResult]],
        weights: Mapping[str, float],
        profile: LearnerProfile,
        items: Iterable[ContentItem] = (),
    ) -> list[Recommendation]:
        """
        Combine per-strategy scores into one ranked list.

        Args:
            strategy_results: A ScoringBatch or one result list per strategy
            weights: strategy_id -> weight (missing strategies weigh 0)
            profile: Requesting learner
            items: Candidate items, for type/difficulty and boosts

        Returns:
            Recommendations for every content id any strategy scored
        """
        if isinstance(strategy_results, ScoringBatch):
            result_lists = strategy_results.as_lists()
        else:
            result_lists = [list(r) for r in strategy_results]
        catalog = {item.content_id: item for item in items}

        # content_id -> strategy_id -> best result
        per_item: dict[str, dict[str, ScoringStrategyResult]] = {}
        for results in result_lists:
            for result in results:
                slot = per_item.setdefault(result.content_id, {})
                current = slot.get(result.strategy_id)
                if current is None or result.score > current.score:
                    slot[result.strategy_id] = result

        timestamp = self._clock().isoformat()
        recommendations = []
        for content_id, by_strategy in per_item.items():
            item = catalog.get(content_id)
            multiplier = cultural_accessibility_multiplier(item) if item else DEFAULT_MULTIPLIER
            mix = {
                sid: result.score * weights.get(sid, 0.0)
                for sid, result in sorted(by_strategy.items())
            }
            rationale: dict[str, None] = {}
            for sid in sorted(by_strategy, key=lambda s: (-mix[s], s)):
                rationale.setdefault(by_strategy[sid].rationale, None)

            recommendations.append(
                Recommendation(
                    content_id=content_id,
                    fused_score=sum(mix.values()) * multiplier,
                    rationale=list(rationale),
                    content_type=item.content_type if item else "unknown",
                    difficulty=item.difficulty.value if item else "unknown",
                    title=item.title if item else "",
                    metadata={
                        "algorithm_mix": {k: round(v, 6) for k, v in mix.items()},
                        "multiplier": round(multiplier, 6),
                        "timestamp": timestamp,
                        "engine_version": self.engine_version,
                        "learner_id": profile.learner_id,
                    },
                )
            )

        recommendations.sort(key=lambda r: (-r.fused_score, r.content_id))
        return recommendations
