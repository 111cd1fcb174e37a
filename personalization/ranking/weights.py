"""
Per-learner strategy weights.

Base weights are nudged by observable traits, then normalized to sum 1:
- help seeking > 0.7            -> +0.10 peer_similarity
- cognitive flexibility > 0.8   -> +0.10 exploration
- strongest need confidence >= 0.75 -> +0.15 need_compatibility
- ADHD or LANGUAGE_DELAY need   -> +0.10 neurocognitive
"""

from __future__ import annotations

from dataclasses import dataclass, field

from personalization.models import LearnerProfile, NeedType

DEFAULT_BASE_WEIGHTS = {
    "peer_similarity": 0.25,
    "content_affinity": 0.25,
    "exploration": 0.15,
    "need_compatibility": 0.20,
    "neurocognitive": 0.15,
}


@dataclass
class WeightAdjustments:
    help_seeking_threshold: float = 0.7
    help_seeking_boost: float = 0.10
    flexibility_threshold: float = 0.8
    flexibility_boost: float = 0.10
    need_confidence_threshold: float = 0.75
    need_boost: float = 0.15
    cognitive_needs: tuple[NeedType, ...] = (NeedType.ADHD, NeedType.LANGUAGE_DELAY)
    cognitive_need_boost: float = 0.10


def normalize_weights(weights: dict[str, float]) -> dict[str, float]:
    positive = {k: max(0.0, v) for k, v in weights.items()}
    total = sum(positive.values())
    if total <= 0:
        return {k: 1.0 / len(positive) for k in positive} if positive else {}
    return {k: v / total for k, v in positive.items()}


@dataclass
class DynamicWeightPolicy:
    base_weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BASE_WEIGHTS))
    adjustments: WeightAdjustments = field(default_factory=WeightAdjustments)

    def compute(self, profile: LearnerProfile, base_weights: dict[str, float] | None = None) -> dict[str, float]:
        """Normalized weights for this learner; ``base_weights`` replaces the configured base."""
        weights = dict(base_weights if base_weights is not None else self.base_weights)
        adj = self.adjustments
        vector = profile.vector

        def boost(strategy_id: str, amount: float) -> None:
            if strategy_id in weights:
                weights[strategy_id] += amount

        if vector.get("help_seeking") > adj.help_seeking_threshold:
            boost("peer_similarity", adj.help_seeking_boost)
        if vector.get("cognitive_flexibility") > adj.flexibility_threshold:
            boost("exploration", adj.flexibility_boost)
        strongest = max((n.confidence for n in profile.needs), default=0.0)
        if strongest >= adj.need_confidence_threshold:
            boost("need_compatibility", adj.need_boost)
        if any(n.need_type in adj.cognitive_needs for n in profile.needs):
            boost("neurocognitive", adj.cognitive_need_boost)

        return normalize_weights(weights)
