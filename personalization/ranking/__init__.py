"""
Ranking: dynamic strategy weights, score fusion and diversification.
"""

from personalization.ranking.diversifier import Diversifier, DiversityConfig
from personalization.ranking.fusion import FusionRanker, cultural_accessibility_multiplier
from personalization.ranking.weights import (
    DEFAULT_BASE_WEIGHTS,
    DynamicWeightPolicy,
    WeightAdjustments,
    normalize_weights,
)

__all__ = [
    "DEFAULT_BASE_WEIGHTS",
    "Diversifier",
    "DiversityConfig",
    "DynamicWeightPolicy",
    "FusionRanker",
    "WeightAdjustments",
    "cultural_accessibility_multiplier",
    "normalize_weights",
]
