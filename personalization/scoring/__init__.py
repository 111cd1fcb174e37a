"""
Multi-strategy scoring: the strategy capability, concrete strategies and the scorer.
"""

from personalization.scoring.base import ScoringStrategy
from personalization.scoring.collaborators import ExplorationStats, PeerDirectory
from personalization.scoring.scorer import MultiStrategyScorer, ScorerConfig, ScoringBatch
from personalization.scoring.strategies import (
    ContentAffinityStrategy,
    ExplorationStrategy,
    NeedCompatibilityStrategy,
    NeurocognitiveStrategy,
    PeerSimilarityStrategy,
    default_strategies,
)

__all__ = [
    "ContentAffinityStrategy",
    "ExplorationStats",
    "ExplorationStrategy",
    "MultiStrategyScorer",
    "NeedCompatibilityStrategy",
    "NeurocognitiveStrategy",
    "PeerDirectory",
    "PeerSimilarityStrategy",
    "ScorerConfig",
    "ScoringBatch",
    "ScoringStrategy",
    "default_strategies",
]
