"""
Concrete scoring strategies.

| Strategy             | Signal                                               |
|----------------------|------------------------------------------------------|
| peer_similarity      | ratings from learners with similar signal vectors    |
| content_affinity     | skill gap + difficulty fit against mastery           |
| exploration          | UCB bonus for under-sampled items                    |
| need_compatibility   | coverage of detected needs' accommodations           |
| neurocognitive       | item demands vs. learner's processing capacities     |
"""

from __future__ import annotations

import math

import numpy as np

from personalization.content.store import supports_requirement
from personalization.models import (
    ContentItem,
    LearnerProfile,
    NeedType,
    RecommendationContext,
    ScoringStrategyResult,
)
from personalization.scoring.base import ScoringStrategy
from personalization.scoring.collaborators import ExplorationStats, PeerDirectory, PeerSnapshot

# =============================================================================
# Peer similarity
# =============================================================================


class PeerSimilarityStrategy(ScoringStrategy):
    """
    Collaborative scoring from similar learners.

    Similarity is the cosine between feature vectors centred on the
    neutral 0.5. The top ``k`` positively similar peers vote with their
    ratings, weighted by similarity.
    """

    strategy_id = "peer_similarity"

    NO_DATA_SCORE = 0.3
    FALLBACK_DISCOUNT = 0.8

    def __init__(self, directory: PeerDirectory, k: int = 10):
        self.directory = directory
        self.k = k

    def neighbours(
        self, profile: LearnerProfile, snapshot: PeerSnapshot
    ) -> list[tuple[str, float]]:
        peers = sorted(p for p in snapshot.features if p != profile.learner_id)
        if not peers:
            return []
        names = sorted(profile.vector.features)
        learner = np.array([profile.vector.get(n) for n in names], dtype=float) - 0.5
        matrix = np.array(
            [[snapshot.features[p].get(n, 0.5) for n in names] for p in peers], dtype=float
        ) - 0.5

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(learner)
        dots = matrix @ learner
        sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        ranked = sorted(
            ((float(s), p) for s, p in zip(sims, peers) if s > 0),
            key=lambda pair: (-pair[0], pair[1]),
        )
        return [(p, s) for s, p in ranked[: self.k]]

    def _score_item(
        self,
        item: ContentItem,
        neighbours: list[tuple[str, float]],
        snapshot: PeerSnapshot,
        profile_id: str,
    ) -> tuple[float, str]:
        weighted = [
            (sim, snapshot.ratings[p][item.content_id])
            for p, sim in neighbours
            if item.content_id in snapshot.ratings.get(p, {})
        ]
        if weighted:
            total = sum(sim for sim, _ in weighted)
            value = sum(sim * r for sim, r in weighted) / total
            return value, f"Rated {value:.2f} by {len(weighted)} similar learners"

        all_ratings = [
            ratings[item.content_id]
            for peer, ratings in sorted(snapshot.ratings.items())
            if peer != profile_id and item.content_id in ratings
        ]
        if all_ratings:
            value = self.FALLBACK_DISCOUNT * sum(all_ratings) / len(all_ratings)
            return value, f"Rated {value:.2f} by {len(all_ratings)} learners overall"
        return self.NO_DATA_SCORE, "No peer ratings yet"

    def score(self, item, profile, context):
        snapshot = self.directory.snapshot()
        return self._score_item(item, self.neighbours(profile, snapshot), snapshot, profile.learner_id)

    def score_batch(self, items, profile, context):
        snapshot = self.directory.snapshot()
        neighbours = self.neighbours(profile, snapshot)
        results = []
        for item in items:
            value, rationale = self._score_item(item, neighbours, snapshot, profile.learner_id)
            results.append(ScoringStrategyResult(self.strategy_id, item.content_id, value, rationale))
        return results


# =============================================================================
# Content affinity
# =============================================================================


class ContentAffinityStrategy(ScoringStrategy):
    """
    Topical match against mastery: favour skills the learner is weak in,
    at a difficulty just above current mastery.

    score = 0.6 * skill_gap + 0.4 * difficulty_match
    """

    strategy_id = "content_affinity"

    GAP_WEIGHT = 0.6
    DIFFICULTY_WEIGHT = 0.4
    STRETCH = 0.1

    def score(self, item, profile, context):
        mastery = profile.mastery
        if item.skills:
            levels = [mastery.get(skill, 0.0) for skill in item.skills]
        else:
            levels = list(mastery.values()) or [0.0]
        current = sum(levels) / len(levels)
        gap = 1.0 - current
        target = min(1.0, current + self.STRETCH)
        difficulty_match = 1.0 - abs(item.difficulty.level - target)
        value = self.GAP_WEIGHT * gap + self.DIFFICULTY_WEIGHT * difficulty_match

        if item.skills:
            weakest = min(item.skills, key=lambda s: (mastery.get(s, 0.0), s))
            rationale = (
                f"Builds {weakest} (mastery {mastery.get(weakest, 0.0):.2f}); "
                f"{item.difficulty.value} fits current level"
            )
        else:
            rationale = f"{item.difficulty.value} fits overall mastery {current:.2f}"
        return value, rationale


# =============================================================================
# Exploration
# =============================================================================


class ExplorationStrategy(ScoringStrategy):
    """
    Upper-confidence-bound exploration bonus.

    ucb = estimated_value + c * sqrt(ln(t) / (visits + 1))

    with ``t`` = total visits + 1 (at least 2) and an optimistic prior
    for unseen items. Scores are divided by the batch maximum so the
    most under-sampled promising item gets 1.0.
    """

    strategy_id = "exploration"

    def __init__(self, stats: ExplorationStats, c: float = 1.0, prior: float = 0.5):
        self.stats = stats
        self.c = c
        self.prior = prior

    def _ucb(self, content_id: str, snapshot) -> tuple[float, int]:
        arm = snapshot.arms.get(content_id)
        visits = arm.visits if arm else 0
        estimate = arm.mean_reward if arm else self.prior
        t = max(snapshot.total_visits + 1, 2)
        return estimate + self.c * math.sqrt(math.log(t) / (visits + 1)), visits

    @staticmethod
    def _rationale(ucb: float, visits: int) -> str:
        if visits == 0:
            return "Not tried yet; exploring"
        return f"Tried {visits} times; exploration bonus {ucb:.2f}"

    def score(self, item, profile, context):
        # No batch to normalize against: raw UCB, clamped
        ucb, visits = self._ucb(item.content_id, self.stats.snapshot())
        return min(1.0, max(0.0, ucb)), self._rationale(ucb, visits)

    def score_batch(self, items, profile, context):
        snapshot = self.stats.snapshot()
        raw = [(item, *self._ucb(item.content_id, snapshot)) for item in items]
        top = max((u for _, u, _ in raw), default=0.0)
        results = []
        for item, ucb, visits in raw:
            value = ucb / top if top > 0 else 0.0
            results.append(
                ScoringStrategyResult(self.strategy_id, item.content_id, value, self._rationale(ucb, visits))
            )
        return results


# =============================================================================
# Need compatibility
# =============================================================================


class NeedCompatibilityStrategy(ScoringStrategy):
    """
    How well an item supports the learner's detected needs.

    Each need contributes the share of its accommodations the item
    offers, weighted by confidence x severity weight (1/2/3). Long items
    are halved for learners with attention needs.
    """

    strategy_id = "need_compatibility"

    NEUTRAL_SCORE = 0.5
    ATTENTION_MAX_MINUTES = 15.0

    def score(self, item, profile, context):
        if not profile.needs:
            return self.NEUTRAL_SCORE, "No detected needs"

        total_weight = 0.0
        weighted = 0.0
        supported: list[str] = []
        for need in profile.needs:
            weight = need.confidence * need.severity.weight
            offered = [a for a in need.accommodations if supports_requirement(item, a)]
            coverage = len(offered) / len(need.accommodations) if need.accommodations else 0.0
            if need.need_type == NeedType.ADHD and item.estimated_minutes > self.ATTENTION_MAX_MINUTES:
                coverage *= 0.5
            total_weight += weight
            weighted += weight * coverage
            if offered:
                supported.append(f"{need.need_type.value}: {', '.join(offered)}")

        value = weighted / total_weight if total_weight > 0 else self.NEUTRAL_SCORE
        rationale = (
            "Supports " + "; ".join(supported) if supported
            else "Offers none of the needed accommodations"
        )
        return value, rationale


# =============================================================================
# Neurocognitive compatibility
# =============================================================================


class NeurocognitiveStrategy(ScoringStrategy):
    """
    Fit between item demands and learner capacities.

    compatibility = mean of 1 - |demand - capacity| over cognitive load,
    attention and memory. Capacities come from the signal vector; a
    high current cognitive load in the request context lowers the
    load the learner can take on.
    """

    strategy_id = "neurocognitive"

    def capacities(self, profile: LearnerProfile, context: RecommendationContext) -> dict[str, float]:
        vector = profile.vector
        load = (vector.get("processing_speed") + vector.get("working_memory")) / 2.0
        if context.cognitive_load is not None:
            load *= 1.0 - 0.5 * max(0.0, min(1.0, context.cognitive_load))
        return {
            "load": load,
            "attention": vector.get("attention_span"),
            "memory": vector.get("working_memory"),
        }

    def score(self, item, profile, context):
        caps = self.capacities(profile, context)
        parts = {
            "load": 1.0 - abs(item.cognitive_load - caps["load"]),
            "attention": 1.0 - abs(item.attention_requirement - caps["attention"]),
            "memory": 1.0 - abs(item.memory_demand - caps["memory"]),
        }
        value = sum(parts.values()) / 3.0
        weakest = min(parts, key=lambda k: (parts[k], k))
        return value, f"Neurocognitive fit {value * 100:.0f}% (weakest: {weakest})"


def default_strategies(
    peers: PeerDirectory,
    exploration: ExplorationStats,
    exploration_c: float = 1.0,
) -> list[ScoringStrategy]:
    return [
        PeerSimilarityStrategy(peers),
        ContentAffinityStrategy(),
        ExplorationStrategy(exploration, c=exploration_c),
        NeedCompatibilityStrategy(),
        NeurocognitiveStrategy(),
    ]
