"""
In-process data sources for the peer and exploration strategies.

- PeerDirectory: peer learners' feature vectors and their per-content ratings
- ExplorationStats: per-content visit counts and mean reward

Both are fed by interaction samples that carry a content outcome and
hand strategies immutable snapshots, so scoring never sees a structure
that is being updated.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class PeerSnapshot:
    features: Mapping[str, Mapping[str, float]]
    ratings: Mapping[str, Mapping[str, float]]


class PeerDirectory:
    def __init__(self) -> None:
        self._features: dict[str, dict[str, float]] = {}
        self._ratings: dict[str, dict[str, tuple[float, int]]] = {}
        self._lock = threading.Lock()

    def update_features(self, learner_id: str, features: Mapping[str, float]) -> None:
        with self._lock:
            self._features[learner_id] = dict(features)

    def record_rating(self, learner_id: str, content_id: str, rating: float) -> None:
        """Fold a rating into the learner's running mean for the item."""
        with self._lock:
            per_learner = self._ratings.setdefault(learner_id, {})
            mean, count = per_learner.get(content_id, (0.0, 0))
            count += 1
            per_learner[content_id] = (mean + (rating - mean) / count, count)

    def snapshot(self) -> PeerSnapshot:
        with self._lock:
            features = {k: MappingProxyType(dict(v)) for k, v in self._features.items()}
            ratings = {
                k: MappingProxyType({c: mean for c, (mean, _) in v.items()})
                for k, v in self._ratings.items()
            }
        return PeerSnapshot(MappingProxyType(features), MappingProxyType(ratings))


@dataclass(frozen=True)
class ArmStats:
    visits: int
    mean_reward: float


@dataclass(frozen=True)
class ExplorationSnapshot:
    arms: Mapping[str, ArmStats]
    total_visits: int


class ExplorationStats:
    def __init__(self) -> None:
        self._arms: dict[str, ArmStats] = {}
        self._total = 0
        self._lock = threading.Lock()

    def record(self, content_id: str, reward: float) -> None:
        with self._lock:
            arm = self._arms.get(content_id, ArmStats(0, 0.0))
            visits = arm.visits + 1
            self._arms[content_id] = ArmStats(visits, arm.mean_reward + (reward - arm.mean_reward) / visits)
            self._total += 1

    def snapshot(self) -> ExplorationSnapshot:
        with self._lock:
            return ExplorationSnapshot(MappingProxyType(dict(self._arms)), self._total)
