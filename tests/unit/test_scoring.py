"""
Unit tests for scoring strategies and the Multi-Strategy Scorer.
"""

import math
import time

import pytest

from factories import make_item, make_vector
from personalization.core.errors import StrategyTimeout
from personalization.models import (
    DetectedNeed,
    LearnerProfile,
    NeedType,
    RecommendationContext,
    ScoringStrategyResult,
    Severity,
)
from personalization.scoring import (
    ContentAffinityStrategy,
    ExplorationStats,
    ExplorationStrategy,
    MultiStrategyScorer,
    NeedCompatibilityStrategy,
    NeurocognitiveStrategy,
    PeerDirectory,
    PeerSimilarityStrategy,
    ScorerConfig,
    ScoringStrategy,
    default_strategies,
)

CONTEXT = RecommendationContext(subject="math")


def profile(features=None, needs=None, mastery=None, learner_id="learner-1"):
    return LearnerProfile(
        learner_id=learner_id,
        vector=make_vector(learner_id, features=features),
        needs=list(needs or []),
        mastery=dict(mastery or {}),
    )


class ConstantStrategy(ScoringStrategy):
    def __init__(self, strategy_id, value):
        self.strategy_id = strategy_id
        self.value = value

    def score(self, item, profile, context):
        return self.value, f"constant {self.value}"


class RaisingStrategy(ScoringStrategy):
    strategy_id = "raising"

    def score(self, item, profile, context):
        raise RuntimeError("index not loaded")


class SlowStrategy(ScoringStrategy):
    strategy_id = "slow"

    def score(self, item, profile, context):
        time.sleep(0.5)
        return 1.0, "slow"


class PausingStrategy(ScoringStrategy):
    def __init__(self, strategy_id, pause):
        self.strategy_id = strategy_id
        self.pause = pause

    def score(self, item, profile, context):
        return 0.5, "paused"

    def score_batch(self, items, profile, context):
        time.sleep(self.pause)
        return super().score_batch(items, profile, context)


class StrayStrategy(ScoringStrategy):
    strategy_id = "stray"

    def score(self, item, profile, context):
        return 0.5, "ok"

    def score_batch(self, items, profile, context):
        results = super().score_batch(items, profile, context)
        return results + [ScoringStrategyResult(self.strategy_id, "not-a-candidate", 0.9, "stray")]


class TestPeerSimilarityStrategy:
    @pytest.fixture
    def directory(self):
        directory = PeerDirectory()
        directory.update_features("peer-a", {"reading_speed": 0.9})
        directory.update_features("peer-b", {"reading_speed": 0.1})
        directory.record_rating("peer-a", "item-1", 0.9)
        directory.record_rating("peer-b", "item-1", 0.1)
        directory.record_rating("peer-b", "item-3", 0.5)
        return directory

    def test_similar_peers_vote(self, directory):
        strategy = PeerSimilarityStrategy(directory)
        items = [make_item("item-1"), make_item("item-2"), make_item("item-3")]

        results = strategy.score_batch(items, profile({"reading_speed": 0.8}), CONTEXT)
        scores = {r.content_id: r.score for r in results}

        assert scores["item-1"] == pytest.approx(0.9)
        assert scores["item-2"] == pytest.approx(PeerSimilarityStrategy.NO_DATA_SCORE)
        assert scores["item-3"] == pytest.approx(0.8 * 0.5)

    def test_neighbours_exclude_self_and_dissimilar(self, directory):
        directory.update_features("learner-1", {"reading_speed": 0.8})
        strategy = PeerSimilarityStrategy(directory)

        neighbours = strategy.neighbours(profile({"reading_speed": 0.8}), directory.snapshot())

        assert [peer for peer, _ in neighbours] == ["peer-a"]

    def test_own_ratings_ignored(self):
        directory = PeerDirectory()
        directory.record_rating("learner-1", "item-1", 1.0)

        value, _ = PeerSimilarityStrategy(directory).score(make_item("item-1"), profile(), CONTEXT)

        assert value == pytest.approx(PeerSimilarityStrategy.NO_DATA_SCORE)

    def test_running_mean_rating(self):
        directory = PeerDirectory()
        directory.record_rating("peer-a", "item-1", 0.2)
        directory.record_rating("peer-a", "item-1", 0.6)

        assert directory.snapshot().ratings["peer-a"]["item-1"] == pytest.approx(0.4)


class TestContentAffinityStrategy:
    def test_weak_skill_at_stretch_difficulty(self):
        item = make_item("item-1", skills=("counting",))

        value, rationale = ContentAffinityStrategy().score(item, profile(mastery={"counting": 0.2}), CONTEXT)

        assert value == pytest.approx(0.6 * 0.8 + 0.4 * 0.7)
        assert "counting" in rationale

    def test_mastered_skill_scores_lower(self):
        strategy = ContentAffinityStrategy()
        item = make_item("item-1", skills=("counting",))

        weak, _ = strategy.score(item, profile(mastery={"counting": 0.2}), CONTEXT)
        strong, _ = strategy.score(item, profile(mastery={"counting": 0.95}), CONTEXT)

        assert weak > strong


class TestExplorationStrategy:
    def test_best_arm_normalized_to_one(self):
        stats = ExplorationStats()
        stats.record("item-a", 1.0)
        stats.record("item-a", 1.0)
        strategy = ExplorationStrategy(stats)

        results = strategy.score_batch([make_item("item-a"), make_item("item-b")], profile(), CONTEXT)
        by_id = {r.content_id: r for r in results}

        assert max(r.score for r in results) == pytest.approx(1.0)
        assert all(0.0 <= r.score <= 1.0 for r in results)
        assert by_id["item-b"].rationale == "Not tried yet; exploring"
        assert by_id["item-a"].rationale.startswith("Tried 2 times")

    def test_visits_reduce_bonus(self):
        stats = ExplorationStats()
        for _ in range(20):
            stats.record("item-a", 0.5)
        strategy = ExplorationStrategy(stats)

        results = strategy.score_batch([make_item("item-a"), make_item("item-b")], profile(), CONTEXT)
        by_id = {r.content_id: r.score for r in results}

        assert by_id["item-b"] > by_id["item-a"]

    def test_single_item_score_is_raw_ucb(self):
        stats = ExplorationStats()
        for _ in range(40):
            stats.record("item-a", 0.1)
        strategy = ExplorationStrategy(stats)

        value, rationale = strategy.score(make_item("item-a"), profile(), CONTEXT)

        assert value == pytest.approx(0.1 + math.sqrt(math.log(41) / 41))
        assert value < 1.0
        assert rationale.startswith("Tried 40 times")

    def test_single_unseen_item_is_clamped(self):
        strategy = ExplorationStrategy(ExplorationStats())

        value, rationale = strategy.score(make_item("item-a"), profile(), CONTEXT)

        assert value == 1.0
        assert rationale == "Not tried yet; exploring"


class TestNeedCompatibilityStrategy:
    DYSLEXIA = DetectedNeed(
        NeedType.DYSLEXIA,
        Severity.MODERATE,
        0.8,
        accommodations=["audio", "dyslexia_font", "text_to_speech", "extended_time"],
    )

    def test_no_needs_is_neutral(self):
        value, rationale = NeedCompatibilityStrategy().score(make_item("item-1"), profile(), CONTEXT)

        assert value == 0.5
        assert rationale == "No detected needs"

    def test_accommodation_coverage(self):
        strategy = NeedCompatibilityStrategy()
        supportive = make_item("item-1", accessibility_features=("audio", "dyslexia_font"))
        plain = make_item("item-2")

        supported, rationale = strategy.score(supportive, profile(needs=[self.DYSLEXIA]), CONTEXT)
        unsupported, _ = strategy.score(plain, profile(needs=[self.DYSLEXIA]), CONTEXT)

        assert supported == pytest.approx(0.5)
        assert "DYSLEXIA" in rationale
        assert unsupported == 0.0

    def test_long_items_halved_for_attention_needs(self):
        adhd = DetectedNeed(NeedType.ADHD, Severity.MILD, 0.75, accommodations=["interactive"])
        strategy = NeedCompatibilityStrategy()

        short, _ = strategy.score(
            make_item("item-1", estimated_minutes=10, accessibility_features=("interactive",)),
            profile(needs=[adhd]),
            CONTEXT,
        )
        long, _ = strategy.score(
            make_item("item-2", estimated_minutes=40, accessibility_features=("interactive",)),
            profile(needs=[adhd]),
            CONTEXT,
        )

        assert short == pytest.approx(1.0)
        assert long == pytest.approx(0.5)


class TestNeurocognitiveStrategy:
    def test_matched_demands_score_high(self):
        value, _ = NeurocognitiveStrategy().score(make_item("item-1"), profile(), CONTEXT)

        assert value == pytest.approx(1.0)

    def test_current_load_reduces_capacity(self):
        context = RecommendationContext(subject="math", cognitive_load=1.0)

        value, rationale = NeurocognitiveStrategy().score(make_item("item-1"), profile(), context)

        assert value == pytest.approx((0.75 + 1.0 + 1.0) / 3)
        assert "weakest: load" in rationale


class TestMultiStrategyScorer:
    ITEMS = [make_item("item-2"), make_item("item-1")]

    @pytest.mark.asyncio
    async def test_results_per_strategy(self):
        scorer = MultiStrategyScorer([ConstantStrategy("a", 0.4), ConstantStrategy("b", 0.9)])

        batch = await scorer.score(self.ITEMS, profile(), CONTEXT)

        assert batch.succeeded == ["a", "b"]
        assert batch.failures == {}
        assert [r.content_id for r in batch.results["a"]] == ["item-1", "item-2"]
        assert all(r.score == 0.9 for r in batch.results["b"])

    @pytest.mark.asyncio
    async def test_raising_strategy_is_omitted(self):
        scorer = MultiStrategyScorer([ConstantStrategy("a", 0.4), RaisingStrategy()])

        batch = await scorer.score(self.ITEMS, profile(), CONTEXT)

        assert batch.succeeded == ["a"]
        assert "raising" in batch.failures
        assert batch.as_lists()[1] == []

    @pytest.mark.asyncio
    async def test_slow_strategy_times_out(self):
        scorer = MultiStrategyScorer(
            [ConstantStrategy("a", 0.4), SlowStrategy()],
            ScorerConfig(timeout_seconds=0.05),
        )

        batch = await scorer.score(self.ITEMS, profile(), CONTEXT)

        assert batch.succeeded == ["a"]
        assert isinstance(batch.failures["slow"], StrategyTimeout)

    @pytest.mark.asyncio
    async def test_stuck_strategy_does_not_starve_later_requests(self):
        scorer = MultiStrategyScorer(
            [SlowStrategy(), ConstantStrategy("fast", 0.6)],
            ScorerConfig(timeout_seconds=0.1, max_concurrency=2),
        )

        for _ in range(3):
            batch = await scorer.score(self.ITEMS, profile(), CONTEXT)
            assert batch.succeeded == ["fast"]
            assert list(batch.failures) == ["slow"]

    @pytest.mark.asyncio
    async def test_queued_strategy_gets_full_budget(self):
        scorer = MultiStrategyScorer(
            [PausingStrategy("first", 0.2), PausingStrategy("second", 0.2)],
            ScorerConfig(timeout_seconds=0.3, max_concurrency=1),
        )

        batch = await scorer.score(self.ITEMS, profile(), CONTEXT)

        assert batch.succeeded == ["first", "second"]
        assert batch.failures == {}

    @pytest.mark.asyncio
    async def test_non_finite_score_is_failure(self):
        scorer = MultiStrategyScorer([ConstantStrategy("nan", math.nan), ConstantStrategy("a", 0.4)])

        batch = await scorer.score(self.ITEMS, profile(), CONTEXT)

        assert "nan" in batch.failures
        assert batch.succeeded == ["a"]

    @pytest.mark.asyncio
    async def test_scores_clamped_and_strays_dropped(self):
        scorer = MultiStrategyScorer([ConstantStrategy("high", 1.7), StrayStrategy()])

        batch = await scorer.score(self.ITEMS, profile(), CONTEXT)

        assert all(r.score == 1.0 for r in batch.results["high"])
        assert [r.content_id for r in batch.results["stray"]] == ["item-1", "item-2"]

    @pytest.mark.asyncio
    async def test_empty_candidates(self):
        scorer = MultiStrategyScorer([ConstantStrategy("a", 0.4)])

        batch = await scorer.score([], profile(), CONTEXT)

        assert batch.results == {}

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            MultiStrategyScorer([ConstantStrategy("a", 0.1), ConstantStrategy("a", 0.2)])

    @pytest.mark.asyncio
    async def test_default_strategies_stay_in_range(self):
        scorer = MultiStrategyScorer(default_strategies(PeerDirectory(), ExplorationStats()))
        items = [make_item(f"item-{i}", skills=("counting",)) for i in range(5)]

        batch = await scorer.score(items, profile(mastery={"counting": 0.4}), CONTEXT)

        assert batch.failures == {}
        for results in batch.results.values():
            assert len(results) == 5
            assert all(0.0 <= r.score <= 1.0 for r in results)
