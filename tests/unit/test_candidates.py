"""
Unit tests for the Candidate Generator.
"""

import asyncio

import pytest

from factories import make_item
from personalization.content import CandidateConfig, CandidateGenerator, InMemoryContentStore
from personalization.core.errors import DataAccessError
from personalization.models import CandidateConstraints, ContentDifficulty


class CountingStore(InMemoryContentStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.content_calls = 0

    async def get_eligible_content(self, learner_id, subject, constraints):
        self.content_calls += 1
        return await super().get_eligible_content(learner_id, subject, constraints)


class HangingStore(InMemoryContentStore):
    async def get_eligible_content(self, learner_id, subject, constraints):
        await asyncio.sleep(5)
        return []


@pytest.fixture
def store():
    return CountingStore(
        [
            make_item("m-3", skills=("fractions",), prerequisites=("counting",)),
            make_item("m-1", skills=("counting",)),
            make_item("m-2", content_type="video", estimated_minutes=50),
            make_item("m-4", difficulty=ContentDifficulty.ADVANCED, prerequisites=("fractions",)),
            make_item("r-1", subject="reading"),
            make_item("m-5", accessibility_score=0.2),
        ],
        mastery={"learner-1": {"counting": 0.9, "fractions": 0.3}},
    )


class TestCandidateGenerator:
    @pytest.mark.asyncio
    async def test_prerequisites_and_subject(self, store):
        generator = CandidateGenerator(store)

        candidates = await generator.generate_candidates("learner-1", "math")

        # m-4 needs fractions (0.3 < 0.65); m-5 is below the accessibility floor
        assert [c.content_id for c in candidates] == ["m-1", "m-2", "m-3"]

    @pytest.mark.asyncio
    async def test_unknown_learner_only_gets_items_without_prerequisites(self, store):
        generator = CandidateGenerator(store)

        candidates = await generator.generate_candidates("learner-2", "math")

        assert [c.content_id for c in candidates] == ["m-1", "m-2"]

    @pytest.mark.asyncio
    async def test_constraints_are_hard_filters(self, store):
        generator = CandidateGenerator(store)
        constraints = CandidateConstraints(max_minutes=45, exclude_content_ids=("m-1",))

        candidates = await generator.generate_candidates("learner-1", "math", constraints)

        assert [c.content_id for c in candidates] == ["m-3"]

    @pytest.mark.asyncio
    async def test_no_match_is_empty(self, store):
        generator = CandidateGenerator(store)

        assert await generator.generate_candidates("learner-1", "history") == []

    @pytest.mark.asyncio
    async def test_limit_applies_after_sorting(self, store):
        generator = CandidateGenerator(store, CandidateConfig(candidate_limit=2))

        candidates = await generator.generate_candidates("learner-1", "math")

        assert [c.content_id for c in candidates] == ["m-1", "m-2"]

    @pytest.mark.asyncio
    async def test_results_are_cached_until_invalidated(self, store):
        generator = CandidateGenerator(store)

        await generator.generate_candidates("learner-1", "math")
        await generator.generate_candidates("learner-1", "MATH")
        assert store.content_calls == 1

        store.set_mastery("learner-1", "fractions", 0.9)
        generator.invalidate()
        candidates = await generator.generate_candidates("learner-1", "math")

        assert store.content_calls == 2
        assert "m-4" in [c.content_id for c in candidates]

    @pytest.mark.asyncio
    async def test_mastery_is_copied(self, store):
        generator = CandidateGenerator(store)

        mastery = await generator.get_mastery("learner-1")
        mastery["counting"] = 0.0

        assert (await generator.get_mastery("learner-1"))["counting"] == 0.9

    @pytest.mark.asyncio
    async def test_store_timeout_is_data_access_error(self):
        generator = CandidateGenerator(HangingStore(), CandidateConfig(store_timeout_seconds=0.05))

        with pytest.raises(DataAccessError):
            await generator.generate_candidates("learner-1", "math")
