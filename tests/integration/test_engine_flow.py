"""
Integration tests for the engine: telemetry -> needs -> recommendations,
and need-aware assessment sessions.
"""

import json

import pytest

from factories import dyslexia_sample, make_sample
from personalization.core.errors import DataAccessError, SessionNotFound, ValidationError
from personalization.engine import build_engine
from personalization.models import (
    CandidateConstraints,
    InteractionSample,
    NeedType,
    ReadingMetrics,
    RecommendationContext,
    Response,
    Severity,
)
from personalization.signals import InMemoryTelemetryStore

READING = RecommendationContext(subject="reading")


class WriteOnlyTelemetryStore(InMemoryTelemetryStore):
    """Appends succeed; every read fails."""

    async def snapshot(self, learner_id, window):
        raise DataAccessError("telemetry replica unavailable", source="telemetry")


async def load_sample_telemetry(engine, data_dir):
    rows = json.loads((data_dir / "sample_telemetry.json").read_text(encoding="utf-8"))["samples"]
    for row in rows:
        sample = InteractionSample.from_dict(row)
        await engine.submit_interaction(sample.learner_id, sample)


class TestRecommendationFlow:
    @pytest.mark.asyncio
    async def test_same_state_gives_same_list(self, engine, data_dir):
        await load_sample_telemetry(engine, data_dir)

        first = await engine.get_recommendations("learner-ana", READING)
        second = await engine.get_recommendations("learner-ana", READING)

        assert first
        assert first == second

    @pytest.mark.asyncio
    async def test_recommendations_come_from_candidates(self, engine, data_dir):
        await load_sample_telemetry(engine, data_dir)
        constraints = CandidateConstraints(max_minutes=12)

        candidates = await engine.candidates.generate_candidates("learner-ana", "reading", constraints)
        recs = await engine.get_recommendations("learner-ana", READING, constraints)

        assert {r.content_id for r in recs} <= {c.content_id for c in candidates}
        assert len({r.content_id for r in recs}) == len(recs)
        assert all(0.0 <= r.fused_score <= 1.5 for r in recs)
        assert all(r.rationale for r in recs)

    @pytest.mark.asyncio
    async def test_head_is_ordered_by_score(self, engine, data_dir):
        await load_sample_telemetry(engine, data_dir)

        recs = await engine.get_recommendations("learner-cam", RecommendationContext(subject="math"))
        scores = [r.fused_score for r in recs]

        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_no_eligible_content_is_empty(self, engine):
        assert await engine.get_recommendations("learner-ana", RecommendationContext(subject="history")) == []

    @pytest.mark.asyncio
    async def test_unknown_learner_gets_neutral_recommendations(self, engine):
        recs = await engine.get_recommendations("newcomer", READING)

        assert recs
        assert all(item.content_id.startswith("read-") for item in recs)

    @pytest.mark.asyncio
    async def test_blank_learner_rejected(self, engine):
        with pytest.raises(ValidationError):
            await engine.get_recommendations(" ", READING)


class TestTelemetryAndNeeds:
    @pytest.mark.asyncio
    async def test_sample_learners(self, engine, data_dir):
        await load_sample_telemetry(engine, data_dir)

        ana = await engine.get_need_profile("learner-ana")
        ben = await engine.get_need_profile("learner-ben")
        cam = await engine.get_need_profile("learner-cam")

        assert [n.need_type for n in ana.needs] == [NeedType.DYSLEXIA]
        assert ana.needs[0].severity == Severity.MODERATE
        assert ben.has_need(NeedType.ADHD)
        assert ben.needs[0].severity == Severity.SEVERE
        assert cam.needs == []

    @pytest.mark.asyncio
    async def test_profile_cached_until_new_telemetry(self, engine):
        await engine.submit_interaction("learner-1", dyslexia_sample(offset=0))

        first = await engine.get_need_profile("learner-1")
        again = await engine.get_need_profile("learner-1")
        await engine.submit_interaction("learner-1", dyslexia_sample(offset=1))
        refreshed = await engine.get_need_profile("learner-1")

        assert again is first
        assert refreshed is not first
        assert refreshed.vector_version == first.vector_version + 1

    @pytest.mark.asyncio
    async def test_invalid_sample_is_not_logged(self, engine):
        bad = make_sample(reading=ReadingMetrics(speed_wpm=80, accuracy=2.0))

        with pytest.raises(ValidationError):
            await engine.submit_interaction("learner-1", bad)

        assert await engine.telemetry.log_length("learner-1") == 0

    @pytest.mark.asyncio
    async def test_submit_returns_log_length(self, engine):
        assert await engine.submit_interaction("learner-1", make_sample(offset=0)) == 1
        assert await engine.submit_interaction("learner-1", make_sample(offset=1)) == 2

    @pytest.mark.asyncio
    async def test_engagement_feeds_collaborators(self, engine):
        sample = make_sample(content_id="read-001", engagement=0.9)

        await engine.submit_interaction("learner-1", sample)

        assert engine.exploration.snapshot().arms["read-001"].visits == 1
        assert engine.peers.snapshot().ratings["learner-1"]["read-001"] == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_unreadable_log_after_append_still_records(self, test_settings, catalog_store):
        telemetry = WriteOnlyTelemetryStore()
        engine = build_engine(test_settings, content_store=catalog_store, telemetry_store=telemetry)
        sample = make_sample(content_id="read-001", engagement=0.7)

        length = await engine.submit_interaction("learner-1", sample)

        assert length == 1
        assert telemetry.learner_ids() == ["learner-1"]
        assert engine.exploration.snapshot().arms["read-001"].visits == 1
        assert "learner-1" not in engine.peers.snapshot().features

    def test_record_outcome(self, engine):
        engine.record_outcome("learner-1", "math-001", 0.6)

        assert engine.exploration.snapshot().arms["math-001"].mean_reward == pytest.approx(0.6)
        with pytest.raises(ValidationError) as exc:
            engine.record_outcome("learner-1", "math-001", 1.2)
        assert exc.value.field == "reward"


class TestAssessmentThroughEngine:
    @pytest.mark.asyncio
    async def test_needs_seed_starting_difficulty(self, engine, data_dir):
        await load_sample_telemetry(engine, data_dir)

        reading = await engine.start_session("learner-ana", "reading")
        math = await engine.start_session("learner-ana", "math")

        assert reading.starting_difficulty == "easy"
        assert math.starting_difficulty == "medium"

    @pytest.mark.asyncio
    async def test_full_session(self, engine, data_dir):
        rows = json.loads((data_dir / "sample_responses.json").read_text(encoding="utf-8"))["responses"]
        session = await engine.start_session("learner-cam", "math")

        outcomes = [await engine.submit_response(session.session_id, Response.from_dict(r)) for r in rows]
        results = await engine.complete_session(session.session_id)

        assert outcomes[0].next_difficulty == "hard"
        assert results.total_questions == 6
        assert results.correct_answers == 4
        assert results.score == 67
        assert results.mastery_level == "intermediate"
        assert len(results.difficulty_progression) == 6
        assert (await engine.get_session(session.session_id)).completed_at is not None

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFound):
            await engine.get_session("nope")
