"""
Unit tests for telemetry stores, feature extraction and the Signal Extractor.
"""

import asyncio

import pytest

from factories import make_sample
from personalization.core.errors import DataAccessError, ValidationError
from personalization.models import AttentionMetrics, MathMetrics, ReadingMetrics, SensoryPreferences
from personalization.signals import (
    InMemoryTelemetryStore,
    JsonlTelemetryStore,
    SampleWindow,
    SignalConfig,
    SignalExtractor,
    TelemetrySnapshot,
    TelemetryStore,
    validate_sample,
)
from personalization.signals.features import recency_weights


class SlowStore(TelemetryStore):
    async def append(self, sample):
        return 1

    async def snapshot(self, learner_id, window):
        await asyncio.sleep(5)
        return TelemetrySnapshot(samples=(), log_length=0)


class TestSampleWindow:
    def test_keeps_newest_samples(self):
        samples = [make_sample(offset=i) for i in range(5)]

        selected = SampleWindow(max_samples=2).select(samples)

        assert selected == samples[-2:]

    def test_time_bounds(self):
        samples = [make_sample(offset=i) for i in range(5)]
        window = SampleWindow(max_samples=10, since=samples[1].timestamp, until=samples[3].timestamp)

        assert window.select(samples) == samples[1:4]

    def test_zero_size_window_is_empty(self):
        assert SampleWindow(max_samples=0).select([make_sample()]) == []


class TestTelemetryStores:
    @pytest.mark.asyncio
    async def test_in_memory_append_returns_log_length(self):
        store = InMemoryTelemetryStore()

        assert await store.append(make_sample(offset=0)) == 1
        assert await store.append(make_sample(offset=1)) == 2
        assert await store.log_length("learner-1") == 2
        assert await store.log_length("someone-else") == 0

    @pytest.mark.asyncio
    async def test_jsonl_round_trips_samples(self, tmp_path):
        store = JsonlTelemetryStore(tmp_path)
        sample = make_sample(
            reading=ReadingMetrics(speed_wpm=90, accuracy=0.9, reversals=2),
            context_tags=("home",),
            content_id="read-001",
            engagement=0.7,
        )

        await store.append(sample)
        snapshot = await store.snapshot("learner-1", SampleWindow())

        assert snapshot.log_length == 1
        assert snapshot.samples[0] == sample
        assert (tmp_path / "learner-1.jsonl").exists()

    @pytest.mark.asyncio
    async def test_jsonl_corrupted_log_is_data_access_error(self, tmp_path):
        (tmp_path / "learner-1.jsonl").write_text("{not json\n", encoding="utf-8")
        store = JsonlTelemetryStore(tmp_path)

        with pytest.raises(DataAccessError):
            await store.snapshot("learner-1", SampleWindow())


class TestFeatureExtraction:
    def test_recency_weights_newest_is_one(self):
        weights = recency_weights(3, 0.5)

        assert weights == [0.25, 0.5, 1.0]

    def test_reading_features_are_normalized(self):
        extractor = SignalExtractor(InMemoryTelemetryStore())
        sample = make_sample(reading=ReadingMetrics(speed_wpm=100, accuracy=0.9, reversals=4))

        vector = extractor.build_vector("learner-1", [sample])

        assert vector.get("reading_speed") == pytest.approx(0.5)
        assert vector.get("reading_accuracy") == pytest.approx(0.9)
        assert vector.get("reading_errors") == pytest.approx(0.2)
        assert vector.get_raw("reversals") == pytest.approx(4)

    def test_speed_above_cap_is_clamped(self):
        extractor = SignalExtractor(InMemoryTelemetryStore())
        sample = make_sample(reading=ReadingMetrics(speed_wpm=400, accuracy=1.0))

        vector = extractor.build_vector("learner-1", [sample])

        assert vector.get("reading_speed") == 1.0

    def test_unobserved_domains_stay_neutral(self):
        extractor = SignalExtractor(InMemoryTelemetryStore())
        sample = make_sample(math=MathMetrics(accuracy=0.6, speed_ppm=2))

        vector = extractor.build_vector("learner-1", [sample])

        assert vector.get("math_speed") == pytest.approx(0.2)
        assert vector.get("attention_span") == 0.5
        assert vector.get_raw("reading_speed_wpm") is None

    def test_newer_samples_weigh_more(self):
        extractor = SignalExtractor(InMemoryTelemetryStore(), config=SignalConfig(recency_decay=0.5))
        samples = [
            make_sample(offset=0, attention=AttentionMetrics(span_minutes=10)),
            make_sample(offset=1, attention=AttentionMetrics(span_minutes=40)),
        ]

        vector = extractor.build_vector("learner-1", samples)

        # (10 * 0.5 + 40 * 1.0) / 1.5 = 30 minutes
        assert vector.get_raw("attention_span_minutes") == pytest.approx(30.0)
        assert vector.get("attention_span") == pytest.approx(0.5)

    def test_derived_features_present(self):
        extractor = SignalExtractor(InMemoryTelemetryStore())
        sample = make_sample(sensory=SensoryPreferences(audio=0.9, visual=0.2, kinesthetic=0.4))

        vector = extractor.build_vector("learner-1", [sample])

        for name in ("processing_speed", "cognitive_flexibility", "working_memory"):
            assert 0.0 <= vector.get(name) <= 1.0
        assert vector.get("audio_preference") == pytest.approx(0.9)


class TestSignalExtractor:
    @pytest.mark.asyncio
    async def test_empty_window_gives_neutral_vector(self):
        extractor = SignalExtractor(InMemoryTelemetryStore())

        vector = await extractor.extract("nobody")

        assert vector.is_neutral
        assert vector.raw == {}
        assert set(vector.features.values()) == {0.5}
        assert set(extractor.feature_names) <= set(vector.features)

    @pytest.mark.asyncio
    async def test_same_samples_give_same_vector(self):
        store = InMemoryTelemetryStore()
        for i in range(3):
            await store.append(make_sample(offset=i, reading=ReadingMetrics(speed_wpm=80 + i, accuracy=0.9)))
        extractor = SignalExtractor(store)

        first = await extractor.extract("learner-1")
        second = await extractor.extract("learner-1")

        assert first == second
        assert first.fingerprint == second.fingerprint

    @pytest.mark.asyncio
    async def test_version_follows_log_length(self):
        store = InMemoryTelemetryStore()
        extractor = SignalExtractor(store, config=SignalConfig(window_size=2))
        for i in range(4):
            await store.append(make_sample(offset=i, math=MathMetrics(accuracy=0.8, speed_ppm=5)))

        vector = await extractor.extract("learner-1")

        assert vector.version == 4
        assert vector.sample_count == 2

    @pytest.mark.asyncio
    async def test_store_timeout_is_data_access_error(self):
        extractor = SignalExtractor(SlowStore(), config=SignalConfig(read_timeout_seconds=0.05))

        with pytest.raises(DataAccessError):
            await extractor.extract("learner-1")


class TestValidateSample:
    def test_accepts_valid_sample(self):
        validate_sample("learner-1", make_sample(reading=ReadingMetrics(speed_wpm=90, accuracy=0.9)))

    def test_rejects_foreign_sample(self):
        with pytest.raises(ValidationError) as exc:
            validate_sample("learner-2", make_sample("learner-1"))
        assert exc.value.field == "learner_id"

    def test_rejects_out_of_range_accuracy(self):
        with pytest.raises(ValidationError) as exc:
            validate_sample("learner-1", make_sample(reading=ReadingMetrics(speed_wpm=90, accuracy=1.4)))
        assert exc.value.field == "reading.accuracy"

    def test_rejects_negative_span(self):
        with pytest.raises(ValidationError):
            validate_sample("learner-1", make_sample(attention=AttentionMetrics(span_minutes=-1)))

    def test_engagement_requires_content_id(self):
        with pytest.raises(ValidationError) as exc:
            validate_sample("learner-1", make_sample(engagement=0.5))
        assert exc.value.field == "content_id"
