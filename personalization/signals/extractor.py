"""
Signal Extractor.

Turns a learner's windowed interaction log into a normalized, versioned
LearnerSignalVector. ``build_vector`` is a pure function of the samples
and the log length; ``extract`` only adds the store read around it.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import math
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from personalization.core.errors import DataAccessError, ValidationError
from personalization.models import InteractionSample, LearnerSignalVector
from personalization.signals.features import (
    DERIVED_FEATURES,
    FeatureExtractor,
    FeatureSet,
    WeightedSample,
    default_extractors,
    derive_features,
    recency_weights,
)
from personalization.signals.store import SampleWindow, TelemetryStore

NEUTRAL_VALUE = 0.5


@dataclass
class SignalConfig:
    """Configuration for signal extraction."""

    window_size: int = 50
    recency_decay: float = 0.8
    read_timeout_seconds: float = 10.0


class SignalExtractor:
    """
    Builds LearnerSignalVectors from the telemetry store.

    Example:
        >>> extractor = SignalExtractor(store)
        >>> vector = await extractor.extract("learner-1")
        >>> vector.get("reading_speed")
        0.275
    """

    def __init__(
        self,
        store: TelemetryStore,
        extractors: list[FeatureExtractor] | None = None,
        config: SignalConfig | None = None,
    ):
        self.store = store
        self.extractors = extractors if extractors is not None else default_extractors()
        self.config = config or SignalConfig()

    @property
    def feature_names(self) -> list[str]:
        names: list[str] = []
        for extractor in self.extractors:
            names.extend(extractor.feature_names)
        names.extend(DERIVED_FEATURES)
        return names

    def default_window(self) -> SampleWindow:
        return SampleWindow(max_samples=self.config.window_size)

    async def extract(self, learner_id: str, window: SampleWindow | None = None) -> LearnerSignalVector:
        """
        Read the learner's window from the store and build the vector.

        Raises:
            DataAccessError: store failure or timeout
        """
        window = window or self.default_window()
        try:
            snapshot = await asyncio.wait_for(
                self.store.snapshot(learner_id, window),
                timeout=self.config.read_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Telemetry read timed out for {learner_id}")
            raise DataAccessError("telemetry read timed out", source="telemetry") from e

        vector = self.build_vector(learner_id, snapshot.samples, snapshot.log_length)
        logger.debug(
            f"Signal vector v{vector.version} for {learner_id}: {vector.sample_count} samples"
        )
        return vector

    def build_vector(
        self,
        learner_id: str,
        samples: Sequence[InteractionSample],
        log_length: int | None = None,
    ) -> LearnerSignalVector:
        """Pure: identical samples always give an identical vector."""
        samples = sorted(samples, key=lambda s: s.timestamp)
        version = log_length if log_length is not None else len(samples)
        names = self.feature_names

        if not samples:
            return LearnerSignalVector(
                learner_id=learner_id,
                version=version,
                features={name: NEUTRAL_VALUE for name in names},
                raw={},
                sample_count=0,
                fingerprint=_fingerprint([]),
            )

        weights = recency_weights(len(samples), self.config.recency_decay)
        weighted = [WeightedSample(s, w) for s, w in zip(samples, weights)]

        merged = FeatureSet()
        for extractor in self.extractors:
            merged.merge(extractor.extract(weighted))

        features = {name: merged.features.get(name, NEUTRAL_VALUE) for name in names}
        features.update(derive_features(merged.features))
        # Extra features from custom extractors are kept as well.
        for name, value in merged.features.items():
            features.setdefault(name, value)

        return LearnerSignalVector(
            learner_id=learner_id,
            version=version,
            features=features,
            raw={k: v for k, v in merged.raw.items() if v is not None},
            sample_count=len(samples),
            fingerprint=_fingerprint(samples),
            window_start=samples[0].timestamp,
            window_end=samples[-1].timestamp,
        )


def _fingerprint(samples: Sequence[InteractionSample]) -> str:
    payload = json.dumps([s.to_dict() for s in samples], sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# =============================================================================
# Validation
# =============================================================================


def _check_unit(value: float | None, field: str) -> None:
    if value is None:
        return
    if not math.isfinite(value) or value < 0.0 or value > 1.0:
        raise ValidationError(f"{field} must be within [0, 1], got {value}", field=field)


def _check_non_negative(value: float | None, field: str) -> None:
    if value is None:
        return
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"{field} must be a non-negative number, got {value}", field=field)


def validate_sample(learner_id: str, sample: InteractionSample) -> None:
    """
    Reject malformed telemetry before it is appended.

    Raises:
        ValidationError: identifies the offending field
    """
    if not learner_id:
        raise ValidationError("learner_id is required", field="learner_id")
    if sample.learner_id != learner_id:
        raise ValidationError(
            f"sample belongs to {sample.learner_id!r}, not {learner_id!r}", field="learner_id"
        )

    if sample.reading is not None:
        r = sample.reading
        _check_non_negative(r.speed_wpm, "reading.speed_wpm")
        _check_unit(r.accuracy, "reading.accuracy")
        _check_unit(r.comprehension, "reading.comprehension")
        for name in ("substitutions", "omissions", "insertions", "reversals", "transpositions"):
            _check_non_negative(getattr(r, name), f"reading.{name}")
    if sample.math is not None:
        m = sample.math
        _check_unit(m.accuracy, "math.accuracy")
        _check_non_negative(m.speed_ppm, "math.speed_ppm")
        for name in ("calculation_errors", "procedural_errors", "conceptual_errors", "visual_errors"):
            _check_non_negative(getattr(m, name), f"math.{name}")
    if sample.attention is not None:
        a = sample.attention
        _check_non_negative(a.span_minutes, "attention.span_minutes")
        _check_non_negative(a.response_time_mean_s, "attention.response_time_mean_s")
        _check_non_negative(a.response_time_variance, "attention.response_time_variance")
        _check_unit(a.task_completion, "attention.task_completion")
        _check_non_negative(a.help_requests, "attention.help_requests")
    if sample.sensory is not None:
        for name in ("audio", "visual", "kinesthetic"):
            _check_unit(getattr(sample.sensory, name), f"sensory.{name}")
    if sample.engagement is not None:
        _check_unit(sample.engagement, "engagement")
        if not sample.content_id:
            raise ValidationError("engagement requires content_id", field="content_id")
