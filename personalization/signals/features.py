"""
Feature extractors.

Each extractor reads one telemetry domain from recency-weighted samples
and returns normalized features in [0, 1] plus the aggregated raw
metrics. Samples that did not observe the domain are skipped; a domain
observed by no sample contributes nothing (the signal extractor fills
the neutral 0.5).

Scaling constants:
    reading speed        / 200 wpm
    reading errors       / 20 per sample
    math speed           / 10 problems per minute
    attention span       / 60 minutes
    response time mean   / 60 seconds
    response variance    / 25
    help requests        / 20 per sample
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from personalization.models import InteractionSample

READING_SPEED_CAP_WPM = 200.0
READING_ERRORS_CAP = 20.0
MATH_SPEED_CAP_PPM = 10.0
ATTENTION_SPAN_CAP_MIN = 60.0
RESPONSE_TIME_CAP_S = 60.0
RESPONSE_VARIANCE_CAP = 25.0
HELP_REQUESTS_CAP = 20.0

T = TypeVar("T")


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class WeightedSample:
    sample: InteractionSample
    weight: float


@dataclass
class FeatureSet:
    features: dict[str, float] = field(default_factory=dict)
    raw: dict[str, float] = field(default_factory=dict)

    def merge(self, other: "FeatureSet") -> None:
        self.features.update(other.features)
        self.raw.update(other.raw)


def recency_weights(count: int, decay: float) -> list[float]:
    """Weights for ``count`` samples ordered oldest first; the newest gets 1.0."""
    return [decay ** (count - 1 - i) for i in range(count)]


def weighted_mean(pairs: Sequence[tuple[float, float]]) -> float:
    total = sum(w for _, w in pairs)
    if total <= 0:
        return sum(v for v, _ in pairs) / len(pairs)
    return sum(v * w for v, w in pairs) / total


class FeatureExtractor(ABC):
    """Capability: compute a FeatureSet from weighted samples."""

    name: str = "base"
    feature_names: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, samples: Sequence[WeightedSample]) -> FeatureSet:
        ...

    @staticmethod
    def _observed(
        samples: Sequence[WeightedSample],
        block: Callable[[InteractionSample], T | None],
    ) -> list[tuple[T, float]]:
        found = []
        for ws in samples:
            value = block(ws.sample)
            if value is not None:
                found.append((value, ws.weight))
        return found

    @staticmethod
    def _aggregate(observed: list[tuple[T, float]], metric: Callable[[T], float | None]) -> float | None:
        pairs = []
        for block, weight in observed:
            value = metric(block)
            if value is not None:
                pairs.append((float(value), weight))
        return weighted_mean(pairs) if pairs else None


class ReadingFeatureExtractor(FeatureExtractor):
    name = "reading"
    feature_names = ("reading_speed", "reading_accuracy", "reading_comprehension", "reading_errors")

    def extract(self, samples: Sequence[WeightedSample]) -> FeatureSet:
        observed = self._observed(samples, lambda s: s.reading)
        result = FeatureSet()
        if not observed:
            return result

        wpm = self._aggregate(observed, lambda r: r.speed_wpm)
        accuracy = self._aggregate(observed, lambda r: r.accuracy)
        comprehension = self._aggregate(observed, lambda r: r.comprehension)
        errors = self._aggregate(observed, lambda r: r.total_errors)

        result.raw["reading_speed_wpm"] = wpm
        result.raw["reading_accuracy"] = accuracy
        for counter in ("substitutions", "omissions", "insertions", "reversals", "transpositions"):
            result.raw[counter] = self._aggregate(observed, lambda r, c=counter: getattr(r, c))
        result.features["reading_speed"] = clamp01(wpm / READING_SPEED_CAP_WPM)
        result.features["reading_accuracy"] = clamp01(accuracy)
        result.features["reading_errors"] = clamp01(errors / READING_ERRORS_CAP)
        if comprehension is not None:
            result.raw["reading_comprehension"] = comprehension
            result.features["reading_comprehension"] = clamp01(comprehension)
        return result


class MathFeatureExtractor(FeatureExtractor):
    name = "math"
    feature_names = ("math_accuracy", "math_speed", "math_errors")

    def extract(self, samples: Sequence[WeightedSample]) -> FeatureSet:
        observed = self._observed(samples, lambda s: s.math)
        result = FeatureSet()
        if not observed:
            return result

        accuracy = self._aggregate(observed, lambda m: m.accuracy)
        speed = self._aggregate(observed, lambda m: m.speed_ppm)
        result.raw["math_accuracy"] = accuracy
        result.raw["math_speed_ppm"] = speed
        total_errors = 0.0
        for counter in ("calculation_errors", "procedural_errors", "conceptual_errors", "visual_errors"):
            value = self._aggregate(observed, lambda m, c=counter: getattr(m, c))
            result.raw[counter] = value
            total_errors += value
        result.features["math_accuracy"] = clamp01(accuracy)
        result.features["math_speed"] = clamp01(speed / MATH_SPEED_CAP_PPM)
        result.features["math_errors"] = clamp01(total_errors / READING_ERRORS_CAP)
        return result


class AttentionFeatureExtractor(FeatureExtractor):
    name = "attention"
    feature_names = (
        "attention_span",
        "response_time",
        "response_variability",
        "task_completion",
        "help_seeking",
    )

    def extract(self, samples: Sequence[WeightedSample]) -> FeatureSet:
        observed = self._observed(samples, lambda s: s.attention)
        result = FeatureSet()
        if not observed:
            return result

        span = self._aggregate(observed, lambda a: a.span_minutes)
        rt_mean = self._aggregate(observed, lambda a: a.response_time_mean_s)
        rt_var = self._aggregate(observed, lambda a: a.response_time_variance)
        completion = self._aggregate(observed, lambda a: a.task_completion)
        help_requests = self._aggregate(observed, lambda a: a.help_requests)

        result.raw.update(
            {
                "attention_span_minutes": span,
                "response_time_mean_s": rt_mean,
                "response_time_variance": rt_var,
                "response_time_outliers": self._aggregate(observed, lambda a: a.response_time_outliers),
                "task_completion": completion,
                "help_requests": help_requests,
                "session_minutes": self._aggregate(observed, lambda a: a.session_minutes),
                "breaks": self._aggregate(observed, lambda a: a.breaks),
            }
        )
        result.features["attention_span"] = clamp01(span / ATTENTION_SPAN_CAP_MIN)
        result.features["response_time"] = clamp01(rt_mean / RESPONSE_TIME_CAP_S)
        result.features["response_variability"] = clamp01(rt_var / RESPONSE_VARIANCE_CAP)
        result.features["task_completion"] = clamp01(completion)
        result.features["help_seeking"] = clamp01(help_requests / HELP_REQUESTS_CAP)
        return result


class SensoryFeatureExtractor(FeatureExtractor):
    name = "sensory"
    feature_names = ("audio_preference", "visual_preference", "kinesthetic_preference")

    def extract(self, samples: Sequence[WeightedSample]) -> FeatureSet:
        observed = self._observed(samples, lambda s: s.sensory)
        result = FeatureSet()
        if not observed:
            return result

        for attr, name in (
            ("audio", "audio_preference"),
            ("visual", "visual_preference"),
            ("kinesthetic", "kinesthetic_preference"),
        ):
            value = self._aggregate(observed, lambda p, a=attr: getattr(p, a))
            result.raw[name] = value
            result.features[name] = clamp01(value)
        return result


DERIVED_FEATURES = ("processing_speed", "cognitive_flexibility", "working_memory")


def derive_features(features: dict[str, float]) -> dict[str, float]:
    """Composite features computed from the per-domain ones (missing inputs count as 0.5)."""
    get = lambda name: features.get(name, 0.5)  # noqa: E731
    return {
        "processing_speed": clamp01(
            (get("reading_speed") + get("math_speed") + (1.0 - get("response_time"))) / 3.0
        ),
        "cognitive_flexibility": clamp01(
            0.5 * get("task_completion") + 0.5 * (1.0 - get("response_variability"))
        ),
        "working_memory": clamp01((get("reading_accuracy") + get("math_accuracy")) / 2.0),
    }


def default_extractors() -> list[FeatureExtractor]:
    return [
        ReadingFeatureExtractor(),
        MathFeatureExtractor(),
        AttentionFeatureExtractor(),
        SensoryFeatureExtractor(),
    ]
