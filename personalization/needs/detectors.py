"""
Need detectors.

A detector maps a LearnerSignalVector to zero or more DetectedNeeds.
Two implementations:
- RuleBasedDetector: fixed threshold checks over aggregated raw metrics
- LinearNeedDetector: logistic model over normalized features (numpy)

Rule severity is the worse of two readings: how far the key metric sits
below its threshold (score/threshold > 0.8 mild, > 0.6 moderate, else
severe) and how many indicators fired (1 mild, 2 moderate, 3+ severe).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

from personalization.models import DetectedNeed, LearnerSignalVector, NeedType, Severity
from personalization.needs.guidance import accommodations_for, recommendations_for


class Detector(ABC):
    """Capability: detect(vector) -> DetectedNeed[]."""

    detector_id: str = "detector"

    @abstractmethod
    def detect(self, vector: LearnerSignalVector) -> list[DetectedNeed]:
        ...


# =============================================================================
# Rule-based detection
# =============================================================================


def ratio_severity(score: float, threshold: float) -> Severity:
    ratio = score / threshold if threshold else 1.0
    if ratio > 0.8:
        return Severity.MILD
    if ratio > 0.6:
        return Severity.MODERATE
    return Severity.SEVERE


def indicator_severity(count: int) -> Severity:
    return Severity.from_rank(count - 1)


class _Metrics:
    """Read-only view of a vector's raw metrics and normalized features."""

    def __init__(self, vector: LearnerSignalVector):
        self.vector = vector

    def raw(self, name: str) -> float | None:
        return self.vector.get_raw(name)

    def has(self, *names: str) -> bool:
        return all(self.vector.get_raw(n) is not None for n in names)

    def feature(self, name: str) -> float:
        return self.vector.get(name)


@dataclass
class Indicator:
    check: Callable[[_Metrics], bool]
    describe: Callable[[_Metrics], str]


@dataclass
class NeedRule:
    """One threshold rule. ``requires`` lists raw metrics that must be observed."""

    need_type: NeedType
    requires: tuple[str, ...]
    trigger: Callable[[_Metrics], bool]
    confidence: float
    indicators: list[Indicator] = field(default_factory=list)
    severity_metric: Callable[[_Metrics], float] | None = None
    severity_threshold: float = 1.0
    fixed_evidence: str | None = None

    def evaluate(self, metrics: _Metrics) -> DetectedNeed | None:
        if not metrics.has(*self.requires) or not self.trigger(metrics):
            return None

        if self.fixed_evidence is not None:
            evidence = [self.fixed_evidence]
            severity = Severity.MILD
        else:
            evidence = [ind.describe(metrics) for ind in self.indicators if ind.check(metrics)]
            if not evidence:
                return None
            severity = indicator_severity(len(evidence))
            if self.severity_metric is not None:
                severity = Severity.highest(
                    [severity, ratio_severity(self.severity_metric(metrics), self.severity_threshold)]
                )

        return DetectedNeed(
            need_type=self.need_type,
            severity=severity,
            confidence=self.confidence,
            evidence=evidence,
            recommendations=recommendations_for(self.need_type),
            accommodations=accommodations_for(self.need_type),
        )


def default_rules() -> list[NeedRule]:
    return [
        NeedRule(
            need_type=NeedType.DYSLEXIA,
            requires=("reading_speed_wpm", "reading_accuracy"),
            trigger=lambda m: m.raw("reading_speed_wpm") < 80 or m.raw("reading_accuracy") < 0.85,
            confidence=0.8,
            indicators=[
                Indicator(
                    lambda m: m.raw("reversals") > 5,
                    lambda m: f"Frequent letter reversals ({m.raw('reversals'):.1f} per session)",
                ),
                Indicator(
                    lambda m: m.raw("transpositions") > 3,
                    lambda m: f"Letter transpositions ({m.raw('transpositions'):.1f} per session)",
                ),
                Indicator(
                    lambda m: m.raw("reading_speed_wpm") < 60,
                    lambda m: f"Very slow reading speed ({m.raw('reading_speed_wpm'):.0f} wpm)",
                ),
            ],
            severity_metric=lambda m: m.raw("reading_accuracy"),
            severity_threshold=0.85,
        ),
        NeedRule(
            need_type=NeedType.ADHD,
            requires=("attention_span_minutes", "response_time_variance"),
            trigger=lambda m: m.raw("attention_span_minutes") < 10 or m.raw("response_time_variance") > 5,
            confidence=0.75,
            indicators=[
                Indicator(
                    lambda m: m.raw("attention_span_minutes") < 5,
                    lambda m: f"Very short attention span ({m.raw('attention_span_minutes'):.1f} min)",
                ),
                Indicator(
                    lambda m: m.raw("response_time_variance") > 10,
                    lambda m: f"Highly variable response times (variance {m.raw('response_time_variance'):.1f})",
                ),
                Indicator(
                    lambda m: m.raw("help_requests") > 10,
                    lambda m: f"Frequent help requests ({m.raw('help_requests'):.0f})",
                ),
            ],
            severity_metric=lambda m: m.raw("attention_span_minutes"),
            severity_threshold=15.0,
        ),
        NeedRule(
            need_type=NeedType.DYSCALCULIA,
            requires=("math_accuracy", "math_speed_ppm"),
            trigger=lambda m: m.raw("math_accuracy") < 0.7 or m.feature("math_speed") < 0.5,
            confidence=0.8,
            indicators=[
                Indicator(
                    lambda m: m.raw("calculation_errors") > 8,
                    lambda m: f"Frequent calculation errors ({m.raw('calculation_errors'):.0f})",
                ),
                Indicator(
                    lambda m: m.raw("conceptual_errors") > 5,
                    lambda m: f"Difficulty with math concepts ({m.raw('conceptual_errors'):.0f} conceptual errors)",
                ),
                Indicator(
                    lambda m: m.feature("math_speed") < 0.3,
                    lambda m: f"Very slow problem solving ({m.raw('math_speed_ppm'):.1f} problems/min)",
                ),
            ],
            severity_metric=lambda m: m.raw("math_accuracy"),
            severity_threshold=0.7,
        ),
        NeedRule(
            need_type=NeedType.LANGUAGE_DELAY,
            requires=("reading_comprehension", "reading_accuracy"),
            trigger=lambda m: m.raw("reading_comprehension") < 0.6 and m.raw("reading_accuracy") >= 0.85,
            confidence=0.7,
            indicators=[
                Indicator(
                    lambda m: m.raw("reading_comprehension") < 0.4,
                    lambda m: f"Low comprehension despite accurate decoding ({m.raw('reading_comprehension'):.2f})",
                ),
                Indicator(
                    lambda m: (m.raw("help_requests") or 0) > 5,
                    lambda m: f"Frequent help requests ({m.raw('help_requests'):.0f})",
                ),
            ],
            severity_metric=lambda m: m.raw("reading_comprehension"),
            severity_threshold=0.6,
        ),
        NeedRule(
            need_type=NeedType.AUDITORY_PROCESSING,
            requires=("audio_preference",),
            trigger=lambda m: m.raw("audio_preference") > 0.8,
            confidence=0.7,
            fixed_evidence="Strong preference for auditory content",
        ),
        NeedRule(
            need_type=NeedType.VISUAL_PROCESSING,
            requires=("visual_preference",),
            trigger=lambda m: m.raw("visual_preference") > 0.8,
            confidence=0.7,
            fixed_evidence="Strong preference for visual content",
        ),
    ]


class RuleBasedDetector(Detector):
    """Runs every NeedRule whose metrics were observed."""

    detector_id = "rules"

    def __init__(self, rules: list[NeedRule] | None = None):
        self.rules = rules if rules is not None else default_rules()

    def detect(self, vector: LearnerSignalVector) -> list[DetectedNeed]:
        metrics = _Metrics(vector)
        needs = []
        for rule in self.rules:
            need = rule.evaluate(metrics)
            if need is not None:
                needs.append(need)
        return needs


# =============================================================================
# Model-based detection
# =============================================================================


@dataclass
class LinearNeedModel:
    """Logistic weights for one need type."""

    weights: dict[str, float]
    bias: float = 0.0


class LinearNeedDetector(Detector):
    """
    Logistic-regression need detector.

    For each need type: p = sigmoid(bias + sum(w_f * feature_f)).
    Needs with p >= ``threshold`` are reported with confidence p and
    severity by band (>= 0.85 severe, >= 0.7 moderate, else mild).

    Example:
        >>> detector = LinearNeedDetector.from_json(Path("data/need_model.json"))
        >>> detector.detect(vector)
    """

    detector_id = "linear_model"

    def __init__(self, models: Mapping[NeedType, LinearNeedModel], threshold: float = 0.5):
        self.models = dict(models)
        self.threshold = threshold
        self._need_types = sorted(self.models, key=lambda t: t.value)
        self._feature_names = sorted({f for m in self.models.values() for f in m.weights})
        self._weights = np.array(
            [[self.models[t].weights.get(f, 0.0) for f in self._feature_names] for t in self._need_types],
            dtype=float,
        ).reshape(len(self._need_types), len(self._feature_names))
        self._bias = np.array([self.models[t].bias for t in self._need_types], dtype=float)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], threshold: float = 0.5) -> "LinearNeedDetector":
        """
        Build from ``{"NEED_TYPE": {"bias": b, "weights": {"feature": w}}}``.
        """
        models = {
            NeedType(name): LinearNeedModel(
                weights={k: float(v) for k, v in entry.get("weights", {}).items()},
                bias=float(entry.get("bias", 0.0)),
            )
            for name, entry in data.items()
        }
        return cls(models, threshold=threshold)

    @classmethod
    def from_json(cls, path: Path, threshold: float = 0.5) -> "LinearNeedDetector":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_mapping(json.load(f), threshold=threshold)

    def probabilities(self, vector: LearnerSignalVector) -> dict[NeedType, float]:
        if not self._need_types:
            return {}
        x = np.array(vector.as_array(self._feature_names), dtype=float)
        z = self._weights @ x + self._bias
        p = 1.0 / (1.0 + np.exp(-z))
        return {t: float(p[i]) for i, t in enumerate(self._need_types)}

    def detect(self, vector: LearnerSignalVector) -> list[DetectedNeed]:
        needs = []
        for need_type, probability in self.probabilities(vector).items():
            if probability < self.threshold:
                continue
            needs.append(
                DetectedNeed(
                    need_type=need_type,
                    severity=self._severity(probability),
                    confidence=probability,
                    evidence=self._evidence(need_type, vector),
                    recommendations=recommendations_for(need_type),
                    accommodations=accommodations_for(need_type),
                )
            )
        return needs

    @staticmethod
    def _severity(probability: float) -> Severity:
        if probability >= 0.85:
            return Severity.SEVERE
        if probability >= 0.7:
            return Severity.MODERATE
        return Severity.MILD

    def _evidence(self, need_type: NeedType, vector: LearnerSignalVector, top: int = 2) -> list[str]:
        model = self.models[need_type]
        contributions = sorted(
            ((w * vector.get(f), f) for f, w in model.weights.items()),
            reverse=True,
        )
        return [
            f"Model signal: {name} ({vector.get(name):.2f})"
            for value, name in contributions[:top]
            if value > 0
        ]
