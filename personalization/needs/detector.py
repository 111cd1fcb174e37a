"""
Need Detector.

Runs the rule-based detector plus any pluggable model detectors
concurrently, merges their findings into one need per type and builds
the learner's NeedProfile.

Merge policy for needs of the same type:
- confidence: arithmetic mean of the contributing confidences
- evidence / recommendations / accommodations: ordered union
- severity: the highest observed

Needs below the confidence floor are dropped; output is sorted by
confidence descending, then need type.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from personalization.core.errors import DetectorFailure
from personalization.core.threads import run_in_worker_thread
from personalization.models import (
    DetectedNeed,
    LearnerSignalVector,
    NeedProfile,
    Severity,
)
from personalization.needs.detectors import Detector, RuleBasedDetector
from personalization.needs.profile import build_learning_profile


@dataclass
class NeedDetectorConfig:
    """Configuration for need detection."""

    confidence_floor: float = 0.6
    detector_timeout_seconds: float = 1.0

    # Days until the next assessment, by worst severity present
    reassess_days_severe: int = 7
    reassess_days_moderate: int = 14
    reassess_days_default: int = 30


def _union(*lists: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for items in lists:
        for item in items:
            seen.setdefault(item, None)
    return list(seen)


def merge_needs(contributions: list[tuple[str, DetectedNeed]], confidence_floor: float = 0.6) -> list[DetectedNeed]:
    """
    Merge (detector_id, need) pairs into at most one need per type.

    Args:
        contributions: Needs in detector order
        confidence_floor: Minimum merged confidence kept

    Returns:
        Merged needs sorted by (-confidence, type)
    """
    grouped: dict[str, list[tuple[str, DetectedNeed]]] = {}
    for source, need in contributions:
        grouped.setdefault(need.need_type.value, []).append((source, need))

    merged = []
    for items in grouped.values():
        needs = [n for _, n in items]
        confidence = sum(n.confidence for n in needs) / len(needs)
        if confidence < confidence_floor:
            continue
        merged.append(
            DetectedNeed(
                need_type=needs[0].need_type,
                severity=Severity.highest([n.severity for n in needs]),
                confidence=confidence,
                evidence=_union(*(n.evidence for n in needs)),
                recommendations=_union(*(n.recommendations for n in needs)),
                accommodations=_union(*(n.accommodations for n in needs)),
                sources=_union([s for s, _ in items]),
            )
        )

    merged.sort(key=lambda n: (-n.confidence, n.need_type.value))
    return merged


class NeedDetector:
    """
    Fuses rule checks with model-based detectors.

    A detector that raises or exceeds its time budget contributes
    nothing; the call itself never fails because of it.
    """

    def __init__(
        self,
        detectors: list[Detector] | None = None,
        config: NeedDetectorConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.detectors = detectors if detectors is not None else [RuleBasedDetector()]
        self.config = config or NeedDetectorConfig()
        self._clock = clock or datetime.now

    async def _run_detector(
        self, detector: Detector, vector: LearnerSignalVector
    ) -> list[DetectedNeed] | DetectorFailure:
        try:
            return await asyncio.wait_for(
                run_in_worker_thread(detector.detect, vector, name=f"detector-{detector.detector_id}"),
                timeout=self.config.detector_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Detector {detector.detector_id} timed out after "
                f"{self.config.detector_timeout_seconds:.2f}s; ignoring its needs"
            )
            return DetectorFailure(detector.detector_id, "timed out")
        except Exception as e:  # Intentionally broad - one detector must not fail detection
            logger.warning(f"Detector {detector.detector_id} failed: {e}; ignoring its needs")
            return DetectorFailure(detector.detector_id, str(e))

    async def _collect(self, vector: LearnerSignalVector) -> list[tuple[str, DetectedNeed]]:
        outcomes = await asyncio.gather(*(self._run_detector(d, vector) for d in self.detectors))

        contributions: list[tuple[str, DetectedNeed]] = []
        for detector, outcome in zip(self.detectors, outcomes):
            if isinstance(outcome, DetectorFailure):
                continue
            contributions.extend((detector.detector_id, need) for need in outcome)
        return contributions

    async def detect_needs(self, learner_id: str, vector: LearnerSignalVector) -> list[DetectedNeed]:
        """Detect and merge needs for one learner."""
        contributions = await self._collect(vector)
        needs = merge_needs(contributions, self.config.confidence_floor)
        logger.debug(
            f"Needs for {learner_id}: {[n.need_type.value for n in needs]} "
            f"from {len(contributions)} detections"
        )
        return needs

    async def analyze(self, learner_id: str, vector: LearnerSignalVector) -> NeedProfile:
        """Detect needs and build the full need profile."""
        contributions = await self._collect(vector)
        needs = merge_needs(contributions, self.config.confidence_floor)
        now = self._clock()

        overall = (
            sum(n.confidence for _, n in contributions) / len(contributions)
            if contributions
            else 0.0
        )
        return NeedProfile(
            learner_id=learner_id,
            needs=needs,
            learning_profile=build_learning_profile(vector, needs),
            vector_version=vector.version,
            overall_confidence=min(overall, 1.0),
            analyzed_at=now,
            next_assessment_at=now + timedelta(days=self._reassess_days(needs)),
        )

    def _reassess_days(self, needs: list[DetectedNeed]) -> int:
        severities = {n.severity for n in needs}
        if Severity.SEVERE in severities:
            return self.config.reassess_days_severe
        if Severity.MODERATE in severities:
            return self.config.reassess_days_moderate
        return self.config.reassess_days_default
