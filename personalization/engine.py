"""
PersonalizationEngine - the core-facing API.

Wires the components together. Every collaborator is passed in (or
built by ``build_engine`` from settings); the engine keeps no global
state.

Recommendation pipeline:
    Signal Extractor -> Need Detector (cached profile) -> Candidate Generator
    -> Multi-Strategy Scorer -> dynamic weights -> Fusion & Ranker -> Diversifier

Assessment operations delegate to the Adaptive Difficulty Controller,
seeded with the learner's detected needs.
"""

from __future__ import annotations

import math
import random
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

from personalization.assessment import (
    AdaptiveDifficultyController,
    DifficultyConfig,
    DifficultyScale,
    InMemorySessionStore,
    JsonSessionStore,
    QuestionBank,
    ResponseOutcome,
    SessionConfig,
    SessionStore,
)
from personalization.content.candidates import CandidateConfig, CandidateGenerator
from personalization.content.store import ContentStore
from personalization.core.cache import VersionedTTLCache
from personalization.core.errors import DataAccessError, ValidationError
from personalization.models import (
    AssessmentResults,
    AssessmentSession,
    CandidateConstraints,
    InteractionSample,
    LearnerProfile,
    NeedProfile,
    Recommendation,
    RecommendationContext,
    Response,
)
from personalization.needs import (
    Detector,
    LinearNeedDetector,
    NeedDetector,
    NeedDetectorConfig,
    RuleBasedDetector,
)
from personalization.ranking.diversifier import Diversifier, DiversityConfig
from personalization.ranking.fusion import FusionRanker
from personalization.ranking.weights import DynamicWeightPolicy
from personalization.scoring.collaborators import ExplorationStats, PeerDirectory
from personalization.scoring.scorer import MultiStrategyScorer, ScorerConfig
from personalization.scoring.strategies import default_strategies
from personalization.signals import (
    InMemoryTelemetryStore,
    JsonlTelemetryStore,
    SampleWindow,
    SignalConfig,
    SignalExtractor,
    TelemetryStore,
    validate_sample,
)

if TYPE_CHECKING:
    from config import Settings


class PersonalizationEngine:
    """
    Facade over the recommendation pipeline and assessment sessions.

    Example:
        >>> engine = build_engine(content_store=InMemoryContentStore(catalog))
        >>> await engine.submit_interaction("learner-1", sample)
        >>> recs = await engine.get_recommendations("learner-1", RecommendationContext(subject="math"))
    """

    def __init__(
        self,
        telemetry: TelemetryStore,
        extractor: SignalExtractor,
        need_detector: NeedDetector,
        candidates: CandidateGenerator,
        scorer: MultiStrategyScorer,
        controller: AdaptiveDifficultyController,
        peers: PeerDirectory | None = None,
        exploration: ExplorationStats | None = None,
        weight_policy: DynamicWeightPolicy | None = None,
        fusion: FusionRanker | None = None,
        diversifier: Diversifier | None = None,
        need_cache: VersionedTTLCache | None = None,
        diversity_seed: str = "personalization",
        window_days: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.telemetry = telemetry
        self.extractor = extractor
        self.need_detector = need_detector
        self.candidates = candidates
        self.scorer = scorer
        self.controller = controller
        self.peers = peers or PeerDirectory()
        self.exploration = exploration or ExplorationStats()
        self.weight_policy = weight_policy or DynamicWeightPolicy()
        self.fusion = fusion or FusionRanker()
        self.diversifier = diversifier or Diversifier()
        self.need_cache = need_cache or VersionedTTLCache(ttl_seconds=3600, max_size=10_000)
        self.diversity_seed = diversity_seed
        self.window_days = window_days
        self._clock = clock or datetime.now

    async def close(self) -> None:
        await self.candidates.store.close()

    def _window(self) -> SampleWindow | None:
        if not self.window_days:
            return None
        return SampleWindow(
            max_samples=self.extractor.config.window_size,
            since=self._clock() - timedelta(days=self.window_days),
        )

    @staticmethod
    def _require_id(value: str, field: str) -> None:
        if not value or not value.strip():
            raise ValidationError(f"{field} is required", field=field)

    # =========================================================================
    # Telemetry & outcomes
    # =========================================================================

    async def submit_interaction(self, learner_id: str, sample: InteractionSample) -> int:
        """
        Append one telemetry sample (append-only).

        Samples carrying ``content_id`` + ``engagement`` also feed the peer
        ratings and exploration statistics. Once the append succeeds the
        interaction counts as recorded; refreshing the learner's peer
        features afterwards is best effort.

        Returns:
            The learner's new log length

        Raises:
            ValidationError: malformed sample (nothing is recorded)
            DataAccessError: the telemetry append failed
        """
        validate_sample(learner_id, sample)
        length = await self.telemetry.append(sample)
        self.need_cache.delete(("needs", learner_id))

        if sample.content_id and sample.engagement is not None:
            self.peers.record_rating(learner_id, sample.content_id, sample.engagement)
            self.exploration.record(sample.content_id, sample.engagement)

        try:
            vector = await self.extractor.extract(learner_id, self._window())
        except DataAccessError as e:
            logger.warning(f"Interaction #{length} recorded for {learner_id}; peer features not refreshed: {e}")
            return length
        self.peers.update_features(learner_id, vector.features)
        logger.debug(f"Interaction #{length} recorded for {learner_id}")
        return length

    def record_outcome(self, learner_id: str, content_id: str, reward: float) -> None:
        """Record how a recommended item worked out (reward in [0, 1])."""
        self._require_id(learner_id, "learner_id")
        self._require_id(content_id, "content_id")
        if not isinstance(reward, (int, float)) or not math.isfinite(reward) or not 0.0 <= reward <= 1.0:
            raise ValidationError("reward must be within [0, 1]", field="reward")
        self.peers.record_rating(learner_id, content_id, float(reward))
        self.exploration.record(content_id, float(reward))
        logger.debug(f"Outcome {reward:.2f} for {learner_id}/{content_id}")

    # =========================================================================
    # Needs
    # =========================================================================

    async def get_need_profile(self, learner_id: str, vector=None) -> NeedProfile:
        """Cached need profile; recomputed when the signal vector moved on or the TTL ran out."""
        self._require_id(learner_id, "learner_id")
        if vector is None:
            vector = await self.extractor.extract(learner_id, self._window())

        key = ("needs", learner_id)
        cached: Optional[NeedProfile] = self.need_cache.get(key)
        if cached is not None and cached.vector_version == vector.version:
            return cached

        profile = await self.need_detector.analyze(learner_id, vector)
        self.need_cache.set(key, profile)
        logger.debug(f"Need profile for {learner_id} refreshed at vector v{vector.version}")
        return profile

    # =========================================================================
    # Recommendations
    # =========================================================================

    async def get_recommendations(
        self,
        learner_id: str,
        context: RecommendationContext | None = None,
        constraints: CandidateConstraints | None = None,
    ) -> list[Recommendation]:
        """
        Ranked, diversified recommendations for the learner.

        Returns an empty list when no content is eligible.

        Raises:
            ValidationError: malformed request
            DataAccessError: telemetry or content store failure
        """
        self._require_id(learner_id, "learner_id")
        context = context or RecommendationContext()
        constraints = constraints or CandidateConstraints()
        started = time.perf_counter()

        vector = await self.extractor.extract(learner_id, self._window())
        need_profile = await self.get_need_profile(learner_id, vector)
        candidates = await self.candidates.generate_candidates(learner_id, context.subject, constraints)
        if not candidates:
            logger.info(f"No recommendation available for {learner_id}/{context.subject}")
            return []
        mastery = await self.candidates.get_mastery(learner_id)

        self.peers.update_features(learner_id, vector.features)
        profile = LearnerProfile(
            learner_id=learner_id,
            vector=vector,
            needs=need_profile.needs,
            mastery=mastery,
        )

        batch = await self.scorer.score(candidates, profile, context)
        weights = self.weight_policy.compute(profile)
        ranked = self.fusion.fuse(batch, weights, profile, candidates)

        rng = random.Random(f"{self.diversity_seed}:{learner_id}:{vector.version}")
        recommendations = self.diversifier.diversify(ranked, rng=rng)

        elapsed_ms = (time.perf_counter() - started) * 1000
        failed = f", failed strategies: {sorted(batch.failures)}" if batch.failures else ""
        logger.info(
            f"{len(recommendations)} recommendations for {learner_id}/{context.subject} "
            f"from {len(candidates)} candidates in {elapsed_ms:.0f}ms{failed}"
        )
        return recommendations

    # =========================================================================
    # Assessment sessions
    # =========================================================================

    async def start_session(
        self,
        learner_id: str,
        subject: str,
        session_config: SessionConfig | None = None,
    ) -> AssessmentSession:
        self._require_id(learner_id, "learner_id")
        profile = await self.get_need_profile(learner_id)
        return await self.controller.start_session(learner_id, subject, session_config, profile.needs)

    async def submit_response(self, session_id: str, response: Response) -> ResponseOutcome:
        return await self.controller.submit_response(session_id, response)

    async def complete_session(self, session_id: str) -> AssessmentResults:
        return await self.controller.complete_session(session_id)

    async def get_session(self, session_id: str) -> AssessmentSession:
        return await self.controller.get_session(session_id)


# =============================================================================
# Factory
# =============================================================================


def _content_store_from_settings(settings: "Settings") -> ContentStore:
    if settings.content_service_url:
        from personalization.content.http_store import HttpContentStore

        return HttpContentStore(settings.content_service_url, timeout=settings.request_timeout_seconds)
    if settings.catalog_path:
        from personalization.content.store import InMemoryContentStore

        return InMemoryContentStore.from_json(Path(settings.catalog_path))
    from personalization.content.sql_store import SqlContentStore

    return SqlContentStore(settings.database_url, create_tables=True)


def build_engine(
    settings: Optional["Settings"] = None,
    content_store: ContentStore | None = None,
    telemetry_store: TelemetryStore | None = None,
    session_store: SessionStore | None = None,
    question_bank: QuestionBank | None = None,
    detectors: list[Detector] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> PersonalizationEngine:
    """
    Build an engine from settings; explicit collaborators override them.

    Store selection when not given:
    - content: remote service URL, else JSON catalog, else SQL database
    - telemetry: JSONL directory, else in-memory
    - sessions: JSON directory, else in-memory
    """
    if settings is None:
        from config import get_settings

        settings = get_settings()

    if telemetry_store is None:
        telemetry_store = (
            JsonlTelemetryStore(Path(settings.telemetry_dir))
            if settings.telemetry_dir
            else InMemoryTelemetryStore()
        )
    if session_store is None:
        session_store = (
            JsonSessionStore(Path(settings.session_dir)) if settings.session_dir else InMemorySessionStore()
        )
    if content_store is None:
        content_store = _content_store_from_settings(settings)

    if detectors is None:
        detectors = [RuleBasedDetector()]
        if settings.need_model_path:
            detectors.append(LinearNeedDetector.from_json(Path(settings.need_model_path)))

    extractor = SignalExtractor(
        telemetry_store,
        config=SignalConfig(
            window_size=settings.signal_window_size,
            recency_decay=settings.signal_recency_decay,
            read_timeout_seconds=settings.request_timeout_seconds,
        ),
    )
    need_detector = NeedDetector(
        detectors,
        NeedDetectorConfig(
            confidence_floor=settings.need_confidence_floor,
            detector_timeout_seconds=settings.detector_timeout_seconds,
        ),
        clock=clock,
    )
    candidates = CandidateGenerator(
        content_store,
        CandidateConfig(
            candidate_limit=settings.candidate_limit,
            prerequisite_mastery_threshold=settings.prerequisite_mastery_threshold,
            store_timeout_seconds=settings.request_timeout_seconds,
            cache_ttl_seconds=settings.candidate_cache_ttl_seconds,
            cache_size=settings.candidate_cache_size,
        ),
    )

    peers = PeerDirectory()
    exploration = ExplorationStats()
    scorer = MultiStrategyScorer(
        default_strategies(peers, exploration, settings.exploration_c),
        ScorerConfig(
            timeout_seconds=settings.strategy_timeout_seconds,
            max_concurrency=settings.strategy_max_concurrency,
        ),
    )
    controller = AdaptiveDifficultyController(
        store=session_store,
        scale=DifficultyScale(),
        config=DifficultyConfig(
            fast_seconds=settings.assessment_fast_seconds,
            slow_seconds=settings.assessment_slow_seconds,
            max_questions=settings.assessment_max_questions,
            lock_timeout_seconds=settings.session_lock_timeout_seconds,
            lock_retries=settings.session_lock_retries,
        ),
        questions=question_bank,
        clock=clock,
    )
    diversity = settings.get_diversity_config()

    return PersonalizationEngine(
        telemetry=telemetry_store,
        extractor=extractor,
        need_detector=need_detector,
        candidates=candidates,
        scorer=scorer,
        controller=controller,
        peers=peers,
        exploration=exploration,
        weight_policy=DynamicWeightPolicy(base_weights=settings.get_strategy_weights()),
        fusion=FusionRanker(clock=clock),
        diversifier=Diversifier(
            DiversityConfig(
                output_size=int(diversity["output_size"]),
                max_per_category=int(diversity["max_per_category"]),
                max_per_difficulty=int(diversity["max_per_difficulty"]),
                unconditional_head=int(diversity["unconditional_head"]),
                admission_probability=float(diversity["admission_probability"]),
            )
        ),
        need_cache=VersionedTTLCache(ttl_seconds=settings.need_profile_ttl_seconds, max_size=10_000),
        diversity_seed=str(diversity["seed"]),
        window_days=settings.signal_window_days,
        clock=clock,
    )
