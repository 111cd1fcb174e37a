"""
Candidate Generator.

Fetches eligible content from the content store and keeps only items
whose prerequisites the learner has mastered and whose metadata meets
every hard constraint. Results are sorted by content id, bounded, and
cached behind a TTL + version-bump cache as immutable tuples.

An empty result is a normal outcome ("no recommendation available").
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

from personalization.content.store import ContentStore, subject_matches, violated_constraint
from personalization.core.cache import VersionedTTLCache
from personalization.core.errors import DataAccessError
from personalization.models import CandidateConstraints, ContentItem

T = TypeVar("T")


@dataclass
class CandidateConfig:
    """Configuration for candidate generation."""

    candidate_limit: int = 200
    prerequisite_mastery_threshold: float = 0.65
    min_accessibility_score: float | None = 0.5
    store_timeout_seconds: float = 10.0
    cache_ttl_seconds: float = 300.0
    cache_size: int = 1024


class CandidateGenerator:
    """
    Produces the bounded candidate set for a recommendation request.

    Example:
        >>> generator = CandidateGenerator(InMemoryContentStore(items))
        >>> candidates = await generator.generate_candidates("learner-1", "math", CandidateConstraints())
    """

    def __init__(
        self,
        store: ContentStore,
        config: CandidateConfig | None = None,
        cache: VersionedTTLCache | None = None,
    ):
        self.store = store
        self.config = config or CandidateConfig()
        self.cache = cache or VersionedTTLCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_size=self.config.cache_size,
        )

    def invalidate(self) -> int:
        """Drop every cached candidate set and mastery record."""
        version = self.cache.invalidate()
        logger.debug(f"Candidate cache invalidated (version {version})")
        return version

    async def _call_store(self, awaitable: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.store_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Content store {what} timed out")
            raise DataAccessError(f"content store {what} timed out", source="content") from e

    async def get_mastery(self, learner_id: str) -> dict[str, float]:
        key = ("mastery", learner_id)
        cached = self.cache.get(key)
        if cached is not None:
            return dict(cached)
        record = await self._call_store(self.store.get_mastery_record(learner_id), "mastery read")
        self.cache.set(key, tuple(sorted(record.items())))
        return dict(record)

    def prerequisites_met(self, item: ContentItem, mastery: dict[str, float]) -> bool:
        threshold = self.config.prerequisite_mastery_threshold
        return all(mastery.get(prereq, 0.0) >= threshold for prereq in item.prerequisites)

    async def generate_candidates(
        self,
        learner_id: str,
        subject: str | None,
        constraints: CandidateConstraints | None = None,
    ) -> list[ContentItem]:
        """
        Eligible, prerequisite-satisfied items for the learner.

        Raises:
            DataAccessError: the content store failed or timed out
        """
        constraints = constraints or CandidateConstraints()
        key = ("candidates", learner_id, (subject or "").lower(), constraints.cache_key())
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Candidate cache hit for {learner_id}/{subject}: {len(cached)} items")
            return list(cached)

        items = await self._call_store(
            self.store.get_eligible_content(learner_id, subject, constraints), "content read"
        )
        mastery = await self.get_mastery(learner_id)

        rejected: dict[str, int] = {}
        unique: dict[str, ContentItem] = {}
        for item in items:
            reason = None
            if not subject_matches(item, subject):
                reason = "subject"
            else:
                reason = violated_constraint(item, constraints, self.config.min_accessibility_score)
            if reason is None and not self.prerequisites_met(item, mastery):
                reason = "prerequisites"
            if reason is not None:
                rejected[reason] = rejected.get(reason, 0) + 1
                continue
            unique.setdefault(item.content_id, item)

        candidates = tuple(unique[k] for k in sorted(unique))[: self.config.candidate_limit]
        self.cache.set(key, candidates)

        if candidates:
            logger.debug(
                f"{len(candidates)} candidates for {learner_id}/{subject} "
                f"({len(items)} fetched, rejected: {rejected})"
            )
        else:
            logger.warning(f"No eligible content for {learner_id}/{subject} (rejected: {rejected})")
        return list(candidates)
