"""
Multi-Strategy Scorer.

Fans the candidate set out to every strategy in parallel, each on its
own worker thread. A strategy's time budget starts when its thread
starts; one that raises, times out or returns non-finite scores
contributes nothing and is reported in ``ScoringBatch.failures``
instead of failing the request. An overrunning strategy only holds its
own thread, so it cannot delay other strategies or later requests.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from personalization.core.errors import StrategyFailure, StrategyTimeout
from personalization.core.threads import run_in_worker_thread
from personalization.models import (
    ContentItem,
    LearnerProfile,
    RecommendationContext,
    ScoringStrategyResult,
)
from personalization.scoring.base import ScoringStrategy


@dataclass
class ScorerConfig:
    """Configuration for strategy fan-out."""

    timeout_seconds: float = 2.0
    max_concurrency: int = 4


@dataclass
class ScoringBatch:
    """Per-strategy results for one request, in strategy order."""

    strategy_ids: list[str]
    results: dict[str, list[ScoringStrategyResult]] = field(default_factory=dict)
    failures: dict[str, StrategyFailure] = field(default_factory=dict)

    def as_lists(self) -> list[list[ScoringStrategyResult]]:
        """One list per strategy; failed strategies give an empty list."""
        return [self.results.get(sid, []) for sid in self.strategy_ids]

    @property
    def succeeded(self) -> list[str]:
        return [sid for sid in self.strategy_ids if sid in self.results]


class MultiStrategyScorer:
    """
    Runs independent scoring strategies over a candidate set.

    Example:
        >>> scorer = MultiStrategyScorer([ContentAffinityStrategy(), NeurocognitiveStrategy()])
        >>> batch = await scorer.score(candidates, profile, context)
        >>> batch.results["content_affinity"][0].score
        0.82
    """

    def __init__(self, strategies: Sequence[ScoringStrategy], config: ScorerConfig | None = None):
        ids = [s.strategy_id for s in strategies]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate strategy ids: {ids}")
        self.strategies = list(strategies)
        self.config = config or ScorerConfig()
        self._workers = max(1, min(len(self.strategies), self.config.max_concurrency))

    def _validate(
        self,
        strategy: ScoringStrategy,
        raw: list[ScoringStrategyResult],
        candidate_ids: set[str],
    ) -> list[ScoringStrategyResult]:
        best: dict[str, ScoringStrategyResult] = {}
        for result in raw:
            if result.content_id not in candidate_ids:
                logger.warning(f"{strategy.strategy_id} scored unknown content {result.content_id}; dropped")
                continue
            if not isinstance(result.score, (int, float)) or not math.isfinite(result.score):
                raise StrategyFailure(strategy.strategy_id, f"non-finite score for {result.content_id}")
            clamped = min(1.0, max(0.0, float(result.score)))
            current = best.get(result.content_id)
            if current is None or clamped > current.score:
                best[result.content_id] = ScoringStrategyResult(
                    strategy.strategy_id, result.content_id, clamped, result.rationale
                )
        return [best[k] for k in sorted(best)]

    async def _run(
        self,
        strategy: ScoringStrategy,
        semaphore: asyncio.Semaphore,
        candidates: Sequence[ContentItem],
        profile: LearnerProfile,
        context: RecommendationContext,
    ) -> list[ScoringStrategyResult] | StrategyFailure:
        async with semaphore:
            started = time.perf_counter()
            try:
                raw = await asyncio.wait_for(
                    run_in_worker_thread(
                        strategy.score_batch,
                        list(candidates),
                        profile,
                        context,
                        name=f"scoring-{strategy.strategy_id}",
                    ),
                    timeout=self.config.timeout_seconds,
                )
                results = self._validate(strategy, raw, {c.content_id for c in candidates})
            except asyncio.TimeoutError:
                logger.warning(f"Strategy {strategy.strategy_id} timed out; omitted from fusion")
                return StrategyTimeout(strategy.strategy_id, self.config.timeout_seconds)
            except StrategyFailure as e:
                logger.warning(f"Strategy {strategy.strategy_id} failed: {e}; omitted from fusion")
                return e
            except Exception as e:  # Intentionally broad - one strategy must not fail the batch
                logger.warning(f"Strategy {strategy.strategy_id} raised {type(e).__name__}: {e}; omitted")
                return StrategyFailure(strategy.strategy_id, str(e))

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(f"Strategy {strategy.strategy_id}: {len(results)} scores in {elapsed_ms:.1f}ms")
            return results

    async def score(
        self,
        candidates: Sequence[ContentItem],
        profile: LearnerProfile,
        context: RecommendationContext,
    ) -> ScoringBatch:
        """Score every candidate with every strategy (best effort)."""
        batch = ScoringBatch(strategy_ids=[s.strategy_id for s in self.strategies])
        if not candidates or not self.strategies:
            return batch

        semaphore = asyncio.Semaphore(self._workers)
        outcomes = await asyncio.gather(
            *(self._run(s, semaphore, candidates, profile, context) for s in self.strategies)
        )
        for strategy, outcome in zip(self.strategies, outcomes):
            if isinstance(outcome, StrategyFailure):
                batch.failures[strategy.strategy_id] = outcome
            else:
                batch.results[strategy.strategy_id] = outcome
        return batch
