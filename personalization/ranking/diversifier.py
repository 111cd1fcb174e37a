"""
Diversifier.

Greedy walk over the ranked list that bounds repetition of content type
and difficulty:
- the first ``unconditional_head`` items are always admitted
- after that, an item whose type or difficulty has hit its cap is skipped
- an item that adds a new type or difficulty is admitted
- any other item is admitted with probability ``admission_probability``

Caps count every admitted item, the head included. The random source is
injected so a seeded generator gives a reproducible list.
"""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass

from loguru import logger

from personalization.models import Recommendation


@dataclass
class DiversityConfig:
    """Configuration for diversification."""

    output_size: int = 20
    max_per_category: int = 4
    max_per_difficulty: int = 8
    unconditional_head: int = 3
    admission_probability: float = 0.3


class Diversifier:
    def __init__(self, config: DiversityConfig | None = None):
        self.config = config or DiversityConfig()

    def diversify(
        self,
        ranked: list[Recommendation],
        max_per_category: int | None = None,
        max_per_difficulty: int | None = None,
        rng: random.Random | None = None,
        output_size: int | None = None,
    ) -> list[Recommendation]:
        """
        Re-order the top of ``ranked`` for variety.

        Args:
            ranked: Recommendations in relevance order
            max_per_category: Cap per content type (config default if None)
            max_per_difficulty: Cap per difficulty (config default if None)
            rng: Random source for probabilistic admission
            output_size: Maximum length of the result

        Returns:
            Admitted recommendations, relevance order preserved
        """
        max_cat = self.config.max_per_category if max_per_category is None else max_per_category
        max_diff = self.config.max_per_difficulty if max_per_difficulty is None else max_per_difficulty
        limit = self.config.output_size if output_size is None else output_size
        rng = rng or random.Random()

        selected: list[Recommendation] = []
        type_counts: Counter[str] = Counter()
        difficulty_counts: Counter[str] = Counter()
        skipped = 0

        for rec in ranked:
            if len(selected) >= limit:
                break
            if len(selected) >= self.config.unconditional_head:
                if type_counts[rec.content_type] >= max_cat or difficulty_counts[rec.difficulty] >= max_diff:
                    skipped += 1
                    continue
                novel = rec.content_type not in type_counts or rec.difficulty not in difficulty_counts
                if not novel and rng.random() >= self.config.admission_probability:
                    skipped += 1
                    continue
            selected.append(rec)
            type_counts[rec.content_type] += 1
            difficulty_counts[rec.difficulty] += 1

        logger.debug(
            f"Diversified {len(ranked)} -> {len(selected)} "
            f"(skipped {skipped}, types {dict(type_counts)})"
        )
        return selected
