"""
Content Store interface and the in-memory implementation.

The content store is an external collaborator: it owns the catalog and
the learners' mastery records. The engine only reads from it.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger

from personalization.core.errors import DataAccessError
from personalization.models import CandidateConstraints, ContentItem

ANY_SUBJECT = {"", "any", "all"}

# Modality names accepted in accessibility_required, mapped to ContentItem.modalities
MODALITY_ALIASES = {
    "audio": "auditory",
    "auditory": "auditory",
    "visual": "visual",
    "kinesthetic": "kinesthetic",
    "tactile": "tactile",
}


def subject_matches(item: ContentItem, subject: str | None) -> bool:
    return subject is None or subject.lower() in ANY_SUBJECT or item.subject.lower() == subject.lower()


def supports_requirement(item: ContentItem, requirement: str) -> bool:
    """True if the item offers an accessibility feature or modality."""
    if requirement in item.accessibility_features:
        return True
    modality = MODALITY_ALIASES.get(requirement)
    return modality is not None and modality in item.modalities


def violated_constraint(
    item: ContentItem,
    constraints: CandidateConstraints,
    min_accessibility_score: float | None = None,
) -> str | None:
    """Name of the first hard constraint the item fails, or None."""
    if item.content_id in constraints.exclude_content_ids:
        return "excluded"
    if constraints.max_minutes is not None and item.estimated_minutes > constraints.max_minutes:
        return "max_minutes"
    if constraints.content_types and item.content_type not in constraints.content_types:
        return "content_types"
    if constraints.difficulty is not None and item.difficulty != constraints.difficulty:
        return "difficulty"
    for requirement in constraints.accessibility_required:
        if not supports_requirement(item, requirement):
            return "accessibility_required"
    floor = constraints.min_accessibility_score
    if floor is None:
        floor = min_accessibility_score
    if floor is not None and item.accessibility_score < floor:
        return "min_accessibility_score"
    return None


class ContentStore(ABC):
    """Read-only access to the catalog and mastery records."""

    @abstractmethod
    async def get_eligible_content(
        self, learner_id: str, subject: str | None, constraints: CandidateConstraints
    ) -> list[ContentItem]:
        """Items for the subject; stores may pre-filter on constraints."""

    @abstractmethod
    async def get_mastery_record(self, learner_id: str) -> dict[str, float]:
        """Skill -> mastery level in [0, 1]."""

    async def close(self) -> None:
        return None


class InMemoryContentStore(ContentStore):
    """
    Catalog and mastery held in dicts.

    Catalog JSON format:
        {"items": [{"content_id": "...", ...}], "mastery": {"learner": {"skill": 0.7}}}
    """

    def __init__(
        self,
        items: Iterable[ContentItem] = (),
        mastery: dict[str, dict[str, float]] | None = None,
    ):
        self._items: dict[str, ContentItem] = {item.content_id: item for item in items}
        self._mastery: dict[str, dict[str, float]] = {k: dict(v) for k, v in (mastery or {}).items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InMemoryContentStore":
        items = [ContentItem.from_dict(d) for d in data.get("items", [])]
        return cls(items, data.get("mastery", {}))

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryContentStore":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DataAccessError(f"Cannot load catalog {path}: {e}", source="content") from e
        store = cls.from_dict(data)
        logger.info(f"Loaded {len(store._items)} content items from {path}")
        return store

    def add(self, item: ContentItem) -> None:
        self._items[item.content_id] = item

    def set_mastery(self, learner_id: str, skill: str, level: float) -> None:
        self._mastery.setdefault(learner_id, {})[skill] = level

    def get(self, content_id: str) -> ContentItem | None:
        return self._items.get(content_id)

    @property
    def items(self) -> list[ContentItem]:
        return [self._items[k] for k in sorted(self._items)]

    async def get_eligible_content(
        self, learner_id: str, subject: str | None, constraints: CandidateConstraints
    ) -> list[ContentItem]:
        return [
            item for item in self.items
            if subject_matches(item, subject) and violated_constraint(item, constraints) is None
        ]

    async def get_mastery_record(self, learner_id: str) -> dict[str, float]:
        return dict(self._mastery.get(learner_id, {}))
