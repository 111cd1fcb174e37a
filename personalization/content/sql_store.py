"""
SQLAlchemy-backed content store.

Tables:
- content_items: catalog entries (list-valued columns stored as JSON)
- learner_mastery: one row per (learner, skill)

Queries are synchronous SQLAlchemy sessions executed in a worker thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from loguru import logger
from sqlalchemy import JSON, Float, String, UniqueConstraint, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from personalization.content.store import ContentStore, subject_matches, violated_constraint
from personalization.core.errors import DataAccessError
from personalization.models import CandidateConstraints, ContentDifficulty, ContentItem


class Base(DeclarativeBase):
    pass


class ContentItemRow(Base):
    """Catalog entry as stored by the content service."""

    __tablename__ = "content_items"

    content_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    difficulty: Mapped[str] = mapped_column(String(32), default=ContentDifficulty.INTERMEDIATE.value)
    subject: Mapped[str] = mapped_column(String(128), default="general", index=True)
    title: Mapped[str] = mapped_column(String(512), default="")
    skills: Mapped[list] = mapped_column(JSON, default=list)
    prerequisites: Mapped[list] = mapped_column(JSON, default=list)
    estimated_minutes: Mapped[float] = mapped_column(Float, default=30.0)
    modalities: Mapped[list] = mapped_column(JSON, default=list)
    accessibility_features: Mapped[list] = mapped_column(JSON, default=list)
    cultural_tags: Mapped[list] = mapped_column(JSON, default=list)
    cultural_relevance: Mapped[float] = mapped_column(Float, default=0.5)
    accessibility_score: Mapped[float] = mapped_column(Float, default=0.7)
    cognitive_load: Mapped[float] = mapped_column(Float, default=0.5)
    attention_requirement: Mapped[float] = mapped_column(Float, default=0.5)
    memory_demand: Mapped[float] = mapped_column(Float, default=0.5)

    def to_item(self) -> ContentItem:
        return ContentItem(
            content_id=self.content_id,
            content_type=self.content_type,
            difficulty=ContentDifficulty(self.difficulty),
            subject=self.subject,
            title=self.title,
            skills=tuple(self.skills or ()),
            prerequisites=tuple(self.prerequisites or ()),
            estimated_minutes=self.estimated_minutes,
            modalities=tuple(self.modalities or ()),
            accessibility_features=tuple(self.accessibility_features or ()),
            cultural_tags=tuple(self.cultural_tags or ()),
            cultural_relevance=self.cultural_relevance,
            accessibility_score=self.accessibility_score,
            cognitive_load=self.cognitive_load,
            attention_requirement=self.attention_requirement,
            memory_demand=self.memory_demand,
        )

    @classmethod
    def from_item(cls, item: ContentItem) -> "ContentItemRow":
        data = item.to_dict()
        return cls(**data)


class LearnerMasteryRow(Base):
    """Mastery level of one skill for one learner (0-1 scale)."""

    __tablename__ = "learner_mastery"
    __table_args__ = (UniqueConstraint("learner_id", "skill", name="uq_learner_skill"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    skill: Mapped[str] = mapped_column(String(128), nullable=False)
    level: Mapped[float] = mapped_column(Float, default=0.0)


class SqlContentStore(ContentStore):
    """
    Content store over a SQL database.

    Example:
        >>> store = SqlContentStore("sqlite:///./personalization.db", create_tables=True)
        >>> store.add_items(catalog)
        >>> items = await store.get_eligible_content("learner-1", "math", CandidateConstraints())
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None, create_tables: bool = False):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(database_url, pool_pre_ping=True)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        if create_tables:
            Base.metadata.create_all(bind=engine)
            logger.info("Content tables initialized")

    # =========================================================================
    # Writes (catalog loading, fixtures)
    # =========================================================================

    def add_items(self, items: Iterable[ContentItem]) -> int:
        count = 0
        with self._sessions() as session:
            for item in items:
                session.merge(ContentItemRow.from_item(item))
                count += 1
            session.commit()
        return count

    def set_mastery(self, learner_id: str, skill: str, level: float) -> None:
        with self._sessions() as session:
            row = session.scalar(
                select(LearnerMasteryRow).where(
                    LearnerMasteryRow.learner_id == learner_id,
                    LearnerMasteryRow.skill == skill,
                )
            )
            if row is None:
                session.add(LearnerMasteryRow(learner_id=learner_id, skill=skill, level=level))
            else:
                row.level = level
            session.commit()

    # =========================================================================
    # Reads
    # =========================================================================

    def _eligible_sync(self, subject: str | None, constraints: CandidateConstraints) -> list[ContentItem]:
        with self._sessions() as session:
            query = select(ContentItemRow).order_by(ContentItemRow.content_id)
            if constraints.content_types:
                query = query.where(ContentItemRow.content_type.in_(constraints.content_types))
            if constraints.max_minutes is not None:
                query = query.where(ContentItemRow.estimated_minutes <= constraints.max_minutes)
            if constraints.difficulty is not None:
                query = query.where(ContentItemRow.difficulty == constraints.difficulty.value)
            rows = session.scalars(query).all()
            items = [row.to_item() for row in rows]
        return [
            item for item in items
            if subject_matches(item, subject) and violated_constraint(item, constraints) is None
        ]

    def _mastery_sync(self, learner_id: str) -> dict[str, float]:
        with self._sessions() as session:
            rows = session.scalars(
                select(LearnerMasteryRow).where(LearnerMasteryRow.learner_id == learner_id)
            ).all()
            return {row.skill: float(row.level) for row in rows}

    async def get_eligible_content(
        self, learner_id: str, subject: str | None, constraints: CandidateConstraints
    ) -> list[ContentItem]:
        try:
            return await asyncio.to_thread(self._eligible_sync, subject, constraints)
        except SQLAlchemyError as e:
            logger.error(f"Content query failed for {learner_id}: {e}")
            raise DataAccessError(str(e), source="content") from e

    async def get_mastery_record(self, learner_id: str) -> dict[str, float]:
        try:
            return await asyncio.to_thread(self._mastery_sync, learner_id)
        except SQLAlchemyError as e:
            logger.error(f"Mastery query failed for {learner_id}: {e}")
            raise DataAccessError(str(e), source="content") from e

    async def close(self) -> None:
        self.engine.dispose()
