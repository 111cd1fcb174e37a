"""
Domain models shared by every engine component.

Telemetry samples, signal vectors, content items and scoring results are
frozen dataclasses: they are produced once and replaced, never mutated.
Assessment sessions are the only mutable records and are changed solely
by the difficulty controller while it holds the session lock.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# =============================================================================
# Enumerations
# =============================================================================


class NeedType(str, Enum):
    """Learning-support needs the detector can infer."""

    DYSLEXIA = "DYSLEXIA"
    ADHD = "ADHD"
    DYSCALCULIA = "DYSCALCULIA"
    AUDITORY_PROCESSING = "AUDITORY_PROCESSING"
    VISUAL_PROCESSING = "VISUAL_PROCESSING"
    LANGUAGE_DELAY = "LANGUAGE_DELAY"
    MOTOR_SKILLS = "MOTOR_SKILLS"


class Severity(str, Enum):
    """Severity of a detected need, ordered mild < moderate < severe."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def weight(self) -> float:
        """Weight used when need strength scales a score (1, 2, 3)."""
        return float(self.rank + 1)

    @classmethod
    def from_rank(cls, rank: int) -> "Severity":
        rank = max(0, min(rank, 2))
        return (cls.MILD, cls.MODERATE, cls.SEVERE)[rank]

    @classmethod
    def highest(cls, severities: list["Severity"]) -> "Severity":
        return max(severities, key=lambda s: s.rank)


_SEVERITY_RANK = {Severity.MILD: 0, Severity.MODERATE: 1, Severity.SEVERE: 2}


class ContentDifficulty(str, Enum):
    """Difficulty tag attached to catalog content."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def level(self) -> float:
        """Position on a 0-1 scale, comparable with mastery levels."""
        return {"beginner": 0.3, "intermediate": 0.6, "advanced": 0.9}[self.value]


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class Direction(str, Enum):
    """Difficulty transition decided after a response."""

    INCREASE = "increase"
    HOLD = "hold"
    DECREASE = "decrease"


# =============================================================================
# Telemetry
# =============================================================================


@dataclass(frozen=True)
class ReadingMetrics:
    speed_wpm: float
    accuracy: float
    comprehension: float | None = None
    substitutions: int = 0
    omissions: int = 0
    insertions: int = 0
    reversals: int = 0
    transpositions: int = 0

    @property
    def total_errors(self) -> int:
        return (
            self.substitutions + self.omissions + self.insertions
            + self.reversals + self.transpositions
        )


@dataclass(frozen=True)
class MathMetrics:
    accuracy: float
    speed_ppm: float  # problems per minute
    calculation_errors: int = 0
    procedural_errors: int = 0
    conceptual_errors: int = 0
    visual_errors: int = 0


@dataclass(frozen=True)
class AttentionMetrics:
    span_minutes: float
    response_time_mean_s: float = 0.0
    response_time_variance: float = 0.0
    response_time_outliers: int = 0
    task_completion: float = 1.0
    help_requests: int = 0
    session_minutes: float = 0.0
    breaks: int = 0


@dataclass(frozen=True)
class SensoryPreferences:
    """Observed modality preferences, each in [0, 1]."""

    audio: float = 0.5
    visual: float = 0.5
    kinesthetic: float = 0.5


@dataclass(frozen=True)
class InteractionSample:
    """
    One telemetry record for a learner.

    Domain blocks are None when the domain was not observed in the
    interaction. ``content_id`` + ``engagement`` record the outcome of a
    previously recommended item.
    """

    learner_id: str
    timestamp: datetime
    reading: ReadingMetrics | None = None
    math: MathMetrics | None = None
    attention: AttentionMetrics | None = None
    sensory: SensoryPreferences | None = None
    device_type: str | None = None
    context_tags: tuple[str, ...] = ()
    content_id: str | None = None
    engagement: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["context_tags"] = list(self.context_tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InteractionSample":
        """Create from dictionary; domain blocks are optional nested dicts."""
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            learner_id=data["learner_id"],
            timestamp=timestamp,
            reading=ReadingMetrics(**data["reading"]) if data.get("reading") else None,
            math=MathMetrics(**data["math"]) if data.get("math") else None,
            attention=AttentionMetrics(**data["attention"]) if data.get("attention") else None,
            sensory=SensoryPreferences(**data["sensory"]) if data.get("sensory") else None,
            device_type=data.get("device_type"),
            context_tags=tuple(data.get("context_tags") or ()),
            content_id=data.get("content_id"),
            engagement=data.get("engagement"),
        )


@dataclass(frozen=True)
class LearnerSignalVector:
    """
    Normalized feature vector for one learner.

    ``features`` values are all in [0, 1]. ``raw`` keeps the aggregated
    unnormalized metrics the rule checks are written against.
    ``version`` is the length of the learner's log when the vector was
    built, so a new sample always yields a newer version.
    """

    learner_id: str
    version: int
    features: dict[str, float]
    raw: dict[str, float]
    sample_count: int
    fingerprint: str
    window_start: datetime | None = None
    window_end: datetime | None = None

    def get(self, name: str, default: float = 0.5) -> float:
        return self.features.get(name, default)

    def get_raw(self, name: str) -> float | None:
        return self.raw.get(name)

    def as_array(self, names: list[str]) -> list[float]:
        return [self.features.get(n, 0.5) for n in names]

    @property
    def is_neutral(self) -> bool:
        return self.sample_count == 0


# =============================================================================
# Needs
# =============================================================================


@dataclass
class DetectedNeed:
    """An inferred learning need. At most one per (learner, type) after merging."""

    need_type: NeedType
    severity: Severity
    confidence: float
    evidence: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    accommodations: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.need_type.value,
            "severity": self.severity.value,
            "confidence": round(self.confidence, 4),
            "evidence": list(self.evidence),
            "recommendations": list(self.recommendations),
            "accommodations": list(self.accommodations),
            "sources": list(self.sources),
        }


@dataclass
class LearningProfile:
    """Descriptive profile derived from the signal vector and detected needs."""

    learning_style: str
    pace: str
    strengths: list[str] = field(default_factory=list)
    challenges: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class NeedProfile:
    """Persisted result of need detection for one learner."""

    learner_id: str
    needs: list[DetectedNeed]
    learning_profile: LearningProfile
    vector_version: int
    overall_confidence: float
    analyzed_at: datetime
    next_assessment_at: datetime

    def strongest_confidence(self) -> float:
        return max((n.confidence for n in self.needs), default=0.0)

    def has_need(self, need_type: NeedType) -> bool:
        return any(n.need_type == need_type for n in self.needs)


# =============================================================================
# Content
# =============================================================================


@dataclass(frozen=True)
class ContentItem:
    """Read-only catalog entry owned by the external content store."""

    content_id: str
    content_type: str
    difficulty: ContentDifficulty = ContentDifficulty.INTERMEDIATE
    subject: str = "general"
    title: str = ""
    skills: tuple[str, ...] = ()
    prerequisites: tuple[str, ...] = ()
    estimated_minutes: float = 30.0
    modalities: tuple[str, ...] = ()
    accessibility_features: tuple[str, ...] = ()
    cultural_tags: tuple[str, ...] = ()
    cultural_relevance: float = 0.5
    accessibility_score: float = 0.7
    cognitive_load: float = 0.5
    attention_requirement: float = 0.5
    memory_demand: float = 0.5

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentItem":
        return cls(
            content_id=str(data["content_id"]),
            content_type=data.get("content_type", "lesson"),
            difficulty=ContentDifficulty(data.get("difficulty", "intermediate")),
            subject=data.get("subject", "general"),
            title=data.get("title", ""),
            skills=tuple(data.get("skills") or ()),
            prerequisites=tuple(data.get("prerequisites") or ()),
            estimated_minutes=float(data.get("estimated_minutes", 30.0)),
            modalities=tuple(data.get("modalities") or ()),
            accessibility_features=tuple(data.get("accessibility_features") or ()),
            cultural_tags=tuple(data.get("cultural_tags") or ()),
            cultural_relevance=float(data.get("cultural_relevance", 0.5)),
            accessibility_score=float(data.get("accessibility_score", 0.7)),
            cognitive_load=float(data.get("cognitive_load", 0.5)),
            attention_requirement=float(data.get("attention_requirement", 0.5)),
            memory_demand=float(data.get("memory_demand", 0.5)),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["difficulty"] = self.difficulty.value
        for key in ("skills", "prerequisites", "modalities", "accessibility_features", "cultural_tags"):
            data[key] = list(data[key])
        return data


@dataclass(frozen=True)
class CandidateConstraints:
    """Hard constraints applied by the candidate generator."""

    max_minutes: float | None = None
    content_types: tuple[str, ...] = ()
    difficulty: ContentDifficulty | None = None
    accessibility_required: tuple[str, ...] = ()
    min_accessibility_score: float | None = None
    exclude_content_ids: tuple[str, ...] = ()

    def cache_key(self) -> tuple:
        return (
            self.max_minutes,
            tuple(sorted(self.content_types)),
            self.difficulty.value if self.difficulty else None,
            tuple(sorted(self.accessibility_required)),
            self.min_accessibility_score,
            tuple(sorted(self.exclude_content_ids)),
        )


@dataclass(frozen=True)
class RecommendationContext:
    """Request context passed to every scoring strategy."""

    subject: str = "general"
    time_of_day: str | None = None
    device_type: str | None = None
    session_number: int = 0
    current_content_id: str | None = None
    cognitive_load: float | None = None
    goals: tuple[str, ...] = ()


# =============================================================================
# Scoring and ranking
# =============================================================================


@dataclass(frozen=True)
class ScoringStrategyResult:
    strategy_id: str
    content_id: str
    score: float
    rationale: str


@dataclass
class LearnerProfile:
    """Everything a scoring strategy may look at for the requesting learner."""

    learner_id: str
    vector: LearnerSignalVector
    needs: list[DetectedNeed] = field(default_factory=list)
    mastery: dict[str, float] = field(default_factory=dict)

    def need(self, need_type: NeedType) -> DetectedNeed | None:
        for n in self.needs:
            if n.need_type == need_type:
                return n
        return None


@dataclass
class Recommendation:
    """Ranked output entry. Ephemeral; persistence is the caller's concern."""

    content_id: str
    fused_score: float
    rationale: list[str]
    content_type: str
    difficulty: str
    title: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["fused_score"] = round(self.fused_score, 6)
        return data


# =============================================================================
# Assessment
# =============================================================================


@dataclass(frozen=True)
class Response:
    """One answer inside an assessment session."""

    question_id: str
    correct: bool
    latency_seconds: float
    confidence: float
    hints_used: int = 0
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Response":
        return cls(**data)


@dataclass(frozen=True)
class DifficultyState:
    direction: Direction
    reason: str
    from_level: str
    to_level: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "reason": self.reason,
            "from_level": self.from_level,
            "to_level": self.to_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DifficultyState":
        return cls(
            direction=Direction(data["direction"]),
            reason=data["reason"],
            from_level=data["from_level"],
            to_level=data["to_level"],
        )


@dataclass(frozen=True)
class HistoryEntry:
    """A response and the transition it triggered."""

    response: Response
    difficulty: str
    transition: DifficultyState
    recorded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response.to_dict(),
            "difficulty": self.difficulty,
            "transition": self.transition.to_dict(),
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(
            response=Response.from_dict(data["response"]),
            difficulty=data["difficulty"],
            transition=DifficultyState.from_dict(data["transition"]),
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
        )


@dataclass
class AssessmentSession:
    """Adaptive assessment session; mutated only by the difficulty controller."""

    session_id: str
    learner_id: str
    subject: str
    status: SessionStatus
    current_difficulty: str
    starting_difficulty: str
    max_questions: int
    adjust_difficulty: bool = True
    history: list[HistoryEntry] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def answered_question_ids(self) -> set[str]:
        return {entry.response.question_id for entry in self.history}

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "learner_id": self.learner_id,
            "subject": self.subject,
            "status": self.status.value,
            "current_difficulty": self.current_difficulty,
            "starting_difficulty": self.starting_difficulty,
            "max_questions": self.max_questions,
            "adjust_difficulty": self.adjust_difficulty,
            "history": [entry.to_dict() for entry in self.history],
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssessmentSession":
        completed_at = data.get("completed_at")
        return cls(
            session_id=data["session_id"],
            learner_id=data["learner_id"],
            subject=data["subject"],
            status=SessionStatus(data["status"]),
            current_difficulty=data["current_difficulty"],
            starting_difficulty=data["starting_difficulty"],
            max_questions=data["max_questions"],
            adjust_difficulty=data.get("adjust_difficulty", True),
            history=[HistoryEntry.from_dict(h) for h in data.get("history", [])],
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )


@dataclass
class AssessmentResults:
    session_id: str
    learner_id: str
    subject: str
    total_questions: int
    correct_answers: int
    score: int
    time_spent_seconds: float
    difficulty_progression: list[str]
    final_difficulty: str
    strengths: list[str]
    weaknesses: list[str]
    recommendations: list[str]
    mastery_level: str
    learning_path: list[str]
    next_steps: list[str]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
