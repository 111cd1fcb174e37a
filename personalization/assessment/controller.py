"""
Adaptive Difficulty Controller.

Per-session state machine over an ordered difficulty scale:

- correct, confidence > 0.7 and latency below the fast threshold: up one level
- incorrect, confidence < 0.3 and more than two attempts: down one level
- anything else: hold

A move past either end of the scale is recorded as a hold. Session state
is only read and written while holding that session's lock; a completed
session rejects every further response with ``SessionClosed``.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from loguru import logger

from personalization.assessment.locks import SessionLocks
from personalization.assessment.questions import QuestionBank
from personalization.assessment.results import build_results
from personalization.assessment.scale import DifficultyScale
from personalization.assessment.store import InMemorySessionStore, SessionStore
from personalization.core.errors import SessionClosed, SessionNotFound, ValidationError
from personalization.models import (
    AssessmentResults,
    AssessmentSession,
    DetectedNeed,
    DifficultyState,
    Direction,
    HistoryEntry,
    NeedType,
    Response,
    SessionStatus,
    Severity,
)

# Needs that shape how every subject is assessed are listed under None.
NEED_SUBJECTS: dict[NeedType, Optional[frozenset[str]]] = {
    NeedType.DYSLEXIA: frozenset({"reading", "language", "literacy", "writing"}),
    NeedType.LANGUAGE_DELAY: frozenset({"reading", "language", "literacy", "writing"}),
    NeedType.DYSCALCULIA: frozenset({"math", "mathematics", "arithmetic"}),
    NeedType.ADHD: None,
    NeedType.AUDITORY_PROCESSING: None,
    NeedType.VISUAL_PROCESSING: None,
    NeedType.MOTOR_SKILLS: None,
}


def need_applies_to(need: DetectedNeed, subject: str) -> bool:
    subjects = NEED_SUBJECTS.get(need.need_type)
    return subjects is None or subject.lower() in subjects


@dataclass
class DifficultyConfig:
    """Thresholds and locking budget for the controller."""

    fast_seconds: float = 30.0
    slow_seconds: float = 120.0
    increase_confidence: float = 0.7
    decrease_confidence: float = 0.3
    decrease_min_attempts: int = 3
    mastery_confidence: float = 0.8
    max_questions: int = 20
    lock_timeout_seconds: float = 2.0
    lock_retries: int = 3


@dataclass
class SessionConfig:
    """Per-session options supplied when a session starts."""

    starting_difficulty: Optional[str] = None
    max_questions: Optional[int] = None
    adjust_difficulty: bool = True


@dataclass(frozen=True)
class Feedback:
    kind: str  # 'positive' or 'constructive'
    message: str
    suggestions: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "suggestions": list(self.suggestions)}


@dataclass(frozen=True)
class ResponseOutcome:
    feedback: Feedback
    next_difficulty: str
    difficulty_state: DifficultyState
    next_question_id: Optional[str]
    should_continue: bool
    recommendations: tuple[str, ...] = field(default_factory=tuple)


def validate_response(response: Response) -> None:
    """Raise ValidationError for a malformed response."""
    if not response.question_id:
        raise ValidationError("question_id is required", field="question_id")
    if not isinstance(response.confidence, (int, float)) or not 0.0 <= response.confidence <= 1.0:
        raise ValidationError("confidence must be within [0, 1]", field="confidence")
    if not isinstance(response.latency_seconds, (int, float)) or not math.isfinite(response.latency_seconds) \
            or response.latency_seconds < 0:
        raise ValidationError("latency_seconds must be a non-negative number", field="latency_seconds")
    if response.hints_used < 0:
        raise ValidationError("hints_used must be >= 0", field="hints_used")
    if response.attempts < 1:
        raise ValidationError("attempts must be >= 1", field="attempts")


def decide_transition(
    response: Response,
    level: str,
    scale: DifficultyScale,
    config: DifficultyConfig,
    adjust: bool = True,
) -> DifficultyState:
    """The difficulty move triggered by one response."""
    if not adjust:
        return DifficultyState(Direction.HOLD, "adjustment_disabled", level, level)

    if (
        response.correct
        and response.confidence > config.increase_confidence
        and response.latency_seconds < config.fast_seconds
    ):
        if scale.is_max(level):
            return DifficultyState(Direction.HOLD, "already_at_maximum", level, level)
        return DifficultyState(Direction.INCREASE, "high_performance", level, scale.step_up(level))

    if (
        not response.correct
        and response.confidence < config.decrease_confidence
        and response.attempts >= config.decrease_min_attempts
    ):
        if scale.is_min(level):
            return DifficultyState(Direction.HOLD, "already_at_minimum", level, level)
        return DifficultyState(Direction.DECREASE, "struggling", level, scale.step_down(level))

    return DifficultyState(Direction.HOLD, "stable_performance", level, level)


def build_feedback(response: Response, config: DifficultyConfig) -> Feedback:
    if response.correct:
        message = "Excellent work!"
        if response.confidence > config.mastery_confidence:
            message += " You show strong mastery of this concept."
        return Feedback("positive", message)
    return Feedback(
        "constructive",
        "Not quite. Let's review this concept together.",
        ("Review the concept", "Practice similar exercises"),
    )


def response_recommendations(response: Response, config: DifficultyConfig) -> tuple[str, ...]:
    recs = []
    if response.latency_seconds > config.slow_seconds:
        recs.append("Practice similar questions to build speed")
    if response.hints_used > 0:
        recs.append("Try the next similar question without hints")
    return tuple(recs)


class AdaptiveDifficultyController:
    """
    Owns assessment sessions and their difficulty transitions.

    Example:
        >>> controller = AdaptiveDifficultyController()
        >>> session = await controller.start_session("learner-1", "math")
        >>> outcome = await controller.submit_response(session.session_id, response)
        >>> outcome.next_difficulty
        'hard'
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        scale: DifficultyScale | None = None,
        config: DifficultyConfig | None = None,
        questions: QuestionBank | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.store = store or InMemorySessionStore()
        self.scale = scale or DifficultyScale()
        self.config = config or DifficultyConfig()
        self.questions = questions
        self._clock = clock or datetime.now
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self.locks = SessionLocks(self.config.lock_timeout_seconds, self.config.lock_retries)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def initial_difficulty(
        self,
        subject: str,
        session_config: SessionConfig,
        needs: Sequence[DetectedNeed] = (),
    ) -> tuple[str, Optional[DetectedNeed]]:
        """Starting level, one step easier when a relevant need is at least moderate."""
        start = session_config.starting_difficulty or self.scale.default
        if start not in self.scale:
            raise ValidationError(f"unknown starting difficulty {start!r}", field="starting_difficulty")
        relevant = [
            n for n in needs
            if n.severity.rank >= Severity.MODERATE.rank and need_applies_to(n, subject)
        ]
        if not relevant:
            return start, None
        return self.scale.step_down(start), relevant[0]

    async def start_session(
        self,
        learner_id: str,
        subject: str,
        session_config: SessionConfig | None = None,
        needs: Sequence[DetectedNeed] = (),
    ) -> AssessmentSession:
        if not learner_id:
            raise ValidationError("learner_id is required", field="learner_id")
        if not subject:
            raise ValidationError("subject is required", field="subject")
        session_config = session_config or SessionConfig()
        max_questions = session_config.max_questions or self.config.max_questions
        if max_questions < 1:
            raise ValidationError("max_questions must be >= 1", field="max_questions")

        level, lowered_for = self.initial_difficulty(subject, session_config, needs)
        session = AssessmentSession(
            session_id=self._new_id(),
            learner_id=learner_id,
            subject=subject,
            status=SessionStatus.ACTIVE,
            current_difficulty=level,
            starting_difficulty=level,
            max_questions=max_questions,
            adjust_difficulty=session_config.adjust_difficulty,
            started_at=self._clock(),
        )
        await self.store.save(session)

        if lowered_for is not None:
            logger.info(
                f"Session {session.session_id} for {learner_id}/{subject} starts at {level} "
                f"({lowered_for.need_type.value} {lowered_for.severity.value})"
            )
        else:
            logger.info(f"Session {session.session_id} for {learner_id}/{subject} starts at {level}")
        return session

    async def _load(self, session_id: str) -> AssessmentSession:
        session = await self.store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def get_session(self, session_id: str) -> AssessmentSession:
        return await self._load(session_id)

    async def submit_response(self, session_id: str, response: Response) -> ResponseOutcome:
        """
        Record a response and move the session's difficulty.

        Raises:
            ValidationError: malformed response, or the session is full
            SessionNotFound: unknown session id
            SessionClosed: the session is completed
            ConcurrencyConflict: the session lock stayed busy
        """
        validate_response(response)

        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            if not session.is_active:
                raise SessionClosed(session_id)
            if len(session.history) >= session.max_questions:
                raise ValidationError(
                    f"session already has {session.max_questions} responses", field="question_id"
                )

            level = session.current_difficulty
            state = decide_transition(response, level, self.scale, self.config, session.adjust_difficulty)
            session.history.append(
                HistoryEntry(response=response, difficulty=level, transition=state, recorded_at=self._clock())
            )
            session.current_difficulty = state.to_level
            await self.store.save(session)

        if state.direction != Direction.HOLD:
            logger.debug(f"Session {session_id}: {state.from_level} -> {state.to_level} ({state.reason})")

        should_continue = len(session.history) < session.max_questions
        next_question_id = None
        if should_continue and self.questions is not None:
            next_question_id = self.questions.next_question_id(
                session.subject, state.to_level, session.answered_question_ids
            )

        return ResponseOutcome(
            feedback=build_feedback(response, self.config),
            next_difficulty=state.to_level,
            difficulty_state=state,
            next_question_id=next_question_id,
            should_continue=should_continue,
            recommendations=response_recommendations(response, self.config),
        )

    async def complete_session(self, session_id: str) -> AssessmentResults:
        """
        Close the session and aggregate its results.

        Raises:
            SessionNotFound: unknown session id
            SessionClosed: the session was already completed
        """
        async with self.locks.hold(session_id):
            session = await self._load(session_id)
            if not session.is_active:
                raise SessionClosed(session_id)
            session.status = SessionStatus.COMPLETED
            session.completed_at = self._clock()
            await self.store.save(session)

        results = build_results(session, self.config.slow_seconds)
        logger.info(
            f"Session {session_id} completed: {results.correct_answers}/{results.total_questions} "
            f"correct, score {results.score} ({results.mastery_level})"
        )
        return results
