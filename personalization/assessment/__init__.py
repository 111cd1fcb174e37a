"""
Adaptive assessment: difficulty scale, per-session controller, session
stores, question banks and result aggregation.
"""

from personalization.assessment.controller import (
    AdaptiveDifficultyController,
    DifficultyConfig,
    Feedback,
    ResponseOutcome,
    SessionConfig,
    decide_transition,
    validate_response,
)
from personalization.assessment.locks import SessionLocks
from personalization.assessment.questions import InMemoryQuestionBank, QuestionBank, QuestionRef
from personalization.assessment.results import build_results, mastery_level
from personalization.assessment.scale import DifficultyScale
from personalization.assessment.store import InMemorySessionStore, JsonSessionStore, SessionStore

__all__ = [
    "AdaptiveDifficultyController",
    "DifficultyConfig",
    "DifficultyScale",
    "Feedback",
    "InMemoryQuestionBank",
    "InMemorySessionStore",
    "JsonSessionStore",
    "QuestionBank",
    "QuestionRef",
    "ResponseOutcome",
    "SessionConfig",
    "SessionLocks",
    "SessionStore",
    "build_results",
    "decide_transition",
    "mastery_level",
    "validate_response",
]
