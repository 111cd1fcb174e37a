"""
Assessment Session API Router.

Endpoints:
- POST /sessions                        start an adaptive assessment
- GET  /sessions/{session_id}           session state and history
- POST /sessions/{session_id}/responses submit a response, get the next difficulty
- POST /sessions/{session_id}/complete  close the session and get results
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from personalization.api.dependencies import get_engine
from personalization.assessment import SessionConfig
from personalization.engine import PersonalizationEngine
from personalization.models import AssessmentSession, Response

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class SessionCreateRequest(BaseModel):
    """Request model for starting an assessment session."""

    learner_id: str = Field(..., min_length=1, description="Learner identifier")
    subject: str = Field(..., min_length=1, description="Assessed subject, e.g. 'math'")
    starting_difficulty: str | None = Field(None, description="Starting level (default: medium)")
    max_questions: int | None = Field(None, ge=1, le=200, description="Responses before the session is full")
    adjust_difficulty: bool = Field(True, description="Move difficulty after each response")


class DifficultyStateModel(BaseModel):
    direction: str
    reason: str
    from_level: str
    to_level: str


class HistoryEntryModel(BaseModel):
    question_id: str
    correct: bool
    latency_seconds: float
    confidence: float
    hints_used: int
    attempts: int
    difficulty: str
    transition: DifficultyStateModel
    recorded_at: datetime


class SessionResponse(BaseModel):
    """Response model for an assessment session."""

    session_id: str
    learner_id: str
    subject: str
    status: str
    current_difficulty: str
    starting_difficulty: str
    max_questions: int
    responses: int
    history: list[HistoryEntryModel]
    started_at: datetime
    completed_at: datetime | None


class ResponseSubmitRequest(BaseModel):
    """Request model for one answer."""

    question_id: str = Field(..., min_length=1, description="Question being answered")
    correct: bool = Field(..., description="Whether the answer was correct")
    latency_seconds: float = Field(..., ge=0, description="Time taken to answer")
    confidence: float = Field(..., ge=0, le=1, description="Self-reported confidence (0-1)")
    hints_used: int = Field(0, ge=0)
    attempts: int = Field(1, ge=1)


class FeedbackModel(BaseModel):
    kind: str
    message: str
    suggestions: list[str]


class ResponseOutcomeResponse(BaseModel):
    feedback: FeedbackModel
    next_difficulty: str
    difficulty_state: DifficultyStateModel
    next_question_id: str | None
    should_continue: bool
    recommendations: list[str]


class AssessmentResultsResponse(BaseModel):
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


def _session_to_response(session: AssessmentSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        learner_id=session.learner_id,
        subject=session.subject,
        status=session.status.value,
        current_difficulty=session.current_difficulty,
        starting_difficulty=session.starting_difficulty,
        max_questions=session.max_questions,
        responses=len(session.history),
        history=[
            HistoryEntryModel(
                **entry.response.to_dict(),
                difficulty=entry.difficulty,
                transition=DifficultyStateModel(**entry.transition.to_dict()),
                recorded_at=entry.recorded_at,
            )
            for entry in session.history
        ],
        started_at=session.started_at,
        completed_at=session.completed_at,
    )


# ========================================
# Endpoints
# ========================================


@router.post("", response_model=SessionResponse, status_code=201, summary="Start assessment session")
async def start_session(
    request: SessionCreateRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> SessionResponse:
    """
    Start an adaptive assessment.

    The starting level drops one step when the learner has a relevant
    need of at least moderate severity.
    """
    session = await engine.start_session(
        request.learner_id,
        request.subject,
        SessionConfig(
            starting_difficulty=request.starting_difficulty,
            max_questions=request.max_questions,
            adjust_difficulty=request.adjust_difficulty,
        ),
    )
    return _session_to_response(session)


@router.get("/{session_id}", response_model=SessionResponse, summary="Get session state")
async def get_session(
    session_id: str,
    engine: PersonalizationEngine = Depends(get_engine),
) -> SessionResponse:
    return _session_to_response(await engine.get_session(session_id))


@router.post(
    "/{session_id}/responses",
    response_model=ResponseOutcomeResponse,
    summary="Submit response",
)
async def submit_response(
    session_id: str,
    request: ResponseSubmitRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> ResponseOutcomeResponse:
    """Record a response; the outcome carries feedback and the next difficulty."""
    outcome = await engine.submit_response(session_id, Response(**request.model_dump()))
    return ResponseOutcomeResponse(
        feedback=FeedbackModel(**outcome.feedback.to_dict()),
        next_difficulty=outcome.next_difficulty,
        difficulty_state=DifficultyStateModel(**outcome.difficulty_state.to_dict()),
        next_question_id=outcome.next_question_id,
        should_continue=outcome.should_continue,
        recommendations=list(outcome.recommendations),
    )


@router.post(
    "/{session_id}/complete",
    response_model=AssessmentResultsResponse,
    summary="Complete session",
)
async def complete_session(
    session_id: str,
    engine: PersonalizationEngine = Depends(get_engine),
) -> AssessmentResultsResponse:
    results = await engine.complete_session(session_id)
    return AssessmentResultsResponse(**results.to_dict())
