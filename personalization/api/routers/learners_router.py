"""
Learner API Router.

Endpoints:
- POST /learners/{learner_id}/interactions      append a telemetry sample
- POST /learners/{learner_id}/recommendations   ranked, diversified content
- GET  /learners/{learner_id}/needs             detected needs and learning profile
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from personalization.api.dependencies import get_engine
from personalization.engine import PersonalizationEngine
from personalization.models import (
    CandidateConstraints,
    ContentDifficulty,
    InteractionSample,
    RecommendationContext,
)

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ReadingMetricsModel(BaseModel):
    speed_wpm: float = Field(..., ge=0, description="Reading speed in words per minute")
    accuracy: float = Field(..., ge=0, le=1, description="Share of words read correctly")
    comprehension: float | None = Field(None, ge=0, le=1)
    substitutions: int = Field(0, ge=0)
    omissions: int = Field(0, ge=0)
    insertions: int = Field(0, ge=0)
    reversals: int = Field(0, ge=0)
    transpositions: int = Field(0, ge=0)


class MathMetricsModel(BaseModel):
    accuracy: float = Field(..., ge=0, le=1)
    speed_ppm: float = Field(..., ge=0, description="Problems per minute")
    calculation_errors: int = Field(0, ge=0)
    procedural_errors: int = Field(0, ge=0)
    conceptual_errors: int = Field(0, ge=0)
    visual_errors: int = Field(0, ge=0)


class AttentionMetricsModel(BaseModel):
    span_minutes: float = Field(..., ge=0)
    response_time_mean_s: float = Field(0.0, ge=0)
    response_time_variance: float = Field(0.0, ge=0)
    response_time_outliers: int = Field(0, ge=0)
    task_completion: float = Field(1.0, ge=0, le=1)
    help_requests: int = Field(0, ge=0)
    session_minutes: float = Field(0.0, ge=0)
    breaks: int = Field(0, ge=0)


class SensoryPreferencesModel(BaseModel):
    audio: float = Field(0.5, ge=0, le=1)
    visual: float = Field(0.5, ge=0, le=1)
    kinesthetic: float = Field(0.5, ge=0, le=1)


class InteractionRequest(BaseModel):
    """Request model for one telemetry sample."""

    timestamp: datetime | None = Field(None, description="When the interaction happened (default: now)")
    reading: ReadingMetricsModel | None = None
    math: MathMetricsModel | None = None
    attention: AttentionMetricsModel | None = None
    sensory: SensoryPreferencesModel | None = None
    device_type: str | None = None
    context_tags: list[str] = Field(default_factory=list)
    content_id: str | None = Field(None, description="Content the interaction was about")
    engagement: float | None = Field(None, ge=0, le=1, description="Outcome for content_id (0-1)")


class InteractionResponse(BaseModel):
    learner_id: str
    log_length: int


class ConstraintsModel(BaseModel):
    max_minutes: float | None = Field(None, gt=0, description="Maximum estimated duration")
    content_types: list[str] = Field(default_factory=list, description="Allowed content types")
    difficulty: ContentDifficulty | None = None
    accessibility_required: list[str] = Field(default_factory=list, description="Required features")
    min_accessibility_score: float | None = Field(None, ge=0, le=1)
    exclude_content_ids: list[str] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    """Request model for recommendations."""

    subject: str = Field("general", description="Subject to recommend content for")
    time_of_day: str | None = None
    device_type: str | None = None
    session_number: int = Field(0, ge=0)
    current_content_id: str | None = None
    cognitive_load: float | None = Field(None, ge=0, le=1, description="Current cognitive load (0-1)")
    goals: list[str] = Field(default_factory=list)
    constraints: ConstraintsModel = Field(default_factory=ConstraintsModel)


class RecommendationModel(BaseModel):
    content_id: str
    fused_score: float
    rationale: list[str]
    content_type: str
    difficulty: str
    title: str
    metadata: dict[str, Any]


class RecommendationListResponse(BaseModel):
    learner_id: str
    subject: str
    count: int
    recommendations: list[RecommendationModel]


class DetectedNeedModel(BaseModel):
    type: str
    severity: str
    confidence: float
    evidence: list[str]
    recommendations: list[str]
    accommodations: list[str]
    sources: list[str]


class LearningProfileModel(BaseModel):
    learning_style: str
    pace: str
    strengths: list[str]
    challenges: list[str]
    recommendations: list[str]


class NeedProfileResponse(BaseModel):
    learner_id: str
    needs: list[DetectedNeedModel]
    learning_profile: LearningProfileModel
    vector_version: int
    overall_confidence: float
    analyzed_at: datetime
    next_assessment_at: datetime


# ========================================
# Endpoints
# ========================================


@router.post(
    "/{learner_id}/interactions",
    response_model=InteractionResponse,
    status_code=201,
    summary="Record interaction",
)
async def submit_interaction(
    learner_id: str,
    request: InteractionRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> InteractionResponse:
    """Append one telemetry sample to the learner's log."""
    data = request.model_dump()
    data["learner_id"] = learner_id
    data["timestamp"] = request.timestamp or datetime.now()
    length = await engine.submit_interaction(learner_id, InteractionSample.from_dict(data))
    return InteractionResponse(learner_id=learner_id, log_length=length)


@router.post(
    "/{learner_id}/recommendations",
    response_model=RecommendationListResponse,
    summary="Get recommendations",
)
async def get_recommendations(
    learner_id: str,
    request: RecommendationRequest,
    engine: PersonalizationEngine = Depends(get_engine),
) -> RecommendationListResponse:
    """
    Ranked and diversified recommendations.

    An empty list means no eligible content is available.
    """
    c = request.constraints
    constraints = CandidateConstraints(
        max_minutes=c.max_minutes,
        content_types=tuple(c.content_types),
        difficulty=c.difficulty,
        accessibility_required=tuple(c.accessibility_required),
        min_accessibility_score=c.min_accessibility_score,
        exclude_content_ids=tuple(c.exclude_content_ids),
    )
    context = RecommendationContext(
        subject=request.subject,
        time_of_day=request.time_of_day,
        device_type=request.device_type,
        session_number=request.session_number,
        current_content_id=request.current_content_id,
        cognitive_load=request.cognitive_load,
        goals=tuple(request.goals),
    )
    recs = await engine.get_recommendations(learner_id, context, constraints)
    return RecommendationListResponse(
        learner_id=learner_id,
        subject=request.subject,
        count=len(recs),
        recommendations=[RecommendationModel(**r.to_dict()) for r in recs],
    )


@router.get(
    "/{learner_id}/needs",
    response_model=NeedProfileResponse,
    summary="Get need profile",
)
async def get_needs(
    learner_id: str,
    engine: PersonalizationEngine = Depends(get_engine),
) -> NeedProfileResponse:
    """Detected needs (cached until new telemetry arrives) and learning profile."""
    profile = await engine.get_need_profile(learner_id)
    lp = profile.learning_profile
    return NeedProfileResponse(
        learner_id=profile.learner_id,
        needs=[DetectedNeedModel(**n.to_dict()) for n in profile.needs],
        learning_profile=LearningProfileModel(
            learning_style=lp.learning_style,
            pace=lp.pace,
            strengths=lp.strengths,
            challenges=lp.challenges,
            recommendations=lp.recommendations,
        ),
        vector_version=profile.vector_version,
        overall_confidence=profile.overall_confidence,
        analyzed_at=profile.analyzed_at,
        next_assessment_at=profile.next_assessment_at,
    )
