"""Learning profile: style, pace, strengths and challenges from a signal vector."""

from __future__ import annotations

from personalization.models import DetectedNeed, LearnerSignalVector, LearningProfile

STYLE_TIE_MARGIN = 0.05

STYLE_RECOMMENDATIONS = {
    "visual": ["Use diagrams and concept maps", "Include explanatory videos"],
    "auditory": ["Provide voice narration", "Include educational podcasts"],
    "kinesthetic": ["Include interactive activities", "Use virtual simulations"],
    "mixed": ["Combine visual, audio and hands-on formats"],
}

PACE_RECOMMENDATIONS = {
    "slow": ["Allow extra time to complete tasks", "Split content into smaller sections"],
    "fast": ["Provide additional content", "Offer optional challenges"],
    "moderate": [],
}


def learning_style(vector: LearnerSignalVector) -> str:
    preferences = sorted(
        (
            (vector.get("visual_preference"), "visual"),
            (vector.get("audio_preference"), "auditory"),
            (vector.get("kinesthetic_preference"), "kinesthetic"),
        ),
        reverse=True,
    )
    (top, style), (second, _) = preferences[0], preferences[1]
    if top - second <= STYLE_TIE_MARGIN:
        return "mixed"
    return style


def learning_pace(vector: LearnerSignalVector) -> str:
    speed = vector.get("processing_speed")
    if speed < 0.4:
        return "slow"
    if speed > 0.7:
        return "fast"
    return "moderate"


def build_learning_profile(vector: LearnerSignalVector, needs: list[DetectedNeed]) -> LearningProfile:
    raw = vector.get_raw
    strengths: list[str] = []
    challenges: list[str] = []

    comprehension = raw("reading_comprehension")
    if comprehension is not None and comprehension > 0.8:
        strengths.append("Strong reading comprehension")
    math_accuracy = raw("math_accuracy")
    if math_accuracy is not None and math_accuracy > 0.8:
        strengths.append("Accurate in mathematics")
    completion = raw("task_completion")
    if completion is not None and completion > 0.9:
        strengths.append("High task completion rate")

    wpm = raw("reading_speed_wpm")
    if wpm is not None and wpm < 80:
        challenges.append("Slow reading speed")
    span = raw("attention_span_minutes")
    if span is not None and span < 10:
        challenges.append("Limited attention span")
    help_requests = raw("help_requests")
    if help_requests is not None and help_requests > 5:
        challenges.append("Frequently needs help")

    style = learning_style(vector)
    pace = learning_pace(vector)
    recommendations: dict[str, None] = {}
    for item in STYLE_RECOMMENDATIONS[style] + PACE_RECOMMENDATIONS[pace]:
        recommendations.setdefault(item, None)
    for need in needs:
        for item in need.recommendations:
            recommendations.setdefault(item, None)

    return LearningProfile(
        learning_style=style,
        pace=pace,
        strengths=strengths,
        challenges=challenges,
        recommendations=list(recommendations),
    )
