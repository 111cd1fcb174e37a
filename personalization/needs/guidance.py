"""
Recommendations and accommodations attached to each need type.

Accommodation keys use the same vocabulary as ContentItem
accessibility features so need-compatibility scoring can match them.
"""

from __future__ import annotations

from personalization.models import NeedType

RECOMMENDATIONS: dict[NeedType, list[str]] = {
    NeedType.DYSLEXIA: [
        "Use a dyslexia-friendly font",
        "Provide audio for all text",
        "Allow extra reading time",
        "Use text highlighting",
    ],
    NeedType.ADHD: [
        "Schedule breaks every 10-15 minutes",
        "Add frequent interactive elements",
        "Show visual progress indicators",
        "Give step-by-step instructions",
    ],
    NeedType.DYSCALCULIA: [
        "Use virtual manipulatives",
        "Provide a calculator",
        "Teach step-by-step strategies",
        "Use visual representations",
    ],
    NeedType.AUDITORY_PROCESSING: [
        "Provide audio for all content",
        "Use voice narration",
        "Include verbal instructions",
    ],
    NeedType.VISUAL_PROCESSING: [
        "Use images and diagrams",
        "Provide concept maps",
        "Include explanatory videos",
    ],
    NeedType.LANGUAGE_DELAY: [
        "Simplify vocabulary and sentence structure",
        "Pair text with pictures",
        "Check understanding with short questions",
    ],
    NeedType.MOTOR_SKILLS: [
        "Avoid timed input tasks",
        "Offer voice or large-target input",
    ],
}

ACCOMMODATIONS: dict[NeedType, list[str]] = {
    NeedType.DYSLEXIA: ["audio", "dyslexia_font", "text_to_speech", "extended_time"],
    NeedType.ADHD: ["short_segments", "interactive", "visual_aids", "step_by_step"],
    NeedType.DYSCALCULIA: ["manipulatives", "calculator", "step_by_step", "visual_aids"],
    NeedType.AUDITORY_PROCESSING: ["audio", "text_to_speech", "narration"],
    NeedType.VISUAL_PROCESSING: ["visual_aids", "concept_maps", "captions"],
    NeedType.LANGUAGE_DELAY: ["simplified_text", "audio", "visual_aids"],
    NeedType.MOTOR_SKILLS: ["voice_input", "large_targets", "extended_time"],
}


def recommendations_for(need_type: NeedType) -> list[str]:
    return list(RECOMMENDATIONS.get(need_type, []))


def accommodations_for(need_type: NeedType) -> list[str]:
    return list(ACCOMMODATIONS.get(need_type, []))
