"""
Aggregation of a finished assessment session.

| Score  | Mastery level |
|--------|---------------|
| < 60   | beginner      |
| < 75   | intermediate  |
| < 90   | advanced      |
| >= 90  | expert        |
"""

from __future__ import annotations

from personalization.models import AssessmentResults, AssessmentSession, Response

HIGH_ACCURACY_SHARE = 0.8
REINFORCEMENT_ERROR_SHARE = 0.3
GOOD_SPEED_SECONDS = 60.0


def mastery_level(score: int) -> str:
    if score < 60:
        return "beginner"
    if score < 75:
        return "intermediate"
    if score < 90:
        return "advanced"
    return "expert"


def analyze_strengths(responses: list[Response]) -> list[str]:
    if not responses:
        return []
    strengths = []
    correct = sum(1 for r in responses if r.correct)
    if correct > len(responses) * HIGH_ACCURACY_SHARE:
        strengths.append("High accuracy")
    if all(r.latency_seconds < GOOD_SPEED_SECONDS for r in responses):
        strengths.append("Good response speed")
    return strengths


def analyze_weaknesses(responses: list[Response], slow_seconds: float) -> list[str]:
    weaknesses = []
    incorrect = sum(1 for r in responses if not r.correct)
    if incorrect > len(responses) * REINFORCEMENT_ERROR_SHARE:
        weaknesses.append("Needs reinforcement of core concepts")
    if any(r.latency_seconds > slow_seconds for r in responses):
        weaknesses.append("Struggles with response time")
    return weaknesses


def final_recommendations(score: int) -> list[str]:
    if score < 70:
        return ["Review fundamental concepts", "Practice basic exercises"]
    if score < 85:
        return ["Reinforce specific areas", "Practice more complex problems"]
    return ["Explore advanced concepts", "Apply knowledge in real-world contexts"]


def learning_path(subject: str, level: str, final_difficulty: str, weaknesses: list[str]) -> list[str]:
    """Ordered activities, starting with remediation where needed."""
    path = []
    if level == "beginner":
        path.append(f"Reinforcement lesson on {subject} fundamentals")
    if "Needs reinforcement of core concepts" in weaknesses:
        path.append(f"Guided practice on core {subject} concepts")
    if "Struggles with response time" in weaknesses:
        path.append("Timed fluency practice")
    path.append(f"Practice exercises at {final_difficulty} difficulty")
    path.append("Follow-up assessment")
    if level in ("advanced", "expert"):
        path.append(f"Advanced {subject} content")
    return path


def next_steps(subject: str, level: str, weaknesses: list[str]) -> list[str]:
    steps = []
    if level in ("beginner", "intermediate"):
        steps.append(f"Complete a reinforcement lesson in {subject}")
    if weaknesses:
        steps.append("Practice exercises targeting: " + ", ".join(w.lower() for w in weaknesses))
    else:
        steps.append(f"Move on to the next {subject} unit")
    steps.append("Take a follow-up assessment")
    return steps


def build_results(session: AssessmentSession, slow_seconds: float = 120.0) -> AssessmentResults:
    """Aggregate a session's history; an empty session scores 0."""
    responses = [entry.response for entry in session.history]
    total = len(responses)
    correct = sum(1 for r in responses if r.correct)
    score = round(correct / total * 100) if total else 0
    level = mastery_level(score)
    weaknesses = analyze_weaknesses(responses, slow_seconds)

    return AssessmentResults(
        session_id=session.session_id,
        learner_id=session.learner_id,
        subject=session.subject,
        total_questions=total,
        correct_answers=correct,
        score=score,
        time_spent_seconds=sum(r.latency_seconds for r in responses),
        difficulty_progression=[entry.transition.direction.value for entry in session.history],
        final_difficulty=session.current_difficulty,
        strengths=analyze_strengths(responses),
        weaknesses=weaknesses,
        recommendations=final_recommendations(score),
        mastery_level=level,
        learning_path=learning_path(session.subject, level, session.current_difficulty, weaknesses),
        next_steps=next_steps(session.subject, level, weaknesses),
    )
