"""
Question banks supply the next question id for a session.

The controller only needs ids; question content lives with the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class QuestionRef:
    question_id: str
    subject: str
    difficulty: str
    skill: str | None = None


class QuestionBank(ABC):
    @abstractmethod
    def next_question_id(self, subject: str, difficulty: str, exclude: set[str]) -> str | None:
        """An unanswered question for the subject at the difficulty, or None."""


class InMemoryQuestionBank(QuestionBank):
    """
    Picks the first unanswered question (by id) matching subject and
    difficulty; falls back to any unanswered question in the subject.
    """

    def __init__(self, questions: Iterable[QuestionRef] = ()):
        self._questions = sorted(questions, key=lambda q: q.question_id)

    def add(self, question: QuestionRef) -> None:
        self._questions.append(question)
        self._questions.sort(key=lambda q: q.question_id)

    def next_question_id(self, subject: str, difficulty: str, exclude: set[str]) -> str | None:
        in_subject = [
            q for q in self._questions
            if q.subject.lower() == subject.lower() and q.question_id not in exclude
        ]
        for question in in_subject:
            if question.difficulty == difficulty:
                return question.question_id
        return in_subject[0].question_id if in_subject else None
