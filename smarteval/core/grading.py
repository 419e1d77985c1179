"""Scoring of submitted answers against the answer key."""

from __future__ import annotations

from collections.abc import Sequence

from smarteval.constants.assessment_constants import FAILING_GRADE, GRADE_THRESHOLDS
from smarteval.core.models import Question


def grade(answers: Sequence[int], questions: Sequence[Question]) -> int:
    """Count positions where the submitted index equals the correct answer.

    Unanswered slots, out-of-range indices and positions beyond either
    sequence never match. There is no partial credit.
    """
    return sum(
        1
        for answer, question in zip(answers, questions)
        if answer == question.correct_answer
    )


def percentage(score: int, question_count: int) -> float:
    """Score as a percentage of the full paper, not of the answered questions."""
    if question_count <= 0:
        return 0.0
    return score * 100 / question_count


def letter_grade(percent: float) -> str:
    for letter, threshold in GRADE_THRESHOLDS:
        if percent >= threshold:
            return letter
    return FAILING_GRADE
