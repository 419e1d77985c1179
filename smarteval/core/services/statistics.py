"""Service functions deriving dashboard statistics from stored results."""

from __future__ import annotations

from collections import Counter
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from smarteval.constants.assessment_constants import (
    FAILING_GRADE,
    GRADE_THRESHOLDS,
    MAX_ACTIVITY_LEVEL,
    SUCCESS_THRESHOLD_PERCENTAGE,
)
from smarteval.core.grading import letter_grade, percentage
from smarteval.core.models import AssessmentResult
from smarteval.utils.datetime_utils import utc_day

GRADE_LETTERS: tuple[str, ...] = tuple(letter for letter, _ in GRADE_THRESHOLDS) + (FAILING_GRADE,)


@dataclass(slots=True)
class AssessmentStatistics:
    """Snapshot of how one assessment went."""

    question_count: int
    total_students: int
    submitted: int
    submission_rate: float = 0.0
    average_score: float = 0.0
    average_percentage: float = 0.0
    highest_score: int = 0
    lowest_score: int = 0
    grade_distribution: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class StudentStatistics:
    """Snapshot of one student's progress across assessments."""

    total_completed: int
    success_rate: int = 0
    average_percentage: int = 0
    completion_rate: int = 0
    current_streak: int = 0
    best_streak: int = 0


@dataclass(slots=True)
class ActivityDay:
    day: date
    count: int
    level: int


def grade_distribution(results: Iterable[AssessmentResult], question_count: int) -> dict[str, int]:
    """Bucket every result into exactly one letter grade."""
    distribution = {letter: 0 for letter in GRADE_LETTERS}
    for result in results:
        distribution[letter_grade(percentage(result.score, question_count))] += 1
    return distribution


def assessment_statistics(
    results: Sequence[AssessmentResult],
    question_count: int,
    assigned_count: int,
) -> AssessmentStatistics:
    stats = AssessmentStatistics(
        question_count=question_count,
        total_students=assigned_count,
        submitted=len(results),
        grade_distribution=grade_distribution(results, question_count),
    )
    if assigned_count > 0:
        stats.submission_rate = len(results) * 100 / assigned_count
    if not results:
        return stats

    scores = [result.score for result in results]
    stats.average_score = sum(scores) / len(scores)
    stats.average_percentage = percentage(stats.average_score, question_count)
    stats.highest_score = max(scores)
    stats.lowest_score = min(scores)
    return stats


def compute_streaks(completion_days: Iterable[date], today: date) -> tuple[int, int]:
    """Return ``(current_streak, best_streak)`` over distinct completion days.

    The current streak only counts when the latest completion (up to today)
    happened today or yesterday.
    """
    days = sorted(set(completion_days))
    if not days:
        return 0, 0

    best = run = 1
    for previous, current in zip(days, days[1:]):
        if (current - previous).days == 1:
            run += 1
        else:
            run = 1
        best = max(best, run)

    past_days = [day for day in days if day <= today]
    current_streak = 0
    if past_days and (today - past_days[-1]).days <= 1:
        current_streak = 1
        for later, earlier in zip(reversed(past_days), reversed(past_days[:-1])):
            if (later - earlier).days != 1:
                break
            current_streak += 1

    return current_streak, max(best, current_streak)


def student_statistics(
    results: Sequence[AssessmentResult],
    question_counts: Mapping[str, int],
    today: date,
    assigned_assessment_ids: Collection[str] = (),
    past_assessment_ids: Collection[str] = (),
) -> StudentStatistics:
    """Summarize a student's results.

    ``question_counts`` maps assessment ids to their question count. A result
    whose assessment is unknown counts as a completion but contributes no
    success and no percentage.
    """
    current_streak, best_streak = compute_streaks(
        (utc_day(result.completed_at) for result in results), today
    )
    stats = StudentStatistics(
        total_completed=len(results),
        current_streak=current_streak,
        best_streak=best_streak,
    )

    if assigned_assessment_ids:
        completed_ids = {result.assessment_id for result in results}
        completed_past = [a for a in past_assessment_ids if a in completed_ids]
        stats.completion_rate = min(100, round(len(completed_past) * 100 / len(assigned_assessment_ids)))

    if not results:
        return stats

    percentages = [
        percentage(result.score, question_counts[result.assessment_id])
        for result in results
        if result.assessment_id in question_counts
    ]
    successful = sum(1 for value in percentages if value >= SUCCESS_THRESHOLD_PERCENTAGE)
    stats.success_rate = min(100, round(successful * 100 / len(results)))
    stats.average_percentage = min(100, round(sum(percentages) / len(results)))
    return stats


def activity_heatmap(
    results: Iterable[AssessmentResult],
    today: date,
    weeks: int = 12,
) -> list[ActivityDay]:
    """Completions per UTC day for the last ``weeks`` weeks, oldest first."""
    counts = Counter(utc_day(result.completed_at) for result in results)
    first_day = today - timedelta(days=weeks * 7 - 1)
    heatmap: list[ActivityDay] = []
    for offset in range(weeks * 7):
        day = first_day + timedelta(days=offset)
        count = counts.get(day, 0)
        heatmap.append(ActivityDay(day=day, count=count, level=min(count, MAX_ACTIVITY_LEVEL)))
    return heatmap
