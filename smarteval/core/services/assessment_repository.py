"""Service for validating and storing assessments."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from uuid import uuid4

from smarteval.constants.assessment_constants import (
    MIN_ASSESSMENT_DURATION_SECONDS,
    MIN_OPTIONS_PER_QUESTION,
    PAST_START_BUFFER_SECONDS,
)
from smarteval.core.errors import NotFoundError, ValidationError
from smarteval.core.models import Assessment, Question
from smarteval.utils.datetime_utils import ensure_utc


class AssessmentRepository:
    """Holds created assessments. Question order is fixed at creation."""

    def __init__(self) -> None:
        self._assessments: dict[str, Assessment] = {}

    def create(
        self,
        title: str,
        description: str,
        questions: list[Question],
        start_time: datetime,
        end_time: datetime,
        assigned_students: list[str],
        created_by: str,
        now: datetime,
    ) -> Assessment:
        cleaned_title = self.validate_title(title, created_by)
        start_time, end_time = self.validate_window(start_time, end_time, now)
        prepared = self.prepare_questions(questions)

        assessment = Assessment(
            id=uuid4().hex,
            title=cleaned_title,
            description=description.strip(),
            questions=prepared,
            start_time=start_time,
            end_time=end_time,
            created_by=created_by,
            assigned_students=self.normalize_students(assigned_students),
            created_at=ensure_utc(now),
        )
        self._assessments[assessment.id] = assessment
        return assessment

    def get(self, assessment_id: str) -> Assessment:
        assessment = self._assessments.get(assessment_id)
        if assessment is None:
            raise NotFoundError("Assessment not found.")
        return assessment

    def list_all(self) -> list[Assessment]:
        return sorted(self._assessments.values(), key=lambda a: a.start_time)

    def list_by_creator(self, professor_id: str) -> list[Assessment]:
        return [a for a in self.list_all() if a.created_by == professor_id]

    def list_assigned_to(self, *identifiers: str | None) -> list[Assessment]:
        return [a for a in self.list_all() if a.is_assigned_to(*identifiers)]

    def delete(self, assessment_id: str) -> None:
        if self._assessments.pop(assessment_id, None) is None:
            raise NotFoundError("Assessment not found.")

    @classmethod
    def validate_draft(
        cls,
        title: str,
        questions: Sequence[Question],
        start_time: datetime,
        end_time: datetime,
        assigned_students: Sequence[str],
        created_by: str,
        now: datetime,
    ) -> None:
        """Run every creation check without storing anything."""
        cls.validate_title(title, created_by)
        cls.validate_window(start_time, end_time, now)
        cls.prepare_questions(questions)
        cls.normalize_students(assigned_students)

    @staticmethod
    def validate_title(title: str, created_by: str) -> str:
        cleaned = title.strip()
        if not cleaned:
            raise ValidationError("Title is required.")
        if not created_by:
            raise ValidationError("Assessment must have a creator.")
        return cleaned

    @staticmethod
    def validate_window(start_time: datetime, end_time: datetime, now: datetime) -> tuple[datetime, datetime]:
        start_time, end_time, now = ensure_utc(start_time), ensure_utc(end_time), ensure_utc(now)
        if start_time < now - timedelta(seconds=PAST_START_BUFFER_SECONDS):
            raise ValidationError("Start time cannot be more than 5 minutes in the past.")
        if end_time <= start_time:
            raise ValidationError("End time must be after start time.")
        if (end_time - start_time).total_seconds() < MIN_ASSESSMENT_DURATION_SECONDS:
            raise ValidationError("Assessment must be at least 5 minutes long.")
        return start_time, end_time

    @staticmethod
    def normalize_students(students: Sequence[str]) -> list[str]:
        normalized: list[str] = []
        seen: set[str] = set()
        for entry in students:
            cleaned = entry.strip()
            if not cleaned:
                raise ValidationError("Student entries cannot be empty.")
            key = cleaned.lower()
            if key in seen:
                raise ValidationError(f"Student {cleaned} already added to the assessment.")
            seen.add(key)
            normalized.append(cleaned)
        if not normalized:
            raise ValidationError("Please assign at least one student.")
        return normalized

    @classmethod
    def prepare_questions(cls, questions: Sequence[Question]) -> list[Question]:
        prepared = [cls._prepare_question(index, q) for index, q in enumerate(questions)]
        if not prepared:
            raise ValidationError("Assessment must contain at least one question.")
        return prepared

    @staticmethod
    def _prepare_question(index: int, question: Question) -> Question:
        cleaned_text = question.question_text.strip()
        if not cleaned_text:
            raise ValidationError(f"Question {index + 1} text must not be empty.")
        if len(question.options) < MIN_OPTIONS_PER_QUESTION:
            raise ValidationError(f"Question {index + 1} needs at least {MIN_OPTIONS_PER_QUESTION} options.")
        options = [option.strip() for option in question.options]
        if any(not option for option in options):
            raise ValidationError(f"Question {index + 1} has an empty option.")
        if not 0 <= question.correct_answer < len(options):
            raise ValidationError(f"Question {index + 1} correct answer is out of range.")
        return Question(
            id=f"q{index}",
            question_text=cleaned_text,
            options=options,
            correct_answer=question.correct_answer,
        )
