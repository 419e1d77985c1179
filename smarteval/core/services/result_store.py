"""Service for storing graded results, one per assessment and student."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import uuid4

from smarteval.core.errors import DuplicateSubmissionError
from smarteval.core.models import AssessmentResult
from smarteval.utils.datetime_utils import ensure_utc


class ResultStore:
    """Keeps results keyed by ``(assessment_id, student_id)``."""

    def __init__(self) -> None:
        self._results: dict[tuple[str, str], AssessmentResult] = {}

    def record(
        self,
        assessment_id: str,
        student_id: str,
        answers: Sequence[int],
        score: int,
        completed_at: datetime,
    ) -> AssessmentResult:
        key = (assessment_id, student_id)
        if key in self._results:
            raise DuplicateSubmissionError("Assessment already submitted by this student.")
        result = AssessmentResult(
            id=uuid4().hex,
            assessment_id=assessment_id,
            student_id=student_id,
            answers=tuple(answers),
            score=score,
            completed_at=ensure_utc(completed_at),
        )
        self._results[key] = result
        return result

    def find(self, assessment_id: str, student_id: str) -> AssessmentResult | None:
        return self._results.get((assessment_id, student_id))

    def list_for_assessment(self, assessment_id: str) -> list[AssessmentResult]:
        return sorted(
            (r for r in self._results.values() if r.assessment_id == assessment_id),
            key=lambda r: r.completed_at,
        )

    def list_for_student(self, student_id: str) -> list[AssessmentResult]:
        return sorted(
            (r for r in self._results.values() if r.student_id == student_id),
            key=lambda r: r.completed_at,
        )

    def delete_for_assessment(self, assessment_id: str) -> None:
        for key in [k for k in self._results if k[0] == assessment_id]:
            del self._results[key]
