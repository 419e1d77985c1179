"""Utilities for exporting assessment results as CSV."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import csv
import io
from pathlib import Path

from smarteval.core.grading import percentage
from smarteval.core.models import AssessmentResult
from smarteval.utils.datetime_utils import ensure_utc

CSV_HEADER = ("Student ID", "Student Email", "Score", "Percentage", "Completed At")


def results_to_csv(
    results: Sequence[AssessmentResult],
    question_count: int,
    student_emails: Mapping[str, str] | None = None,
) -> str:
    """Render one row per result, header first."""
    emails = student_emails or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for result in results:
        writer.writerow(
            (
                result.student_id,
                emails.get(result.student_id, ""),
                result.score,
                f"{percentage(result.score, question_count):.1f}",
                ensure_utc(result.completed_at).isoformat(),
            )
        )
    return buffer.getvalue()


def save_results_to_file(
    file_path: Path,
    results: Sequence[AssessmentResult],
    question_count: int,
    student_emails: Mapping[str, str] | None = None,
) -> None:
    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(results_to_csv(results, question_count, student_emails), encoding="utf-8")
