"""Business logic shared by the REST API: assessments, results, users and tasks."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
import logging
from threading import Lock

from smarteval.constants.assessment_constants import SUBMIT_GRACE_PERIOD_SECONDS
from smarteval.core.errors import (
    NotAssignedError,
    SubmissionWindowClosed,
    ValidationError,
)
from smarteval.core.grading import grade
from smarteval.core.models import (
    Assessment,
    AssessmentResult,
    Question,
    Task,
    TaskPriority,
    TaskStatus,
    User,
    UserRole,
    WindowStatus,
)
from smarteval.core.results_exporter import results_to_csv
from smarteval.core.roles import can_author_assessments
from smarteval.core.services.assessment_repository import AssessmentRepository
from smarteval.core.services.result_store import ResultStore
from smarteval.core.services.statistics import (
    ActivityDay,
    AssessmentStatistics,
    StudentStatistics,
    activity_heatmap,
    assessment_statistics,
    student_statistics,
)
from smarteval.core.services.task_repository import TaskRepository, TaskStats
from smarteval.core.services.user_directory import UserDirectory
from smarteval.core.time_window import WindowDescription, classify, describe_window
from smarteval.utils.datetime_utils import utc_day, utc_now

logger = logging.getLogger(__name__)


class AssessmentManager:
    """Facade for the services: Users, Assessments, Results and Tasks."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._lock = Lock()
        self._clock = clock

        # Services
        self._users = UserDirectory()
        self._assessments = AssessmentRepository()
        self._results = ResultStore()
        self._tasks = TaskRepository()

    def now(self) -> datetime:
        return self._clock()

    # --- Users ---

    def register_user(self, username: str, email: str, role: UserRole, user_id: str | None = None) -> User:
        with self._lock:
            return self._users.register(username, email, role, user_id=user_id)

    def get_user(self, user_id: str) -> User:
        with self._lock:
            return self._users.get(user_id)

    # --- Assessments ---

    def create_assessment(
        self,
        title: str,
        description: str,
        questions: list[Question],
        start_time: datetime,
        end_time: datetime,
        assigned_students: list[str],
        created_by: str,
    ) -> Assessment:
        with self._lock:
            creator = self._users.find(created_by)
            if creator is not None and not can_author_assessments(creator.role):
                raise PermissionError("Only professors can create assessments.")
            assessment = self._assessments.create(
                title=title,
                description=description,
                questions=questions,
                start_time=start_time,
                end_time=end_time,
                assigned_students=assigned_students,
                created_by=created_by,
                now=self._clock(),
            )
        logger.info(
            "Assessment %s created by %s for %d student(s)",
            assessment.id, created_by, len(assessment.assigned_students),
        )
        return assessment

    def get_assessment(self, assessment_id: str) -> Assessment:
        with self._lock:
            return self._assessments.get(assessment_id)

    def delete_assessment(self, assessment_id: str) -> None:
        with self._lock:
            self._assessments.delete(assessment_id)
            self._results.delete_for_assessment(assessment_id)

    def get_assessments_for_student(self, student_id: str) -> list[Assessment]:
        with self._lock:
            student_id, email = self._resolve_student(student_id)
            return self._assessments.list_assigned_to(student_id, email)

    def get_assessments_for_professor(self, professor_id: str) -> list[Assessment]:
        with self._lock:
            return self._assessments.list_by_creator(professor_id)

    def get_window_status(self, assessment_id: str) -> WindowDescription:
        with self._lock:
            assessment = self._assessments.get(assessment_id)
            return describe_window(self._clock(), assessment.start_time, assessment.end_time)

    # --- Results ---

    def submit_result(self, assessment_id: str, student_id: str, answers: Sequence[int]) -> AssessmentResult:
        with self._lock:
            assessment = self._assessments.get(assessment_id)
            student_id, email = self._resolve_student(student_id)
            if not assessment.is_assigned_to(student_id, email):
                raise NotAssignedError("Assessment is not assigned to this student.")
            if len(answers) != assessment.question_count:
                raise ValidationError(
                    f"Expected {assessment.question_count} answers, received {len(answers)}."
                )

            now = self._clock()
            grace = timedelta(seconds=SUBMIT_GRACE_PERIOD_SECONDS)
            window = classify(now, assessment.start_time, assessment.end_time + grace)
            if window is WindowStatus.FUTURE:
                raise SubmissionWindowClosed("Assessment has not started yet.")
            if window is WindowStatus.PAST:
                logger.warning("Late submission rejected for %s by %s", assessment_id, student_id)
                raise SubmissionWindowClosed("Assessment time limit has passed.")

            score = grade(answers, assessment.questions)
            result = self._results.record(assessment_id, student_id, answers, score, completed_at=now)
        logger.info("Result recorded for %s by %s: %d/%d", assessment_id, student_id, score, assessment.question_count)
        return result

    def find_submission(self, assessment_id: str, student_id: str) -> AssessmentResult | None:
        with self._lock:
            self._assessments.get(assessment_id)
            student_id, _ = self._resolve_student(student_id)
            return self._results.find(assessment_id, student_id)

    def get_results_for_assessment(self, assessment_id: str) -> list[tuple[AssessmentResult, User | None]]:
        """Results joined with the student who submitted them, when known."""
        with self._lock:
            self._assessments.get(assessment_id)
            return [
                (result, self._users.find(result.student_id))
                for result in self._results.list_for_assessment(assessment_id)
            ]

    def get_results_for_student(self, student_id: str) -> list[AssessmentResult]:
        with self._lock:
            student_id, _ = self._resolve_student(student_id)
            return self._results.list_for_student(student_id)

    def get_assessment_statistics(self, assessment_id: str) -> AssessmentStatistics:
        with self._lock:
            assessment = self._assessments.get(assessment_id)
            results = self._results.list_for_assessment(assessment_id)
            return assessment_statistics(results, assessment.question_count, len(assessment.assigned_students))

    def get_student_statistics(self, student_id: str) -> StudentStatistics:
        with self._lock:
            now = self._clock()
            student_id, email = self._resolve_student(student_id)
            assigned = self._assessments.list_assigned_to(student_id, email)
            results = self._results.list_for_student(student_id)
            question_counts = {a.id: a.question_count for a in self._assessments.list_all()}
            past_ids = [
                a.id for a in assigned
                if classify(now, a.start_time, a.end_time) is WindowStatus.PAST
            ]
            return student_statistics(
                results,
                question_counts,
                today=utc_day(now),
                assigned_assessment_ids=[a.id for a in assigned],
                past_assessment_ids=past_ids,
            )

    def get_student_activity(self, student_id: str, weeks: int = 12) -> list[ActivityDay]:
        with self._lock:
            student_id, _ = self._resolve_student(student_id)
            return activity_heatmap(self._results.list_for_student(student_id), utc_day(self._clock()), weeks)

    def export_results_csv(self, assessment_id: str) -> str:
        with self._lock:
            assessment = self._assessments.get(assessment_id)
            results = self._results.list_for_assessment(assessment_id)
            emails = {
                result.student_id: user.email
                for result in results
                if (user := self._users.find(result.student_id)) is not None
            }
            return results_to_csv(results, assessment.question_count, emails)

    # --- Tasks ---

    def create_task(
        self,
        student_id: str,
        title: str,
        start_time: datetime,
        end_time: datetime,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus = TaskStatus.PENDING,
    ) -> Task:
        with self._lock:
            return self._tasks.create(
                student_id, title, start_time, end_time, self._clock(),
                description=description, priority=priority, status=status,
            )

    def get_task(self, task_id: str, student_id: str) -> Task:
        with self._lock:
            return self._tasks.get(task_id, student_id)

    def update_task(
        self,
        task_id: str,
        student_id: str,
        title: str,
        start_time: datetime,
        end_time: datetime,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus | None = None,
    ) -> Task:
        with self._lock:
            return self._tasks.update(
                task_id, student_id, self._clock(), title, start_time, end_time,
                description=description, priority=priority, status=status,
            )

    def delete_task(self, task_id: str, student_id: str) -> None:
        with self._lock:
            self._tasks.delete(task_id, student_id)

    def mark_task_completed(self, task_id: str, student_id: str) -> Task:
        with self._lock:
            return self._tasks.mark_completed(task_id, student_id, self._clock())

    def update_task_status(self, task_id: str, student_id: str, status: TaskStatus) -> Task:
        with self._lock:
            return self._tasks.update_status(task_id, student_id, status, self._clock())

    def list_tasks(self, student_id: str) -> list[Task]:
        with self._lock:
            now = self._clock()
            return self._tasks.sort_for_display(self._tasks.list_by_student(student_id), now)

    def list_tasks_by_status(self, student_id: str, status: TaskStatus) -> list[Task]:
        with self._lock:
            now = self._clock()
            return self._tasks.sort_for_display(self._tasks.list_by_status(student_id, status), now)

    def list_overdue_tasks(self, student_id: str) -> list[Task]:
        with self._lock:
            now = self._clock()
            return self._tasks.sort_for_display(self._tasks.list_overdue(student_id, now), now)

    def list_tasks_due_soon(self, student_id: str) -> list[Task]:
        with self._lock:
            return self._tasks.list_due_soon(student_id, self._clock())

    def get_task_stats(self, student_id: str) -> TaskStats:
        with self._lock:
            return self._tasks.stats(student_id, self._clock())

    # --- Helpers ---

    def _resolve_student(self, identifier: str) -> tuple[str, str | None]:
        """Canonical student id plus email; results are keyed on the id alone.

        Known users resolve to their registered id whether addressed by id or
        email, in any case. Unknown identifiers are lowercased.
        """
        user = self._users.resolve(identifier)
        if user is not None:
            return user.id, user.email
        return identifier.strip().lower(), None
