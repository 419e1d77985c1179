"""Service for the student task tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import uuid4

from smarteval.constants.task_constants import DUE_SOON_WINDOW_HOURS
from smarteval.core.errors import NotFoundError, ValidationError
from smarteval.core.models import Task, TaskPriority, TaskStatus
from smarteval.utils.datetime_utils import ensure_utc


@dataclass(slots=True)
class TaskStats:
    pending: int = 0
    ongoing: int = 0
    completed: int = 0
    overdue: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.ongoing + self.completed


class TaskRepository:
    """Stores tasks; every lookup is scoped to the owning student."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def create(
        self,
        student_id: str,
        title: str,
        start_time: datetime,
        end_time: datetime,
        now: datetime,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus = TaskStatus.PENDING,
    ) -> Task:
        now = ensure_utc(now)
        start_time, end_time = self.validate_window(start_time, end_time, now)
        task = Task(
            id=uuid4().hex,
            student_id=student_id,
            title=self.validate_title(title),
            description=self._clean_description(description),
            start_time=start_time,
            end_time=end_time,
            status=status,
            priority=priority,
            created_at=now,
            updated_at=now,
            completed_at=now if status is TaskStatus.COMPLETED else None,
        )
        self._tasks[task.id] = task
        return task

    def get(self, task_id: str, student_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None or task.student_id != student_id:
            raise NotFoundError("Task not found.")
        return task

    def update(
        self,
        task_id: str,
        student_id: str,
        now: datetime,
        title: str,
        start_time: datetime,
        end_time: datetime,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus | None = None,
    ) -> Task:
        task = self.get(task_id, student_id)
        task.start_time, task.end_time = self.validate_window(start_time, end_time)
        task.title = self.validate_title(title)
        task.description = self._clean_description(description)
        task.priority = priority
        if status is not None:
            self._apply_status(task, status, now)
        task.updated_at = ensure_utc(now)
        return task

    def delete(self, task_id: str, student_id: str) -> None:
        self.get(task_id, student_id)
        del self._tasks[task_id]

    def mark_completed(self, task_id: str, student_id: str, now: datetime) -> Task:
        return self.update_status(task_id, student_id, TaskStatus.COMPLETED, now)

    def update_status(self, task_id: str, student_id: str, status: TaskStatus, now: datetime) -> Task:
        task = self.get(task_id, student_id)
        self._apply_status(task, status, now)
        task.updated_at = ensure_utc(now)
        return task

    def list_by_student(self, student_id: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.student_id == student_id]

    def list_by_status(self, student_id: str, status: TaskStatus) -> list[Task]:
        return [t for t in self.list_by_student(student_id) if t.status is status]

    def list_overdue(self, student_id: str, now: datetime) -> list[Task]:
        return [t for t in self.list_by_student(student_id) if t.is_overdue(now)]

    def list_due_soon(self, student_id: str, now: datetime, hours: int = DUE_SOON_WINDOW_HOURS) -> list[Task]:
        """Open tasks ending within the look-ahead window, earliest first."""
        now = ensure_utc(now)
        horizon = now + timedelta(hours=hours)
        due = [
            t for t in self.list_by_student(student_id)
            if t.status is not TaskStatus.COMPLETED and now <= t.end_time <= horizon
        ]
        return sorted(due, key=lambda t: t.end_time)

    def stats(self, student_id: str, now: datetime) -> TaskStats:
        stats = TaskStats()
        for task in self.list_by_student(student_id):
            if task.status is TaskStatus.PENDING:
                stats.pending += 1
            elif task.status is TaskStatus.ONGOING:
                stats.ongoing += 1
            else:
                stats.completed += 1
            if task.is_overdue(now):
                stats.overdue += 1
        return stats

    @staticmethod
    def sort_for_display(tasks: list[Task], now: datetime) -> list[Task]:
        """Overdue first, then higher priority, then earliest end time."""
        return sorted(tasks, key=lambda t: (not t.is_overdue(now), -t.priority.rank, t.end_time))

    @staticmethod
    def _apply_status(task: Task, status: TaskStatus, now: datetime) -> None:
        if status is TaskStatus.COMPLETED and task.status is not TaskStatus.COMPLETED:
            task.completed_at = ensure_utc(now)
        elif status is not TaskStatus.COMPLETED:
            task.completed_at = None
        task.status = status

    @staticmethod
    def validate_window(
        start_time: datetime, end_time: datetime, now: datetime | None = None
    ) -> tuple[datetime, datetime]:
        """Check a task window; passing ``now`` also refuses a start in the past."""
        start_time, end_time = ensure_utc(start_time), ensure_utc(end_time)
        if now is not None and start_time < ensure_utc(now):
            raise ValidationError("Start date cannot be in the past.")
        if end_time <= start_time:
            raise ValidationError("End date must be after start date.")
        return start_time, end_time

    @staticmethod
    def validate_title(title: str) -> str:
        cleaned = title.strip()
        if not cleaned:
            raise ValidationError("Title is required.")
        return cleaned

    @staticmethod
    def _clean_description(description: str | None) -> str | None:
        if description is None:
            return None
        return description.strip() or None
