"""Domain models for SmartEval."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from smarteval.utils.datetime_utils import ensure_utc, utc_now


class WindowStatus(str, Enum):
    FUTURE = "FUTURE"
    ONGOING = "ONGOING"
    PAST = "PAST"


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    PROFESSOR = "PROFESSOR"
    ALUMNI = "ALUMNI"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {TaskPriority.LOW: 1, TaskPriority.MEDIUM: 2, TaskPriority.HIGH: 3}


@dataclass(slots=True)
class User:
    """Registered platform user."""

    id: str
    username: str
    email: str
    role: UserRole


@dataclass(slots=True)
class Question:
    """Multiple-choice question; its position in the assessment is the grading key."""

    question_text: str
    options: list[str]
    correct_answer: int
    id: str = ""


@dataclass(slots=True)
class Assessment:
    """Timed assessment assigned to a set of students."""

    id: str
    title: str
    description: str
    questions: list[Question]
    start_time: datetime
    end_time: datetime
    created_by: str
    assigned_students: list[str]
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.start_time = ensure_utc(self.start_time)
        self.end_time = ensure_utc(self.end_time)

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def is_assigned_to(self, *identifiers: str | None) -> bool:
        wanted = {identifier.strip().lower() for identifier in identifiers if identifier}
        return any(student.lower() in wanted for student in self.assigned_students)


@dataclass(frozen=True, slots=True)
class AssessmentResult:
    """Graded, immutable record of one student's submission."""

    id: str
    assessment_id: str
    student_id: str
    answers: tuple[int, ...]
    score: int
    completed_at: datetime


@dataclass(slots=True)
class Task:
    """Personal task owned by a student."""

    id: str
    student_id: str
    title: str
    start_time: datetime
    end_time: datetime
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.start_time = ensure_utc(self.start_time)
        self.end_time = ensure_utc(self.end_time)

    def is_overdue(self, now: datetime) -> bool:
        # Derived from time on every call; the stored status is never "overdue".
        return ensure_utc(now) > self.end_time and self.status is not TaskStatus.COMPLETED
