from datetime import datetime, timedelta, timezone

import pytest

from smarteval.core.assessment_manager import AssessmentManager
from smarteval.core.models import Question, UserRole

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; call it to read the time."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def sample_questions(count: int = 4) -> list[Question]:
    return [
        Question(question_text=f"What is {i} + {i}?", options=[str(i), str(2 * i), str(3 * i)], correct_answer=1)
        for i in range(1, count + 1)
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(clock: FakeClock) -> AssessmentManager:
    manager = AssessmentManager(clock=clock)
    manager.register_user("Prof Ada", "ada@uni.edu", UserRole.PROFESSOR, user_id="prof-1")
    manager.register_user("Sam", "sam@uni.edu", UserRole.STUDENT, user_id="stu-1")
    manager.register_user("Kim", "kim@uni.edu", UserRole.STUDENT, user_id="stu-2")
    manager.register_user("Lee", "lee@uni.edu", UserRole.STUDENT, user_id="stu-3")
    return manager


@pytest.fixture
def open_assessment(manager: AssessmentManager, clock: FakeClock):
    """Four-question assessment open for ten minutes from now, assigned to stu-1 and kim by email."""
    return manager.create_assessment(
        title="Arithmetic",
        description="Warm-up",
        questions=sample_questions(),
        start_time=clock.now,
        end_time=clock.now + timedelta(minutes=10),
        assigned_students=["stu-1", "kim@uni.edu"],
        created_by="prof-1",
    )
