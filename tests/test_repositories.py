from datetime import timedelta

import pytest

from conftest import START, sample_questions

from smarteval.core.errors import DuplicateSubmissionError, NotFoundError, ValidationError
from smarteval.core.models import Question, TaskPriority, TaskStatus, UserRole
from smarteval.core.services.assessment_repository import AssessmentRepository
from smarteval.core.services.result_store import ResultStore
from smarteval.core.services.task_repository import TaskRepository
from smarteval.core.services.user_directory import UserDirectory


def _create(repo: AssessmentRepository, **overrides):
    fields = dict(
        title="Quiz",
        description="",
        questions=sample_questions(2),
        start_time=START,
        end_time=START + timedelta(minutes=30),
        assigned_students=["stu-1"],
        created_by="prof-1",
        now=START,
    )
    fields.update(overrides)
    return repo.create(**fields)


def test_create_assessment_numbers_questions_in_order():
    repo = AssessmentRepository()
    assessment = _create(repo)
    assert [q.id for q in assessment.questions] == ["q0", "q1"]
    assert repo.get(assessment.id) is assessment
    assert assessment.duration_minutes == 30


@pytest.mark.parametrize("overrides", [
    {"end_time": START},
    {"end_time": START - timedelta(minutes=1)},
    {"end_time": START + timedelta(minutes=4, seconds=59)},
    {"start_time": START - timedelta(minutes=6), "end_time": START + timedelta(minutes=30)},
    {"assigned_students": []},
    {"assigned_students": ["stu-1", " STU-1 "]},
    {"assigned_students": ["stu-1", "  "]},
    {"questions": []},
    {"questions": [Question(question_text="Only one option", options=["a"], correct_answer=0)]},
    {"questions": [Question(question_text="Bad key", options=["a", "b"], correct_answer=2)]},
    {"questions": [Question(question_text="  ", options=["a", "b"], correct_answer=0)]},
    {"title": "   "},
])
def test_create_assessment_rejects_invalid_input(overrides):
    repo = AssessmentRepository()
    with pytest.raises(ValidationError):
        _create(repo, **overrides)
    assert repo.list_all() == []


def test_start_within_past_buffer_is_accepted():
    repo = AssessmentRepository()
    assessment = _create(repo, start_time=START - timedelta(minutes=4))
    assert assessment.start_time == START - timedelta(minutes=4)


def test_assignment_matches_id_or_email_case_insensitively():
    repo = AssessmentRepository()
    assessment = _create(repo, assigned_students=["Kim@Uni.edu", "stu-1"])
    assert repo.list_assigned_to("stu-9", "kim@uni.edu") == [assessment]
    assert repo.list_assigned_to("stu-9", None) == []
    assert repo.list_by_creator("prof-1") == [assessment]


def test_delete_unknown_assessment():
    with pytest.raises(NotFoundError):
        AssessmentRepository().delete("missing")


def test_result_store_keeps_one_result_per_pair():
    store = ResultStore()
    store.record("a1", "stu-1", [0, 1], 2, completed_at=START)
    with pytest.raises(DuplicateSubmissionError):
        store.record("a1", "stu-1", [1, 1], 1, completed_at=START)
    store.record("a1", "stu-2", [0, 0], 1, completed_at=START - timedelta(minutes=1))

    assert [r.student_id for r in store.list_for_assessment("a1")] == ["stu-2", "stu-1"]
    assert store.find("a1", "stu-1").answers == (0, 1)
    store.delete_for_assessment("a1")
    assert store.list_for_student("stu-1") == []


def test_task_round_trip():
    repo = TaskRepository()
    task = repo.create(
        "stu-1", "  Read chapter 3 ", START + timedelta(hours=1), START + timedelta(hours=3), now=START,
        description="Pages 40-60", priority=TaskPriority.HIGH,
    )
    loaded = repo.get(task.id, "stu-1")
    assert loaded.title == "Read chapter 3"
    assert loaded.description == "Pages 40-60"
    assert loaded.priority is TaskPriority.HIGH
    assert loaded.status is TaskStatus.PENDING
    assert loaded.start_time == START + timedelta(hours=1)
    assert loaded.end_time == START + timedelta(hours=3)


def test_task_is_scoped_to_its_owner():
    repo = TaskRepository()
    task = repo.create("stu-1", "Essay", START, START + timedelta(hours=1), now=START)
    with pytest.raises(NotFoundError):
        repo.get(task.id, "stu-2")
    with pytest.raises(NotFoundError):
        repo.delete(task.id, "stu-2")


@pytest.mark.parametrize("start_offset,end_offset", [(-1, 60), (60, 60), (60, 30)])
def test_task_window_validation(start_offset, end_offset):
    with pytest.raises(ValidationError):
        TaskRepository().create(
            "stu-1", "Essay", START + timedelta(minutes=start_offset), START + timedelta(minutes=end_offset), now=START
        )


def test_completed_task_is_never_overdue():
    repo = TaskRepository()
    task = repo.create("stu-1", "Lab report", START, START + timedelta(hours=1), now=START)
    later = START + timedelta(hours=2)
    assert task.is_overdue(later)
    assert repo.list_overdue("stu-1", later) == [task]

    repo.mark_completed(task.id, "stu-1", later)
    assert task.completed_at == later
    assert not task.is_overdue(later + timedelta(days=30))
    assert repo.list_overdue("stu-1", later) == []

    repo.update_status(task.id, "stu-1", TaskStatus.ONGOING, later)
    assert task.completed_at is None


def test_task_display_order_and_stats():
    repo = TaskRepository()
    low = repo.create("stu-1", "Low", START, START + timedelta(hours=5), now=START, priority=TaskPriority.LOW)
    high_late = repo.create("stu-1", "High late", START, START + timedelta(hours=6), now=START, priority=TaskPriority.HIGH)
    high_soon = repo.create("stu-1", "High soon", START, START + timedelta(hours=4), now=START, priority=TaskPriority.HIGH)
    overdue = repo.create("stu-1", "Overdue", START, START + timedelta(minutes=30), now=START, priority=TaskPriority.LOW)
    done = repo.create("stu-1", "Done", START, START + timedelta(hours=2), now=START, status=TaskStatus.COMPLETED)
    now = START + timedelta(hours=1)

    ordered = repo.sort_for_display(repo.list_by_student("stu-1"), now)
    assert ordered == [overdue, high_soon, high_late, done, low]

    stats = repo.stats("stu-1", now)
    assert (stats.pending, stats.ongoing, stats.completed, stats.overdue) == (4, 0, 1, 1)
    assert stats.total == 5
    assert repo.list_due_soon("stu-1", now, hours=4) == [high_soon, low]


def test_user_directory_rejects_duplicates():
    users = UserDirectory()
    users.register("Sam", "sam@uni.edu", UserRole.STUDENT, user_id="stu-1")
    with pytest.raises(ValidationError):
        users.register("Sam Two", "SAM@uni.edu", UserRole.STUDENT)
    with pytest.raises(ValidationError):
        users.register("Other", "other@uni.edu", UserRole.STUDENT, user_id="stu-1")
    with pytest.raises(ValidationError):
        users.register("No mail", "not-an-email", UserRole.STUDENT)
    with pytest.raises(NotFoundError):
        users.get("ghost")
    assert users.find_by_email(" Sam@Uni.edu ").id == "stu-1"
