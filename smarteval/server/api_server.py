"""FastAPI server that exposes the assessment, result, user and task endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
import uvicorn

from smarteval.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from smarteval.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from smarteval.core.assessment_manager import AssessmentManager
from smarteval.core.errors import NotFoundError
from smarteval.core.grading import letter_grade, percentage
from smarteval.core.markdown_math_renderer import renderer
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
from smarteval.core.question_importer import QuestionImportError, parse_questions
from smarteval.core.roles import dashboard_path, menu_sections
from smarteval.core.services.statistics import AssessmentStatistics, StudentStatistics
from smarteval.core.services.task_repository import TaskStats
from smarteval.core.time_window import classify


class QuestionPayload(BaseModel):
    """Payload schema for one authored question."""

    question_text: str
    options: list[str]
    correct_answer: int


class AssessmentPayload(BaseModel):
    """Payload schema for creating an assessment."""

    title: str
    description: str = ""
    questions: list[QuestionPayload]
    start_time: datetime
    end_time: datetime
    assigned_students: list[str]
    created_by: str


class SubmitPayload(BaseModel):
    student_id: str
    answers: list[int]


class QuestionImportPayload(BaseModel):
    text: str


class UserPayload(BaseModel):
    username: str
    email: str
    role: UserRole
    id: str | None = None


class TaskPayload(BaseModel):
    """Payload schema for creating or replacing a task."""

    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus | None = None


@contextmanager
def _service_errors() -> Iterator[None]:
    """Translate service exceptions into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except (ValueError, QuestionImportError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _question_to_dict(question: Question, reveal_answer: bool) -> dict[str, object]:
    return {
        "id": question.id,
        "question_text": question.question_text,
        "question_html": renderer.render_fragment(question.question_text),
        "options": list(question.options),
        "options_html": [renderer.render_inline(option) for option in question.options],
        # Hidden from students until the window has closed.
        "correct_answer": question.correct_answer if reveal_answer else None,
    }


def _assessment_to_dict(assessment: Assessment, now: datetime, reveal_answers: bool) -> dict[str, object]:
    status = classify(now, assessment.start_time, assessment.end_time)
    reveal = reveal_answers or status is WindowStatus.PAST
    return {
        "id": assessment.id,
        "title": assessment.title,
        "description": assessment.description,
        "start_time": assessment.start_time.isoformat(),
        "end_time": assessment.end_time.isoformat(),
        "duration_minutes": assessment.duration_minutes,
        "status": status.value,
        "created_by": assessment.created_by,
        "created_at": assessment.created_at.isoformat(),
        "assigned_students": list(assessment.assigned_students),
        "question_count": assessment.question_count,
        "questions": [_question_to_dict(q, reveal) for q in assessment.questions],
    }


def _result_to_dict(result: AssessmentResult, question_count: int | None = None) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": result.id,
        "assessment_id": result.assessment_id,
        "student_id": result.student_id,
        "answers": list(result.answers),
        "score": result.score,
        "completed_at": result.completed_at.isoformat(),
    }
    if question_count is not None:
        percent = percentage(result.score, question_count)
        payload["question_count"] = question_count
        payload["percentage"] = round(percent, 1)
        payload["grade"] = letter_grade(percent)
    return payload


def _user_to_dict(user: User) -> dict[str, object]:
    return {"id": user.id, "username": user.username, "email": user.email, "role": user.role.value}


def _task_to_dict(task: Task, now: datetime) -> dict[str, object]:
    return {
        "id": task.id,
        "student_id": task.student_id,
        "title": task.title,
        "description": task.description,
        "start_time": task.start_time.isoformat(),
        "end_time": task.end_time.isoformat(),
        "status": task.status.value,
        "priority": task.priority.value,
        "overdue": task.is_overdue(now),
        "created_at": task.created_at.isoformat(),
        "updated_at": task.updated_at.isoformat(),
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
    }


def _assessment_stats_to_dict(stats: AssessmentStatistics) -> dict[str, object]:
    return {
        "question_count": stats.question_count,
        "total_students": stats.total_students,
        "submitted": stats.submitted,
        "submission_rate": stats.submission_rate,
        "average_score": stats.average_score,
        "average_percentage": stats.average_percentage,
        "highest_score": stats.highest_score,
        "lowest_score": stats.lowest_score,
        "grade_distribution": dict(stats.grade_distribution),
    }


def _student_stats_to_dict(stats: StudentStatistics) -> dict[str, object]:
    return {
        "total_completed": stats.total_completed,
        "success_rate": stats.success_rate,
        "average_percentage": stats.average_percentage,
        "completion_rate": stats.completion_rate,
        "current_streak": stats.current_streak,
        "best_streak": stats.best_streak,
    }


def _task_stats_to_dict(stats: TaskStats) -> dict[str, int]:
    return {
        "total": stats.total,
        "pending": stats.pending,
        "ongoing": stats.ongoing,
        "completed": stats.completed,
        "overdue": stats.overdue,
    }


def _get_assessment_manager_dependency(manager: AssessmentManager):
    def dependency() -> AssessmentManager:
        return manager

    return dependency


def create_api_app(assessment_manager: AssessmentManager) -> FastAPI:
    """Create a FastAPI application wired to the provided assessment manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    manager_dep = _get_assessment_manager_dependency(assessment_manager)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    # --- Users ---

    @app.post("/api/users", status_code=201)
    def register_user(
        payload: UserPayload,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            user = manager.register_user(payload.username, payload.email, payload.role, user_id=payload.id)
        return _user_to_dict(user)

    @app.get("/api/users/{user_id}")
    def get_user(user_id: str, manager: AssessmentManager = Depends(manager_dep)) -> dict[str, object]:
        with _service_errors():
            user = manager.get_user(user_id)
        return _user_to_dict(user)

    @app.get("/api/users/{user_id}/navigation")
    def get_navigation(user_id: str, manager: AssessmentManager = Depends(manager_dep)) -> dict[str, object]:
        with _service_errors():
            user = manager.get_user(user_id)
        return {
            "role": user.role.value,
            "dashboard": dashboard_path(user.role),
            "menu": menu_sections(user.role),
        }

    # --- Assessments ---

    @app.post("/api/assessments", status_code=201)
    def create_assessment(
        payload: AssessmentPayload,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        questions = [
            Question(question_text=q.question_text, options=list(q.options), correct_answer=q.correct_answer)
            for q in payload.questions
        ]
        with _service_errors():
            assessment = manager.create_assessment(
                title=payload.title,
                description=payload.description,
                questions=questions,
                start_time=payload.start_time,
                end_time=payload.end_time,
                assigned_students=payload.assigned_students,
                created_by=payload.created_by,
            )
        return _assessment_to_dict(assessment, manager.now(), reveal_answers=True)

    @app.post("/api/assessments/questions/import")
    def import_questions(payload: QuestionImportPayload) -> dict[str, object]:
        with _service_errors():
            questions = parse_questions(payload.text)
        return {
            "questions": [
                {"question_text": q.question_text, "options": q.options, "correct_answer": q.correct_answer}
                for q in questions
            ]
        }

    @app.get("/api/assessments/student/{student_id}")
    def list_student_assessments(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        now = manager.now()
        return [
            _assessment_to_dict(a, now, reveal_answers=False)
            for a in manager.get_assessments_for_student(student_id)
        ]

    @app.get("/api/assessments/professor/{professor_id}")
    def list_professor_assessments(
        professor_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        now = manager.now()
        return [
            _assessment_to_dict(a, now, reveal_answers=True)
            for a in manager.get_assessments_for_professor(professor_id)
        ]

    @app.get("/api/assessments/results/student/{student_id}")
    def list_student_results(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        payload = []
        for result in manager.get_results_for_student(student_id):
            try:
                question_count = manager.get_assessment(result.assessment_id).question_count
            except NotFoundError:
                question_count = None
            payload.append(_result_to_dict(result, question_count))
        return payload

    @app.get("/api/assessments/{assessment_id}")
    def get_assessment(
        assessment_id: str,
        viewer_id: str | None = None,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            assessment = manager.get_assessment(assessment_id)
        is_author = viewer_id is not None and viewer_id == assessment.created_by
        return _assessment_to_dict(assessment, manager.now(), reveal_answers=is_author)

    @app.delete("/api/assessments/{assessment_id}", status_code=204)
    def delete_assessment(assessment_id: str, manager: AssessmentManager = Depends(manager_dep)) -> None:
        with _service_errors():
            manager.delete_assessment(assessment_id)

    @app.get("/api/assessments/{assessment_id}/status")
    def get_assessment_status(
        assessment_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            window = manager.get_window_status(assessment_id)
        return {
            "assessment_id": assessment_id,
            "status": window.status.value,
            "time_until_start_seconds": window.time_until_start_seconds,
            "time_remaining_seconds": window.time_remaining_seconds,
            "duration_minutes": window.duration_minutes,
        }

    @app.post("/api/assessments/{assessment_id}/submit", status_code=201)
    def submit_assessment(
        assessment_id: str,
        payload: SubmitPayload,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            result = manager.submit_result(assessment_id, payload.student_id, payload.answers)
        return _result_to_dict(result, len(payload.answers))

    @app.get("/api/assessments/{assessment_id}/submission/{student_id}")
    def check_submission(
        assessment_id: str,
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            result = manager.find_submission(assessment_id, student_id)
        return {
            "submitted": result is not None,
            "result_id": result.id if result else None,
            "completed_at": result.completed_at.isoformat() if result else None,
        }

    @app.get("/api/assessments/{assessment_id}/results")
    def list_assessment_results(
        assessment_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        with _service_errors():
            question_count = manager.get_assessment(assessment_id).question_count
            joined = manager.get_results_for_assessment(assessment_id)
        payload = []
        for result, student in joined:
            row = _result_to_dict(result, question_count)
            row["student_name"] = student.username if student else None
            row["student_email"] = student.email if student else None
            payload.append(row)
        return payload

    @app.get("/api/assessments/{assessment_id}/statistics")
    def get_assessment_statistics(
        assessment_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            stats = manager.get_assessment_statistics(assessment_id)
        return _assessment_stats_to_dict(stats)

    @app.get("/api/assessments/{assessment_id}/results.csv", response_class=PlainTextResponse)
    def export_results(
        assessment_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> PlainTextResponse:
        with _service_errors():
            content = manager.export_results_csv(assessment_id)
        return PlainTextResponse(
            content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="results-{assessment_id}.csv"'},
        )

    # --- Students ---

    @app.get("/api/students/{student_id}/statistics")
    def get_student_statistics(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _student_stats_to_dict(manager.get_student_statistics(student_id))

    @app.get("/api/students/{student_id}/activity")
    def get_student_activity(
        student_id: str,
        weeks: int = Query(12, ge=1, le=52),
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [
            {"day": day.day.isoformat(), "count": day.count, "level": day.level}
            for day in manager.get_student_activity(student_id, weeks)
        ]

    # --- Tasks ---

    @app.get("/api/tasks/student/{student_id}")
    def list_tasks(student_id: str, manager: AssessmentManager = Depends(manager_dep)) -> list[dict[str, object]]:
        now = manager.now()
        return [_task_to_dict(t, now) for t in manager.list_tasks(student_id)]

    @app.get("/api/tasks/student/{student_id}/status/{status}")
    def list_tasks_by_status(
        student_id: str,
        status: TaskStatus,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        now = manager.now()
        return [_task_to_dict(t, now) for t in manager.list_tasks_by_status(student_id, status)]

    @app.get("/api/tasks/student/{student_id}/overdue")
    def list_overdue_tasks(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        now = manager.now()
        return [_task_to_dict(t, now) for t in manager.list_overdue_tasks(student_id)]

    @app.get("/api/tasks/student/{student_id}/due-soon")
    def list_tasks_due_soon(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        now = manager.now()
        return [_task_to_dict(t, now) for t in manager.list_tasks_due_soon(student_id)]

    @app.get("/api/tasks/student/{student_id}/stats")
    def get_task_stats(student_id: str, manager: AssessmentManager = Depends(manager_dep)) -> dict[str, int]:
        return _task_stats_to_dict(manager.get_task_stats(student_id))

    @app.post("/api/tasks", status_code=201)
    def create_task(
        payload: TaskPayload,
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            task = manager.create_task(
                student_id,
                payload.title,
                payload.start_time,
                payload.end_time,
                description=payload.description,
                priority=payload.priority,
                status=payload.status or TaskStatus.PENDING,
            )
        return _task_to_dict(task, manager.now())

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: str, student_id: str, manager: AssessmentManager = Depends(manager_dep)) -> dict[str, object]:
        with _service_errors():
            task = manager.get_task(task_id, student_id)
        return _task_to_dict(task, manager.now())

    @app.put("/api/tasks/{task_id}")
    def update_task(
        task_id: str,
        payload: TaskPayload,
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            task = manager.update_task(
                task_id,
                student_id,
                payload.title,
                payload.start_time,
                payload.end_time,
                description=payload.description,
                priority=payload.priority,
                status=payload.status,
            )
        return _task_to_dict(task, manager.now())

    @app.delete("/api/tasks/{task_id}", status_code=204)
    def delete_task(task_id: str, student_id: str, manager: AssessmentManager = Depends(manager_dep)) -> None:
        with _service_errors():
            manager.delete_task(task_id, student_id)

    @app.put("/api/tasks/{task_id}/complete")
    def complete_task(
        task_id: str,
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            task = manager.mark_task_completed(task_id, student_id)
        return _task_to_dict(task, manager.now())

    @app.put("/api/tasks/{task_id}/status")
    def update_task_status(
        task_id: str,
        student_id: str,
        status: TaskStatus = Query(...),
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            task = manager.update_task_status(task_id, student_id, status)
        return _task_to_dict(task, manager.now())

    return app


def start_api_server(
    assessment_manager: AssessmentManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(assessment_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="AssessmentApiServer", daemon=True)
    thread.start()
    return thread
