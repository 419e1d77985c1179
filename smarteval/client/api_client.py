"""Async HTTP client for the SmartEval REST API."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
import logging
from typing import Any

import httpx

from smarteval.constants.assessment_constants import UNANSWERED
from smarteval.constants.network_constants import DEFAULT_API_BASE_URL, FETCH_TIMEOUT_SECONDS
from smarteval.core.errors import FetchFailed, SubmissionRejected
from smarteval.core.models import Assessment, Question, TaskPriority
from smarteval.core.services.assessment_repository import AssessmentRepository
from smarteval.core.services.submission_guard import SubmissionAck
from smarteval.core.services.task_repository import TaskRepository
from smarteval.core.user_session import UserSession
from smarteval.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

# Client errors the server may clear up by itself; these go through the retry path.
_TRANSIENT_CLIENT_ERRORS = frozenset({408, 429})


def parse_assessment(payload: dict[str, Any]) -> Assessment:
    """Build an Assessment from its API representation.

    Correct answers withheld by the server are stored as ``UNANSWERED``.
    """
    questions = [
        Question(
            question_text=q["question_text"],
            options=list(q["options"]),
            correct_answer=q["correct_answer"] if q.get("correct_answer") is not None else UNANSWERED,
            id=q.get("id", ""),
        )
        for q in payload["questions"]
    ]
    return Assessment(
        id=payload["id"],
        title=payload["title"],
        description=payload.get("description", ""),
        questions=questions,
        start_time=datetime.fromisoformat(payload["start_time"]),
        end_time=datetime.fromisoformat(payload["end_time"]),
        created_by=payload["created_by"],
        assigned_students=list(payload.get("assigned_students", [])),
        created_at=datetime.fromisoformat(payload["created_at"]),
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    return str(detail) if detail else f"HTTP {response.status_code}"


class AssessmentApiClient:
    """Thin async wrapper over the REST endpoints.

    List fetches degrade to an empty list when the server cannot be reached;
    the failure is logged and never retried automatically. Creation input is
    validated locally and raises ``ValidationError`` before any request.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        session: UserSession | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session or UserSession()
        self._clock = clock
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "AssessmentApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- Assessments ---

    async def get_assessment(self, assessment_id: str, viewer_id: str | None = None) -> Assessment:
        params = {"viewer_id": viewer_id} if viewer_id else None
        return parse_assessment(await self._get_json(f"/api/assessments/{assessment_id}", params))

    async def fetch_assessments_for_student(self, student_id: str) -> list[Assessment]:
        return [parse_assessment(item) for item in await self._fetch_list(f"/api/assessments/student/{student_id}")]

    async def fetch_assessments_for_professor(self, professor_id: str) -> list[Assessment]:
        return [
            parse_assessment(item)
            for item in await self._fetch_list(f"/api/assessments/professor/{professor_id}")
        ]

    async def create_assessment(
        self,
        title: str,
        description: str,
        questions: Sequence[Question],
        start_time: datetime,
        end_time: datetime,
        assigned_students: Sequence[str],
        created_by: str,
    ) -> Assessment:
        AssessmentRepository.validate_draft(
            title, questions, start_time, end_time, assigned_students, created_by, self._clock(),
        )
        payload = {
            "title": title,
            "description": description,
            "questions": [
                {"question_text": q.question_text, "options": list(q.options), "correct_answer": q.correct_answer}
                for q in questions
            ],
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "assigned_students": list(assigned_students),
            "created_by": created_by,
        }
        response = await self._client.post("/api/assessments", json=payload, headers=self.session.auth_headers())
        response.raise_for_status()
        return parse_assessment(response.json())

    # --- Results ---

    async def submit_result(self, assessment_id: str, student_id: str, answers: list[int]) -> SubmissionAck:
        """Post answers once. Client errors other than 408 and 429 are final; anything else may be retried."""
        response = await self._client.post(
            f"/api/assessments/{assessment_id}/submit",
            json={"student_id": student_id, "answers": list(answers)},
            headers=self.session.auth_headers(),
        )
        if 400 <= response.status_code < 500 and response.status_code not in _TRANSIENT_CLIENT_ERRORS:
            raise SubmissionRejected(_error_detail(response), status_code=response.status_code)
        response.raise_for_status()
        body = response.json()
        return SubmissionAck(
            assessment_id=body["assessment_id"],
            student_id=body["student_id"],
            result_id=body["id"],
            score=body["score"],
            submitted_at=datetime.fromisoformat(body["completed_at"]),
        )

    async def has_submitted(self, assessment_id: str, student_id: str) -> bool:
        body = await self._get_json(f"/api/assessments/{assessment_id}/submission/{student_id}")
        return bool(body["submitted"])

    async def fetch_results_for_assessment(self, assessment_id: str) -> list[dict[str, Any]]:
        return await self._fetch_list(f"/api/assessments/{assessment_id}/results")

    async def fetch_results_for_student(self, student_id: str) -> list[dict[str, Any]]:
        return await self._fetch_list(f"/api/assessments/results/student/{student_id}")

    async def fetch_student_statistics(self, student_id: str) -> dict[str, Any]:
        try:
            return await self._get_json(f"/api/students/{student_id}/statistics")
        except FetchFailed as exc:
            logger.warning("Statistics for %s unavailable: %s", student_id, exc)
            return {}

    # --- Tasks ---

    async def fetch_tasks(self, student_id: str) -> list[dict[str, Any]]:
        return await self._fetch_list(f"/api/tasks/student/{student_id}")

    async def create_task(
        self,
        student_id: str,
        title: str,
        start_time: datetime,
        end_time: datetime,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
    ) -> dict[str, Any]:
        TaskRepository.validate_title(title)
        TaskRepository.validate_window(start_time, end_time, self._clock())
        payload = {
            "title": title,
            "description": description,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "priority": priority.value,
        }
        response = await self._client.post(
            "/api/tasks",
            params={"student_id": student_id},
            json=payload,
            headers=self.session.auth_headers(),
        )
        response.raise_for_status()
        return response.json()

    async def complete_task(self, task_id: str, student_id: str) -> dict[str, Any]:
        response = await self._client.put(
            f"/api/tasks/{task_id}/complete",
            params={"student_id": student_id},
            headers=self.session.auth_headers(),
        )
        response.raise_for_status()
        return response.json()

    async def delete_task(self, task_id: str, student_id: str) -> None:
        response = await self._client.delete(
            f"/api/tasks/{task_id}",
            params={"student_id": student_id},
            headers=self.session.auth_headers(),
        )
        response.raise_for_status()

    # --- Helpers ---

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=params, headers=self.session.auth_headers())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchFailed(f"GET {path} failed: {exc}") from exc
        return response.json()

    async def _fetch_list(self, path: str) -> list[Any]:
        try:
            return await self._get_json(path)
        except FetchFailed as exc:
            logger.warning("Fetch degraded to an empty list: %s", exc)
            return []
