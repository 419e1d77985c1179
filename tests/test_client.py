import asyncio
from datetime import timedelta

import httpx
import pytest

from conftest import FakeClock, sample_questions

from smarteval.client.api_client import AssessmentApiClient
from smarteval.client.assessment_taking import ALREADY_SUBMITTING, AssessmentTakingSession
from smarteval.constants.assessment_constants import UNANSWERED
from smarteval.core.errors import SubmissionFailed, SubmissionRejected, SubmissionWindowClosed, ValidationError
from smarteval.core.models import User, UserRole
from smarteval.core.services.submission_guard import SubmissionAck, SubmissionGuard
from smarteval.core.user_session import UserSession
from smarteval.server.api_server import create_api_app


def _api_client(manager, session: UserSession | None = None) -> AssessmentApiClient:
    transport = httpx.ASGITransport(app=create_api_app(manager))
    return AssessmentApiClient(
        session=session,
        client=httpx.AsyncClient(transport=transport, base_url="http://test"),
        clock=manager.now,
    )


def test_client_round_trip(manager, clock):
    async def scenario():
        async with _api_client(manager) as api:
            created = await api.create_assessment(
                "Client quiz", "", sample_questions(3), clock.now, clock.now + timedelta(minutes=15),
                ["stu-1"], "prof-1",
            )
            mine = await api.fetch_assessments_for_student("stu-1")
            ack = await api.submit_result(created.id, "stu-1", [1, 1, 0])
            submitted = await api.has_submitted(created.id, "stu-1")
            with pytest.raises(SubmissionRejected) as rejected:
                await api.submit_result(created.id, "stu-1", [1, 1, 1])
            results = await api.fetch_results_for_assessment(created.id)
            return created, mine, ack, submitted, rejected.value, results

    created, mine, ack, submitted, rejected, results = asyncio.run(scenario())
    assert [a.id for a in mine] == [created.id]
    assert all(q.correct_answer == UNANSWERED for q in mine[0].questions)
    assert ack.score == 2
    assert submitted is True
    assert rejected.status_code == 409
    assert [r["student_email"] for r in results] == ["sam@uni.edu"]


def test_fetch_degrades_to_empty_list_when_unreachable():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://test")
        async with AssessmentApiClient(client=client) as api:
            assessments = await api.fetch_assessments_for_student("stu-1")
            tasks = await api.fetch_tasks("stu-1")
            stats = await api.fetch_student_statistics("stu-1")
        await client.aclose()
        return assessments, tasks, stats

    assert asyncio.run(scenario()) == ([], [], {})


def test_bearer_token_is_sent():
    seen: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200, json=[])

    session = UserSession()
    session.login(User(id="stu-1", username="Sam", email="sam@uni.edu", role=UserRole.STUDENT), "tok")

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
        api = AssessmentApiClient(session=session, client=client)
        await api.fetch_tasks("stu-1")
        await client.aclose()

    asyncio.run(scenario())
    assert seen == ["Bearer tok"]


def test_taking_session_manual_submit(manager, clock, open_assessment):
    async def scenario():
        async with _api_client(manager) as api:
            assessment = await api.get_assessment(open_assessment.id, viewer_id="stu-1")
            async with AssessmentTakingSession(assessment, "stu-1", api.submit_result, clock=clock, tick_interval=0.01) as session:
                session.select_answer(0, 1)
                session.select_answer(1, 1)
                session.select_answer(1, 0)
                ack = await session.submit()
                again = await session.submit()
            return session, ack, again

    session, ack, again = asyncio.run(scenario())
    assert ack.score == 1
    assert again is ack
    assert session.timer.state.value == "STOPPED"
    assert not session.auto_submitted
    assert manager.find_submission(open_assessment.id, "stu-1").answers == (1, 0, UNANSWERED, UNANSWERED)


def test_taking_session_auto_submits_when_time_runs_out(manager, clock, open_assessment):
    async def scenario():
        async with _api_client(manager) as api:
            assessment = await api.get_assessment(open_assessment.id)
            async with AssessmentTakingSession(assessment, "stu-2", api.submit_result, clock=clock, tick_interval=0.01) as session:
                session.select_answer(3, 1)
                clock.advance(9 * 60 + 30)
                await asyncio.sleep(0.05)
                clock.advance(30)
                await asyncio.wait_for(session.wait_for_expiry(), timeout=5)
            return session

    session = asyncio.run(scenario())
    assert session.auto_submitted
    assert session.submission.score == 1
    assert session.warnings == [300, 60, 30]
    assert manager.find_submission(open_assessment.id, "stu-2").answers == (UNANSWERED, UNANSWERED, UNANSWERED, 1)


def test_taking_session_refuses_closed_window(manager, clock, open_assessment):
    async def transport(assessment_id, student_id, answers):
        raise AssertionError("must not submit")

    clock.advance(11 * 60)

    async def scenario():
        async with AssessmentTakingSession(open_assessment, "stu-1", transport, clock=clock):
            pass

    with pytest.raises(SubmissionWindowClosed):
        asyncio.run(scenario())


def test_failed_submission_keeps_answers_for_manual_retry(clock, open_assessment):
    attempts: list[list[int]] = []

    async def flaky(assessment_id, student_id, answers):
        attempts.append(answers)
        if len(attempts) <= 2:
            raise httpx.ConnectError("offline")
        return SubmissionAck(assessment_id=assessment_id, student_id=student_id, result_id="r9", score=4)

    async def no_wait(_delay):
        return None

    async def scenario():
        async with AssessmentTakingSession(open_assessment, "stu-1", flaky, clock=clock, sleep=no_wait) as session:
            for index in range(4):
                session.select_answer(index, 1)
            with pytest.raises(SubmissionFailed):
                await session.submit()
            failed_message = session.status_message
            ack = await session.submit()
        return session, failed_message, ack

    session, failed_message, ack = asyncio.run(scenario())
    assert "contact support" in failed_message
    assert ack.result_id == "r9"
    assert attempts[-1] == [1, 1, 1, 1]
    assert len(attempts) == 3
    assert session.error is None


def test_concurrent_submit_reports_already_submitting(clock, open_assessment):
    release = None

    async def slow(assessment_id, student_id, answers):
        await release.wait()
        return SubmissionAck(assessment_id=assessment_id, student_id=student_id, result_id="r1", score=0)

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        async with AssessmentTakingSession(open_assessment, "stu-1", slow, clock=clock) as session:
            first = asyncio.create_task(session.submit())
            await asyncio.sleep(0)
            second = await session.submit()
            message = session.status_message
            release.set()
            ack = await first
        return second, message, ack

    second, message, ack = asyncio.run(scenario())
    assert second is None
    assert message == ALREADY_SUBMITTING
    assert ack.result_id == "r1"


def _recording_client(seen: list[str], clock: FakeClock) -> tuple[httpx.AsyncClient, AssessmentApiClient]:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(500)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return client, AssessmentApiClient(client=client, clock=clock)


@pytest.mark.parametrize("overrides", [
    {"start_time": timedelta(hours=1), "end_time": timedelta(0)},
    {"title": "   "},
    {"questions": []},
    {"assigned_students": ["stu-1", "STU-1"]},
])
def test_invalid_assessment_is_refused_before_any_request(overrides):
    clock = FakeClock()
    seen: list[str] = []
    draft = {
        "title": "Quiz",
        "description": "",
        "questions": sample_questions(2),
        "start_time": timedelta(0),
        "end_time": timedelta(minutes=30),
        "assigned_students": ["stu-1"],
        "created_by": "prof-1",
    }
    draft.update(overrides)
    draft["start_time"] = clock.now + draft["start_time"]
    draft["end_time"] = clock.now + draft["end_time"]

    async def scenario():
        client, api = _recording_client(seen, clock)
        try:
            await api.create_assessment(**draft)
        finally:
            await client.aclose()

    with pytest.raises(ValidationError):
        asyncio.run(scenario())
    assert seen == []


@pytest.mark.parametrize("title,start,end", [
    ("", timedelta(hours=1), timedelta(hours=2)),
    ("Revise", timedelta(hours=2), timedelta(hours=1)),
    ("Revise", timedelta(hours=-1), timedelta(hours=1)),
])
def test_invalid_task_is_refused_before_any_request(title, start, end):
    clock = FakeClock()
    seen: list[str] = []

    async def scenario():
        client, api = _recording_client(seen, clock)
        try:
            await api.create_task("stu-1", title, clock.now + start, clock.now + end)
        finally:
            await client.aclose()

    with pytest.raises(ValidationError):
        asyncio.run(scenario())
    assert seen == []


@pytest.mark.parametrize("transient_status", [408, 429])
def test_transient_client_errors_are_retried(transient_status):
    statuses = [transient_status, 201]

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 201:
            return httpx.Response(status, json={"detail": "try again"})
        return httpx.Response(201, json={
            "id": "r1",
            "assessment_id": "a1",
            "student_id": "stu-1",
            "score": 2,
            "completed_at": "2025-03-10T09:05:00+00:00",
        })

    async def no_wait(_delay):
        return None

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
        api = AssessmentApiClient(client=client)
        guard = SubmissionGuard(api.submit_result, sleep=no_wait)
        try:
            ack = await guard.submit("a1", "stu-1", [1, 1])
        finally:
            await client.aclose()
        return guard, ack

    guard, ack = asyncio.run(scenario())
    assert ack.result_id == "r1"
    assert guard.attempts == 2


def test_leaving_after_expiry_lets_auto_submit_finish(clock, open_assessment):
    delivered: list[list[int]] = []

    async def slow(assessment_id, student_id, answers):
        await asyncio.sleep(0.2)
        delivered.append(answers)
        return SubmissionAck(assessment_id=assessment_id, student_id=student_id, result_id="r7", score=1)

    async def scenario():
        async with AssessmentTakingSession(open_assessment, "stu-1", slow, clock=clock, tick_interval=0.01) as session:
            session.select_answer(2, 1)
            clock.advance(10 * 60)
            await asyncio.sleep(0.05)
            in_flight = session.submitting
        return session, in_flight

    session, in_flight = asyncio.run(scenario())
    assert in_flight
    assert session.auto_submitted
    assert delivered == [[UNANSWERED, UNANSWERED, 1, UNANSWERED]]
    assert session.submission.result_id == "r7"
    assert session.error is None
