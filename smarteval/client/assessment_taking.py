"""Scoped state for one student taking one assessment.

The session owns the answer buffer, the countdown and the submission guard.
Entering it starts the countdown; leaving it tears the countdown down on
every exit path, so no timer outlives the session.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
import logging

from smarteval.constants.assessment_constants import (
    SUBMIT_RETRY_DELAY_SECONDS,
    TIMER_TICK_INTERVAL_SECONDS,
)
from smarteval.core.answer_buffer import AnswerBuffer
from smarteval.core.errors import AlreadyInFlight, SubmissionFailed, SubmissionWindowClosed
from smarteval.core.models import Assessment, WindowStatus
from smarteval.core.services.countdown import CountdownTimer
from smarteval.core.services.submission_guard import SubmissionAck, SubmissionGuard, SubmitTransport
from smarteval.core.time_window import classify
from smarteval.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

ALREADY_SUBMITTING = "Already submitting..."


class AssessmentTakingSession:
    def __init__(
        self,
        assessment: Assessment,
        student_id: str,
        transport: SubmitTransport,
        clock: Callable[[], datetime] = utc_now,
        tick_interval: float = TIMER_TICK_INTERVAL_SECONDS,
        retry_delay: float = SUBMIT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.assessment = assessment
        self.student_id = student_id
        self.answers = AnswerBuffer.for_questions([len(q.options) for q in assessment.questions])
        self.warnings: list[int] = []
        self.status_message: str | None = None
        self.error: SubmissionFailed | None = None
        self.auto_submitted = False
        self._clock = clock
        self._guard = SubmissionGuard(transport, retry_delay=retry_delay, sleep=sleep)
        self._timer = CountdownTimer(
            assessment.end_time,
            on_expire=self._auto_submit,
            on_warning=self._on_warning,
            tick_interval=tick_interval,
            clock=clock,
        )

    @property
    def timer(self) -> CountdownTimer:
        return self._timer

    @property
    def submission(self) -> SubmissionAck | None:
        return self._guard.accepted

    @property
    def submitting(self) -> bool:
        return self._guard.in_flight

    async def __aenter__(self) -> "AssessmentTakingSession":
        status = classify(self._clock(), self.assessment.start_time, self.assessment.end_time)
        if status is not WindowStatus.ONGOING:
            raise SubmissionWindowClosed(f"Assessment is not open ({status.value}).")
        await self._timer.__aenter__()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._timer.__aexit__(*exc_info)

    def select_answer(self, question_index: int, option_index: int) -> None:
        if self._guard.accepted is not None:
            raise RuntimeError("Assessment already submitted.")
        self.answers.set(question_index, option_index)

    async def submit(self) -> SubmissionAck | None:
        """Manual submit. Returns None while another submission is outstanding."""
        self._timer.stop()
        return await self._submit()

    def exit(self) -> None:
        """Leave without submitting; the countdown stops for good."""
        self._timer.stop()

    async def wait_for_expiry(self) -> None:
        await self._timer.wait()

    async def _auto_submit(self) -> None:
        self.auto_submitted = True
        logger.info("Time is up for %s; submitting %d answer(s)", self.assessment.id, self.answers.answered_count())
        await self._submit(auto=True)

    async def _submit(self, auto: bool = False) -> SubmissionAck | None:
        try:
            ack = await self._guard.submit(self.assessment.id, self.student_id, self.answers.snapshot())
        except AlreadyInFlight:
            self.status_message = ALREADY_SUBMITTING
            return None
        except SubmissionFailed as exc:
            # Answers stay in the buffer for a manual retry.
            self.error = exc
            self.status_message = str(exc)
            if auto:
                logger.error("Auto-submit of %s failed: %s", self.assessment.id, exc)
                return None
            raise
        self.error = None
        self.status_message = "Assessment submitted successfully."
        return ack

    def _on_warning(self, seconds_left: int) -> None:
        self.warnings.append(seconds_left)
