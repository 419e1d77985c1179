"""Client-side gate that keeps a session to one submission attempt at a time."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
import logging

from smarteval.constants.assessment_constants import (
    SUBMIT_RETRY_DELAY_SECONDS,
    SUBMIT_TIMEOUT_SECONDS,
)
from smarteval.core.errors import AlreadyInFlight, SubmissionFailed, SubmissionRejected

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubmissionAck:
    """Server acknowledgement of an accepted submission."""

    assessment_id: str
    student_id: str
    result_id: str | None = None
    score: int | None = None
    submitted_at: datetime | None = None


SubmitTransport = Callable[[str, str, list[int]], Awaitable[SubmissionAck]]


class SubmissionGuard:
    """Wraps the submit transport with an in-flight gate and a single retry.

    The gate is set before the first await, so racing callers on the same
    event loop see it immediately. Server-side uniqueness of
    ``(assessment_id, student_id)`` is still required for exactly-once results.
    """

    def __init__(
        self,
        transport: SubmitTransport,
        retry_delay: float = SUBMIT_RETRY_DELAY_SECONDS,
        timeout: float | None = SUBMIT_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._sleep = sleep
        self._in_flight = False
        self._ack: SubmissionAck | None = None
        self.attempts = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def accepted(self) -> SubmissionAck | None:
        return self._ack

    async def submit(self, assessment_id: str, student_id: str, answers: Sequence[int]) -> SubmissionAck:
        if self._ack is not None:
            return self._ack
        if self._in_flight:
            raise AlreadyInFlight("Submission already in progress.")
        self._in_flight = True
        try:
            self._ack = await self._submit_with_retry(assessment_id, student_id, list(answers))
            return self._ack
        finally:
            self._in_flight = False

    async def _submit_with_retry(self, assessment_id: str, student_id: str, answers: list[int]) -> SubmissionAck:
        try:
            return await self._attempt(assessment_id, student_id, answers)
        except SubmissionRejected as exc:
            raise SubmissionFailed(str(exc)) from exc
        except Exception as exc:
            logger.warning(
                "Submission of %s for %s failed (%s); retrying in %.1fs",
                assessment_id, student_id, exc, self._retry_delay,
            )

        await self._sleep(self._retry_delay)
        try:
            return await self._attempt(assessment_id, student_id, answers)
        except Exception as exc:
            logger.error("Retry of submission %s for %s failed: %s", assessment_id, student_id, exc)
            raise SubmissionFailed(
                "Failed to submit assessment. Please contact support."
            ) from exc

    async def _attempt(self, assessment_id: str, student_id: str, answers: list[int]) -> SubmissionAck:
        self.attempts += 1
        call = self._transport(assessment_id, student_id, answers)
        if self._timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._timeout)
