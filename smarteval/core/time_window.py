"""Classification of an instant against an assessment window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from smarteval.core.models import WindowStatus
from smarteval.utils.datetime_utils import ensure_utc


def classify(now: datetime, start: datetime, end: datetime) -> WindowStatus:
    """Return FUTURE, ONGOING or PAST. Both window ends count as ONGOING.

    ``now`` must be taken fresh by the caller on every evaluation.
    """
    now = ensure_utc(now)
    if now < ensure_utc(start):
        return WindowStatus.FUTURE
    if now > ensure_utc(end):
        return WindowStatus.PAST
    return WindowStatus.ONGOING


@dataclass(slots=True)
class WindowDescription:
    status: WindowStatus
    time_until_start_seconds: int
    time_remaining_seconds: int
    duration_minutes: int


def describe_window(now: datetime, start: datetime, end: datetime) -> WindowDescription:
    """Status plus the countdown figures shown next to an assessment."""
    now, start, end = ensure_utc(now), ensure_utc(start), ensure_utc(end)
    status = classify(now, start, end)
    until_start = int((start - now).total_seconds()) if status is WindowStatus.FUTURE else 0
    remaining = int((end - now).total_seconds()) if status is WindowStatus.ONGOING else 0
    return WindowDescription(
        status=status,
        time_until_start_seconds=max(0, until_start),
        time_remaining_seconds=max(0, remaining),
        duration_minutes=int((end - start).total_seconds() // 60),
    )
