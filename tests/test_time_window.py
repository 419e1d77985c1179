from datetime import datetime, timedelta, timezone

import pytest

from smarteval.core.models import WindowStatus
from smarteval.core.time_window import classify, describe_window

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
END = START + timedelta(minutes=30)


@pytest.mark.parametrize("offset,expected", [
    (timedelta(seconds=-1), WindowStatus.FUTURE),
    (timedelta(0), WindowStatus.ONGOING),
    (timedelta(minutes=15), WindowStatus.ONGOING),
    (timedelta(minutes=30), WindowStatus.ONGOING),
    (timedelta(minutes=30, microseconds=1), WindowStatus.PAST),
])
def test_classify_boundaries(offset, expected):
    assert classify(START + offset, START, END) is expected


def test_classify_treats_naive_datetimes_as_utc():
    naive_now = datetime(2025, 3, 10, 9, 10)
    assert classify(naive_now, START, END) is WindowStatus.ONGOING


def test_classify_compares_across_timezones():
    oslo = timezone(timedelta(hours=1))
    assert classify(datetime(2025, 3, 10, 10, 5, tzinfo=oslo), START, END) is WindowStatus.ONGOING


def test_describe_window_counts_down():
    future = describe_window(START - timedelta(minutes=2), START, END)
    assert future.status is WindowStatus.FUTURE
    assert future.time_until_start_seconds == 120
    assert future.time_remaining_seconds == 0
    assert future.duration_minutes == 30

    ongoing = describe_window(START + timedelta(minutes=25), START, END)
    assert ongoing.time_until_start_seconds == 0
    assert ongoing.time_remaining_seconds == 300

    past = describe_window(END + timedelta(hours=1), START, END)
    assert past.status is WindowStatus.PAST
    assert past.time_remaining_seconds == 0
