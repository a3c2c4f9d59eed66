from datetime import datetime, timedelta, timezone

import pytest

from ballotbox.models.models import Election
from ballotbox.services.lifecycle import (
    ElectionState,
    as_utc,
    filter_by_state,
    resolve_election_state,
    resolve_window,
)

START = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
END = datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)

ORDER = {ElectionState.UPCOMING: 0, ElectionState.ACTIVE: 1, ElectionState.ENDED: 2}


def _at(hour: int, minute: int) -> datetime:
    return datetime(2026, 3, 1, hour, minute, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "now, expected",
    [
        (_at(9, 59), ElectionState.UPCOMING),
        (_at(10, 0), ElectionState.ACTIVE),
        (_at(10, 30), ElectionState.ACTIVE),
        (_at(11, 0), ElectionState.ACTIVE),
        (_at(11, 1), ElectionState.ENDED),
    ],
)
def test_resolve_window_boundaries(now, expected):
    assert resolve_window(START, END, now) is expected


def test_state_is_monotonic_over_time():
    windows = [
        (START, END),
        (START, START),
        (END, START),
    ]
    for start, end in windows:
        previous = None
        instant = START - timedelta(hours=2)
        while instant <= END + timedelta(hours=2):
            state = resolve_window(start, end, instant)
            if previous is not None:
                assert ORDER[state] >= ORDER[previous]
            previous = state
            instant += timedelta(minutes=7)


@pytest.mark.parametrize("start, end", [(START, START), (END, START)])
def test_degenerate_window_is_never_active(start, end):
    instant = START - timedelta(hours=1)
    while instant <= END + timedelta(hours=1):
        assert resolve_window(start, end, instant) is not ElectionState.ACTIVE
        instant += timedelta(minutes=1)
    assert resolve_window(start, end, start - timedelta(seconds=1)) is ElectionState.UPCOMING
    assert resolve_window(start, end, start) is ElectionState.ENDED


def test_naive_timestamps_are_read_as_utc():
    naive_start = START.replace(tzinfo=None)
    naive_end = END.replace(tzinfo=None)
    assert resolve_window(naive_start, naive_end, _at(10, 30)) is ElectionState.ACTIVE
    assert as_utc(naive_start) == START


def test_other_timezones_are_converted_before_comparison():
    plus_two = timezone(timedelta(hours=2))
    # 12:30 at UTC+2 is 10:30 UTC
    assert resolve_window(START, END, datetime(2026, 3, 1, 12, 30, tzinfo=plus_two)) is ElectionState.ACTIVE
    assert resolve_window(START, END, datetime(2026, 3, 1, 11, 30, tzinfo=plus_two)) is ElectionState.UPCOMING


def test_resolve_election_state_and_filter():
    open_now = Election(title="Open", start_time=START, end_time=END)
    later = Election(title="Later", start_time=END, end_time=END + timedelta(hours=1))
    finished = Election(title="Done", start_time=START - timedelta(days=1), end_time=START - timedelta(hours=1))

    now = _at(10, 30)
    assert resolve_election_state(open_now, now) is ElectionState.ACTIVE
    assert resolve_election_state(later, now) is ElectionState.UPCOMING
    assert resolve_election_state(finished, now) is ElectionState.ENDED
    assert filter_by_state([open_now, later, finished], ElectionState.ACTIVE, now) == [open_now]
    assert ElectionState.ACTIVE.value == "active"
