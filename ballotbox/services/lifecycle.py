"""Election lifecycle resolution.

The lifecycle state of an election is never stored; it is derived from the
election window and the caller-supplied clock value every time it is needed.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Iterable, List

from ..models.models import Election


class ElectionState(str, enum.Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_window(start: datetime, end: datetime, now: datetime) -> ElectionState:
    start, end, now = as_utc(start), as_utc(end), as_utc(now)
    if now < start:
        return ElectionState.UPCOMING
    # A window that closes before (or as) it opens never accepts votes.
    if start >= end:
        return ElectionState.ENDED
    if now <= end:
        return ElectionState.ACTIVE
    return ElectionState.ENDED


def resolve_election_state(election: Election, now: datetime) -> ElectionState:
    """Classify ``election`` as upcoming, active or ended at ``now``."""
    return resolve_window(election.start_time, election.end_time, now)


def filter_by_state(elections: Iterable[Election], state: ElectionState, now: datetime) -> List[Election]:
    return [election for election in elections if resolve_election_state(election, now) is state]
