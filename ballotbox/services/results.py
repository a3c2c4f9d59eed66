"""Results aggregation: turn the vote ledger into counts, percentages and leaders."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Candidate, Election, Position, Vote
from .change_feed import ChangeEvent, change_feed
from .errors import UnknownElection
from .lifecycle import ElectionState, resolve_election_state
from .live import live_results

logger = logging.getLogger(__name__)


@dataclass
class CandidateTally:
    candidate: Candidate
    vote_count: int
    percentage: float


@dataclass
class PositionTally:
    position: Position
    candidates: List[CandidateTally]
    total_votes: int
    leader: Optional[CandidateTally]


@dataclass
class ElectionTally:
    election: Election
    state: ElectionState
    candidates: List[CandidateTally]
    total_votes: int
    leader: Optional[CandidateTally]
    computed_at: datetime
    positions: List[PositionTally] = field(default_factory=list)


def _percentage(vote_count: int, total_votes: int) -> float:
    if total_votes <= 0:
        return 0.0
    return round(vote_count / total_votes * 100, 2)


def rank_candidates(candidates: Sequence[Candidate], counts: Dict[int, int]) -> tuple[List[CandidateTally], int, Optional[CandidateTally]]:
    """Order by votes descending, ties broken by candidate id; the leader needs at least one vote."""
    total_votes = sum(counts.get(candidate.id, 0) for candidate in candidates)
    ordered = sorted(candidates, key=lambda candidate: (-counts.get(candidate.id, 0), candidate.id))
    entries = [
        CandidateTally(
            candidate=candidate,
            vote_count=counts.get(candidate.id, 0),
            percentage=_percentage(counts.get(candidate.id, 0), total_votes),
        )
        for candidate in ordered
    ]
    leader = entries[0] if entries and entries[0].vote_count > 0 else None
    return entries, total_votes, leader


def _vote_counts(session: Session, election_id: int) -> Dict[int, int]:
    rows = (
        session.query(Vote.candidate_id, func.count(Vote.id))
        .filter(Vote.election_id == election_id)
        .group_by(Vote.candidate_id)
        .all()
    )
    return {candidate_id: int(count) for candidate_id, count in rows}


def tally(session: Session, election_id: int, now: datetime) -> ElectionTally:
    """Recompute the full tally for an election from the stored votes."""
    election = session.get(Election, election_id)
    if election is None:
        raise UnknownElection(election_id)

    candidates = (
        session.query(Candidate)
        .filter(Candidate.election_id == election.id)
        .order_by(Candidate.id.asc())
        .all()
    )
    counts = _vote_counts(session, election.id)
    entries, total_votes, leader = rank_candidates(candidates, counts)

    by_position: Dict[int, List[Candidate]] = {}
    for candidate in candidates:
        by_position.setdefault(candidate.position_id, []).append(candidate)

    positions: List[PositionTally] = []
    for position in session.query(Position).filter(Position.election_id == election.id).order_by(Position.id.asc()):
        position_entries, position_total, position_leader = rank_candidates(by_position.get(position.id, []), counts)
        positions.append(
            PositionTally(
                position=position,
                candidates=position_entries,
                total_votes=position_total,
                leader=position_leader,
            )
        )

    return ElectionTally(
        election=election,
        state=resolve_election_state(election, now),
        candidates=entries,
        total_votes=total_votes,
        leader=leader,
        positions=positions,
        computed_at=now,
    )


def _candidate_payload(entry: CandidateTally) -> dict:
    candidate = entry.candidate
    return {
        "candidate": {
            "id": candidate.id,
            "election_id": candidate.election_id,
            "position_id": candidate.position_id,
            "name": candidate.name,
            "party": candidate.party,
            "description": candidate.description,
            "image_url": candidate.image_url,
        },
        "vote_count": entry.vote_count,
        "percentage": entry.percentage,
    }


def serialize_tally(result: ElectionTally) -> dict:
    return {
        "election_id": result.election.id,
        "state": result.state.value,
        "candidates": [_candidate_payload(entry) for entry in result.candidates],
        "total_votes": result.total_votes,
        "leader": _candidate_payload(result.leader) if result.leader else None,
        "positions": [
            {
                "position_id": position.position.id,
                "title": position.position.title,
                "candidates": [_candidate_payload(entry) for entry in position.candidates],
                "total_votes": position.total_votes,
                "leader": _candidate_payload(position.leader) if position.leader else None,
            }
            for position in result.positions
        ],
        "computed_at": result.computed_at.isoformat(),
    }


def recompute_on_change(session: Session, event: ChangeEvent) -> None:
    """Change-feed subscriber: rebuild the tally and push it to live viewers."""
    if event.election_id is None:
        return
    if event.table == "elections" and event.action == "deleted":
        return
    result = tally(session, event.election_id, event.occurred_at)
    logger.debug(
        "Recomputed results for election %s after %s.%s: %s votes",
        event.election_id,
        event.table,
        event.action,
        result.total_votes,
    )
    live_results.dispatch_results(event.election_id, serialize_tally(result))


def register_results_subscriber() -> None:
    for table in ("votes", "candidates", "positions", "elections"):
        change_feed.subscribe(table, recompute_on_change)
