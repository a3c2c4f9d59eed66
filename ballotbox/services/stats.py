from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

from ..constants import ROLE_PENDING, ROLE_VOTER
from ..models.models import Election, Participant, Vote
from .lifecycle import ElectionState, filter_by_state, resolve_election_state
from .trust import can_vote


def dashboard_stats(session: Session, now: datetime) -> Dict[str, int]:
    total_participants = session.query(func.count(Participant.id)).scalar() or 0
    pending_participants = (
        session.query(func.count(Participant.id))
        .filter(
            or_(
                Participant.role == ROLE_PENDING,
                and_(Participant.role == ROLE_VOTER, Participant.approved_at.is_(None)),
            )
        )
        .scalar()
    ) or 0
    # State is derived, so the active count is resolved in Python rather than in SQL.
    active_elections = len(filter_by_state(session.query(Election).all(), ElectionState.ACTIVE, now))
    total_votes = session.query(func.count(Vote.id)).scalar() or 0
    return {
        "total_participants": int(total_participants),
        "pending_participants": int(pending_participants),
        "active_elections": active_elections,
        "total_votes": int(total_votes),
    }


def voting_history(session: Session, voter_id: int, now: datetime) -> List[Dict[str, object]]:
    """Every vote held by ``voter_id``, newest first, with catalog labels and election state."""
    votes = (
        session.query(Vote)
        .options(joinedload(Vote.election), joinedload(Vote.position), joinedload(Vote.candidate))
        .filter(Vote.voter_id == voter_id)
        .order_by(Vote.created_at.desc(), Vote.id.desc())
        .all()
    )
    return [
        {
            "vote_id": vote.id,
            "election_id": vote.election_id,
            "election_title": vote.election.title,
            "election_state": resolve_election_state(vote.election, now).value,
            "position_id": vote.position_id,
            "position_title": vote.position.title,
            "candidate_id": vote.candidate_id,
            "candidate_name": vote.candidate.name,
            "candidate_party": vote.candidate.party,
            "created_at": vote.created_at,
            "changed_at": vote.changed_at,
        }
        for vote in votes
    ]


def ballot_status(session: Session, election: Election, participant: Optional[Participant], now: datetime) -> Optional[Dict[str, object]]:
    if participant is None:
        return None
    rows = (
        session.query(Vote.position_id, Vote.candidate_id)
        .filter(Vote.election_id == election.id, Vote.voter_id == participant.id)
        .all()
    )
    return {
        "can_vote": can_vote(participant),
        "state": resolve_election_state(election, now).value,
        "selections": {position_id: candidate_id for position_id, candidate_id in rows},
    }
