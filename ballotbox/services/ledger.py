"""Vote ledger: the single writer of vote rows.

A voter holds at most one vote per position. The first cast inserts the row,
later casts for another candidate of the same position rewrite it in place.
Both writes are conditional so two requests racing on the same (voter,
position) pair can never produce a second row or silently overwrite each
other; the loser sees :class:`ConcurrentWriteConflict` and the attempt is
retried from scratch.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import insert, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Candidate, Election, Participant, Position, Vote
from .audit import audit_log
from .change_feed import ChangeEvent, change_feed
from .errors import (
    ConcurrentWriteConflict,
    InconsistentCatalog,
    UnknownCandidate,
    UnknownParticipant,
    VoterNotEligible,
    VotingNotOpen,
)
from .lifecycle import ElectionState, resolve_election_state
from .trust import can_vote

logger = logging.getLogger(__name__)

_votes = Vote.__table__


class VoteOutcome(str, enum.Enum):
    CAST = "cast"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


@dataclass
class VoteReceipt:
    outcome: VoteOutcome
    vote: Vote


def _find_vote(session: Session, voter_id: int, position_id: int) -> Optional[Vote]:
    return (
        session.query(Vote)
        .filter(Vote.voter_id == voter_id, Vote.position_id == position_id)
        .first()
    )


def _resolve_catalog(session: Session, candidate_id: int) -> tuple[Candidate, Position, Election]:
    candidate = session.get(Candidate, candidate_id)
    if candidate is None:
        raise UnknownCandidate(candidate_id)

    position = session.get(Position, candidate.position_id)
    position_election_id = position.election_id if position is not None else None
    election = session.get(Election, candidate.election_id)
    if position is None or election is None or position_election_id != candidate.election_id:
        logger.error(
            "Inconsistent catalog for candidate %s: candidate election %s, position %s election %s",
            candidate.id,
            candidate.election_id,
            candidate.position_id,
            position_election_id,
        )
        audit_log(
            db_session=session,
            actor_participant_id=None,
            action="catalog.inconsistent",
            target_entity_type="Candidate",
            target_entity_id=str(candidate.id),
            before={
                "candidate_election_id": candidate.election_id,
                "position_id": candidate.position_id,
                "position_election_id": position_election_id,
            },
        )
        raise InconsistentCatalog(candidate.id, candidate.election_id, position_election_id)
    return candidate, position, election


def _insert_vote(session: Session, voter_id: int, candidate: Candidate, now: datetime) -> Vote:
    values = {
        "voter_id": voter_id,
        "election_id": candidate.election_id,
        "position_id": candidate.position_id,
        "candidate_id": candidate.id,
        "created_at": now,
    }
    dialect = session.get_bind().dialect.name
    if dialect in ("sqlite", "postgresql"):
        dialect_insert = sqlite_insert if dialect == "sqlite" else postgresql_insert
        statement = dialect_insert(_votes).values(**values).on_conflict_do_nothing(
            index_elements=["voter_id", "position_id"]
        )
        result = session.execute(statement)
        if result.rowcount != 1:
            raise ConcurrentWriteConflict(voter_id, candidate.position_id)
    else:
        try:
            with session.begin_nested():
                session.execute(insert(_votes).values(**values))
        except IntegrityError as exc:
            raise ConcurrentWriteConflict(voter_id, candidate.position_id) from exc

    vote = _find_vote(session, voter_id, candidate.position_id)
    if vote is None:
        raise ConcurrentWriteConflict(voter_id, candidate.position_id)
    return vote


def _swap_candidate(session: Session, vote: Vote, candidate: Candidate, now: datetime) -> Vote:
    result = session.execute(
        update(_votes)
        .where(_votes.c.id == vote.id, _votes.c.candidate_id == vote.candidate_id)
        .values(candidate_id=candidate.id, changed_at=now)
    )
    if result.rowcount != 1:
        raise ConcurrentWriteConflict(vote.voter_id, vote.position_id)
    session.refresh(vote)
    return vote


def _attempt(session: Session, voter_id: int, candidate_id: int, now: datetime) -> VoteReceipt:
    candidate, position, election = _resolve_catalog(session, candidate_id)

    state = resolve_election_state(election, now)
    if state is not ElectionState.ACTIVE:
        raise VotingNotOpen(election.id, state.value)

    voter = session.get(Participant, voter_id)
    if voter is None:
        raise UnknownParticipant(voter_id)
    if not can_vote(voter):
        raise VoterNotEligible(voter.id, voter.role)

    existing = _find_vote(session, voter.id, position.id)
    if existing is None:
        return VoteReceipt(VoteOutcome.CAST, _insert_vote(session, voter.id, candidate, now))
    if existing.candidate_id == candidate.id:
        return VoteReceipt(VoteOutcome.UNCHANGED, existing)
    return VoteReceipt(VoteOutcome.CHANGED, _swap_candidate(session, existing, candidate, now))


def cast_or_change_vote(session: Session, voter_id: int, candidate_id: int, now: datetime) -> VoteReceipt:
    """Record ``voter_id``'s choice of ``candidate_id`` for that candidate's position.

    Preconditions are checked in order (candidate exists, catalog is
    consistent, election is active, voter is eligible) and the first failure
    is raised. Casting the same candidate twice is a no-op reported as
    ``unchanged``.
    """
    retries = max(settings.vote_conflict_retries, 0)
    attempt = 0
    while True:
        try:
            receipt = _attempt(session, voter_id, candidate_id, now)
            if receipt.outcome is VoteOutcome.UNCHANGED:
                return receipt
            session.commit()
            break
        except ConcurrentWriteConflict:
            session.rollback()
            if attempt >= retries:
                logger.warning("Vote conflict for voter %s persisted after %s retries", voter_id, retries)
                raise
            attempt += 1
            logger.info("Vote conflict for voter %s on candidate %s; retrying", voter_id, candidate_id)
        except Exception:
            session.rollback()
            raise

    vote = receipt.vote
    logger.info(
        "Vote %s: voter=%s election=%s position=%s candidate=%s",
        receipt.outcome.value,
        vote.voter_id,
        vote.election_id,
        vote.position_id,
        vote.candidate_id,
    )
    change_feed.publish(
        session,
        ChangeEvent(
            table="votes",
            action=receipt.outcome.value,
            election_id=vote.election_id,
            entity_id=vote.id,
            occurred_at=now,
        ),
    )
    return receipt
