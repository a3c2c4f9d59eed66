"""Catalog manager: elections, their positions and the candidates standing for them."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ..constants import DEFAULT_MAX_CANDIDATES
from ..models.models import Candidate, Election, Position, Vote
from .audit import audit_log
from .change_feed import ChangeEvent, change_feed
from .errors import InvalidCatalogEntry, RecordInUse, UnknownCandidate, UnknownElection, UnknownPosition
from .lifecycle import as_utc

logger = logging.getLogger(__name__)

ELECTION_FIELDS = ("title", "description", "start_time", "end_time")
POSITION_FIELDS = ("title", "description", "max_candidates")
CANDIDATE_FIELDS = ("name", "party", "description", "image_url")


def _snapshot(instance: Any, fields) -> Dict[str, Any]:
    return {name: getattr(instance, name) for name in fields}


def _count_votes(session: Session, *criteria) -> int:
    return int(session.query(func.count(Vote.id)).filter(*criteria).scalar() or 0)


def _validate_window(start_time: datetime, end_time: datetime) -> None:
    if as_utc(start_time) >= as_utc(end_time):
        raise InvalidCatalogEntry(
            "Election start time must be before its end time.",
            start_time=as_utc(start_time).isoformat(),
            end_time=as_utc(end_time).isoformat(),
        )


def _commit_and_publish(session: Session, event: ChangeEvent) -> None:
    session.commit()
    change_feed.publish(session, event)


def list_elections(session: Session) -> List[Election]:
    return (
        session.query(Election)
        .options(selectinload(Election.positions).selectinload(Position.candidates))
        .order_by(Election.start_time.desc(), Election.id.desc())
        .all()
    )


def get_election(session: Session, election_id: int) -> Election:
    election = session.get(Election, election_id)
    if election is None:
        raise UnknownElection(election_id)
    return election


def get_position(session: Session, position_id: int) -> Position:
    position = session.get(Position, position_id)
    if position is None:
        raise UnknownPosition(position_id)
    return position


def get_candidate(session: Session, candidate_id: int) -> Candidate:
    candidate = session.get(Candidate, candidate_id)
    if candidate is None:
        raise UnknownCandidate(candidate_id)
    return candidate


def create_election(
    session: Session,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: Optional[str] = None,
    actor_participant_id: Optional[int] = None,
) -> Election:
    _validate_window(start_time, end_time)
    election = Election(
        title=title,
        description=description,
        start_time=as_utc(start_time),
        end_time=as_utc(end_time),
        created_by_participant_id=actor_participant_id,
    )
    session.add(election)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="election.create",
        target_entity_type="Election",
        target_entity_id=str(election.id),
        after=_snapshot(election, ELECTION_FIELDS),
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("elections", "created", election.id, election.id))
    logger.info("Election %s created: %s", election.id, title)
    return election


def update_election(
    session: Session,
    election_id: int,
    changes: Dict[str, Any],
    actor_participant_id: Optional[int] = None,
) -> Election:
    election = get_election(session, election_id)
    before = _snapshot(election, ELECTION_FIELDS)
    updates = {key: value for key, value in changes.items() if key in ELECTION_FIELDS}
    for key in ("start_time", "end_time"):
        if updates.get(key) is not None:
            updates[key] = as_utc(updates[key])
        else:
            updates.pop(key, None)

    _validate_window(updates.get("start_time", election.start_time), updates.get("end_time", election.end_time))
    for key, value in updates.items():
        setattr(election, key, value)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="election.update",
        target_entity_type="Election",
        target_entity_id=str(election.id),
        before=before,
        after=_snapshot(election, ELECTION_FIELDS),
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("elections", "updated", election.id, election.id))
    return election


def delete_election(session: Session, election_id: int, actor_participant_id: Optional[int] = None) -> None:
    election = get_election(session, election_id)
    vote_count = _count_votes(session, Vote.election_id == election.id)
    if vote_count:
        raise RecordInUse("election", election.id, vote_count)

    before = _snapshot(election, ELECTION_FIELDS)
    session.delete(election)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="election.delete",
        target_entity_type="Election",
        target_entity_id=str(election_id),
        before=before,
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("elections", "deleted", election_id, election_id))
    logger.info("Election %s deleted", election_id)


def create_position(
    session: Session,
    election_id: int,
    title: str,
    description: Optional[str] = None,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    actor_participant_id: Optional[int] = None,
) -> Position:
    election = get_election(session, election_id)
    if max_candidates < 1:
        raise InvalidCatalogEntry("A position must allow at least one candidate.", max_candidates=max_candidates)
    position = Position(
        election_id=election.id,
        title=title,
        description=description,
        max_candidates=max_candidates,
    )
    session.add(position)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="position.create",
        target_entity_type="Position",
        target_entity_id=str(position.id),
        after=_snapshot(position, POSITION_FIELDS),
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("positions", "created", election.id, position.id))
    return position


def update_position(
    session: Session,
    position_id: int,
    changes: Dict[str, Any],
    actor_participant_id: Optional[int] = None,
) -> Position:
    position = get_position(session, position_id)
    before = _snapshot(position, POSITION_FIELDS)
    updates = {key: value for key, value in changes.items() if key in POSITION_FIELDS}
    if "max_candidates" in updates:
        if updates["max_candidates"] is None:
            updates.pop("max_candidates")
        else:
            current = len(position.candidates)
            if updates["max_candidates"] < max(current, 1):
                raise InvalidCatalogEntry(
                    "max_candidates cannot be lower than the number of candidates already standing.",
                    max_candidates=updates["max_candidates"],
                    candidate_count=current,
                )

    for key, value in updates.items():
        setattr(position, key, value)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="position.update",
        target_entity_type="Position",
        target_entity_id=str(position.id),
        before=before,
        after=_snapshot(position, POSITION_FIELDS),
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("positions", "updated", position.election_id, position.id))
    return position


def delete_position(session: Session, position_id: int, actor_participant_id: Optional[int] = None) -> None:
    position = get_position(session, position_id)
    vote_count = _count_votes(session, Vote.position_id == position.id)
    if vote_count:
        raise RecordInUse("position", position.id, vote_count)

    election_id = position.election_id
    before = _snapshot(position, POSITION_FIELDS)
    session.delete(position)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="position.delete",
        target_entity_type="Position",
        target_entity_id=str(position_id),
        before=before,
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("positions", "deleted", election_id, position_id))


def _ensure_capacity(position: Position) -> None:
    current = len(position.candidates)
    if current >= position.max_candidates:
        raise InvalidCatalogEntry(
            "This position already has its maximum number of candidates.",
            position_id=position.id,
            max_candidates=position.max_candidates,
        )


def create_candidate(
    session: Session,
    position_id: int,
    name: str,
    party: Optional[str] = None,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
    actor_participant_id: Optional[int] = None,
) -> Candidate:
    """Add a candidate to ``position_id``; the election is always taken from the position."""
    position = get_position(session, position_id)
    _ensure_capacity(position)
    candidate = Candidate(
        election_id=position.election_id,
        position_id=position.id,
        name=name,
        party=party,
        description=description,
        image_url=image_url,
    )
    position.candidates.append(candidate)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="candidate.create",
        target_entity_type="Candidate",
        target_entity_id=str(candidate.id),
        after=_snapshot(candidate, CANDIDATE_FIELDS + ("position_id",)),
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("candidates", "created", candidate.election_id, candidate.id))
    return candidate


def update_candidate(
    session: Session,
    candidate_id: int,
    changes: Dict[str, Any],
    actor_participant_id: Optional[int] = None,
) -> Candidate:
    candidate = get_candidate(session, candidate_id)
    before = _snapshot(candidate, CANDIDATE_FIELDS + ("position_id",))
    previous_election_id = candidate.election_id

    target_position_id = changes.get("position_id")
    if target_position_id is not None and target_position_id != candidate.position_id:
        vote_count = _count_votes(session, Vote.candidate_id == candidate.id)
        if vote_count:
            raise RecordInUse("candidate", candidate.id, vote_count)
        target = get_position(session, target_position_id)
        _ensure_capacity(target)
        candidate.position = target
        candidate.election_id = target.election_id

    for key, value in changes.items():
        if key in CANDIDATE_FIELDS:
            setattr(candidate, key, value)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="candidate.update",
        target_entity_type="Candidate",
        target_entity_id=str(candidate.id),
        before=before,
        after=_snapshot(candidate, CANDIDATE_FIELDS + ("position_id",)),
        commit=False,
    )
    session.commit()
    change_feed.publish(session, ChangeEvent("candidates", "updated", candidate.election_id, candidate.id))
    if previous_election_id != candidate.election_id:
        change_feed.publish(session, ChangeEvent("candidates", "moved", previous_election_id, candidate.id))
    return candidate


def delete_candidate(session: Session, candidate_id: int, actor_participant_id: Optional[int] = None) -> None:
    candidate = get_candidate(session, candidate_id)
    vote_count = _count_votes(session, Vote.candidate_id == candidate.id)
    if vote_count:
        raise RecordInUse("candidate", candidate.id, vote_count)

    election_id = candidate.election_id
    before = _snapshot(candidate, CANDIDATE_FIELDS + ("position_id",))
    session.delete(candidate)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="candidate.delete",
        target_entity_type="Candidate",
        target_entity_id=str(candidate_id),
        before=before,
        commit=False,
    )
    _commit_and_publish(session, ChangeEvent("candidates", "deleted", election_id, candidate_id))
