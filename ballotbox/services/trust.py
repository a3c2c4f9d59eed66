"""Identity and trust gate: who may vote, and the admin actions that change it."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..constants import ROLE_ADMIN, ROLE_PENDING, ROLE_VOTER
from ..models.models import Participant, Vote
from .audit import audit_log
from .errors import InvalidRole, RecordInUse, UnknownParticipant

logger = logging.getLogger(__name__)

VALID_ROLES = (ROLE_PENDING, ROLE_VOTER, ROLE_ADMIN)


def can_vote(participant: Participant) -> bool:
    """A participant votes only when holding the voter role *and* an approval stamp."""
    return participant.role == ROLE_VOTER and participant.approved_at is not None


def ineligibility_reason(participant: Participant) -> Optional[str]:
    if can_vote(participant):
        return None
    if participant.role == ROLE_PENDING:
        return "Account is pending administrator approval."
    if participant.role == ROLE_VOTER:
        return "Voter account is missing its approval and needs to be re-approved."
    return "Administrators do not cast ballots."


def is_pending(participant: Participant) -> bool:
    return not can_vote(participant) and participant.role != ROLE_ADMIN


def get_participant(session: Session, participant_id: int) -> Participant:
    participant = session.get(Participant, participant_id)
    if participant is None:
        raise UnknownParticipant(participant_id)
    return participant


def set_role(
    session: Session,
    participant_id: int,
    role: str,
    now: datetime,
    actor_participant_id: Optional[int] = None,
) -> Participant:
    """Assign ``role``; approving as voter stamps ``now``, any other role clears the stamp."""
    if role not in VALID_ROLES:
        raise InvalidRole(role)
    participant = get_participant(session, participant_id)
    before = {"role": participant.role, "approved_at": participant.approved_at}

    participant.role = role
    participant.approved_at = now if role == ROLE_VOTER else None
    session.add(participant)
    session.flush()

    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="participant.set_role",
        target_entity_type="Participant",
        target_entity_id=str(participant.id),
        before=before,
        after={"role": participant.role, "approved_at": participant.approved_at},
    )
    logger.info("Participant %s role changed %s -> %s", participant.id, before["role"], role)
    return participant


def approve_participant(
    session: Session,
    participant_id: int,
    now: datetime,
    actor_participant_id: Optional[int] = None,
) -> Participant:
    return set_role(session, participant_id, ROLE_VOTER, now, actor_participant_id=actor_participant_id)


def reject_participant(
    session: Session,
    participant_id: int,
    actor_participant_id: Optional[int] = None,
) -> None:
    """Remove the participant record entirely. Refused once the participant has voted."""
    participant = get_participant(session, participant_id)
    vote_count = (
        session.query(func.count(Vote.id))
        .filter(Vote.voter_id == participant.id)
        .scalar()
    ) or 0
    if vote_count:
        raise RecordInUse("participant", participant.id, int(vote_count))

    snapshot = {"email": participant.email, "role": participant.role}
    session.delete(participant)
    session.flush()
    audit_log(
        db_session=session,
        actor_participant_id=actor_participant_id,
        action="participant.reject",
        target_entity_type="Participant",
        target_entity_id=str(participant_id),
        before=snapshot,
    )
    logger.info("Participant %s rejected and removed", participant_id)
