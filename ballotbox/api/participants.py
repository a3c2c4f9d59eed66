from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..api.auth import participant_read
from ..api.dependencies import get_db, get_now
from ..auth.jwt import get_current_participant, require_roles
from ..constants import PARTICIPANT_ROLES, ROLE_ADMIN
from ..models.models import Participant
from ..schemas.schemas import EligibilityRead, ParticipantRead, ParticipantRoleUpdate, RoleName, RoleRead
from ..services import trust

router = APIRouter(prefix="/participants", tags=["participants"])

require_admin = require_roles(ROLE_ADMIN)


@router.get("/", response_model=List[ParticipantRead])
def list_participants(
    role: Optional[RoleName] = Query(None),
    pending_only: bool = Query(False),
    db: Session = Depends(get_db),
    _: Participant = Depends(require_admin),
) -> List[ParticipantRead]:
    query = db.query(Participant)
    if role:
        query = query.filter(Participant.role == role)
    participants = query.order_by(Participant.created_at.asc(), Participant.id.asc()).all()
    if pending_only:
        participants = [participant for participant in participants if trust.is_pending(participant)]
    return [participant_read(participant) for participant in participants]


@router.get("/roles", response_model=List[RoleRead])
def list_roles(_: Participant = Depends(get_current_participant)) -> List[RoleRead]:
    return [RoleRead(name=name, description=description) for name, description in PARTICIPANT_ROLES]


@router.get("/me/eligibility", response_model=EligibilityRead)
def read_my_eligibility(current: Participant = Depends(get_current_participant)) -> EligibilityRead:
    return EligibilityRead(
        participant_id=current.id,
        role=current.role,
        approved_at=current.approved_at,
        can_vote=trust.can_vote(current),
        reason=trust.ineligibility_reason(current),
    )


@router.post("/{participant_id}/approve", response_model=ParticipantRead)
def approve_participant(
    participant_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    actor: Participant = Depends(require_admin),
) -> ParticipantRead:
    participant = trust.approve_participant(db, participant_id, now, actor_participant_id=actor.id)
    return participant_read(participant)


@router.patch("/{participant_id}/role", response_model=ParticipantRead)
def update_participant_role(
    participant_id: int,
    payload: ParticipantRoleUpdate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    actor: Participant = Depends(require_admin),
) -> ParticipantRead:
    participant = trust.set_role(db, participant_id, payload.role, now, actor_participant_id=actor.id)
    return participant_read(participant)


@router.delete("/{participant_id}", status_code=status.HTTP_204_NO_CONTENT)
def reject_participant(
    participant_id: int,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> Response:
    trust.reject_participant(db, participant_id, actor_participant_id=actor.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
