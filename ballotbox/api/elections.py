import csv
import io
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..api.dependencies import get_db, get_now
from ..auth.jwt import get_current_participant, get_optional_participant, require_roles
from ..constants import ROLE_ADMIN
from ..models.models import Election, Participant, Vote
from ..schemas.schemas import (
    BallotStatus,
    CandidateCreate,
    CandidateRead,
    CandidateUpdate,
    ElectionCreate,
    ElectionListItem,
    ElectionRead,
    ElectionStateName,
    ElectionTallyRead,
    ElectionUpdate,
    PositionCreate,
    PositionRead,
    PositionUpdate,
)
from ..services import catalog
from ..services.lifecycle import ElectionState, resolve_election_state
from ..services.results import serialize_tally, tally
from ..services.stats import ballot_status

router = APIRouter()

require_admin = require_roles(ROLE_ADMIN)


def _summarize_election(
    election: Election,
    db: Session,
    now: datetime,
    participant: Optional[Participant] = None,
) -> ElectionRead:
    status_payload = ballot_status(db, election, participant, now)
    return ElectionRead(
        id=election.id,
        title=election.title,
        description=election.description,
        state=resolve_election_state(election, now).value,
        start_time=election.start_time,
        end_time=election.end_time,
        created_at=election.created_at,
        updated_at=election.updated_at,
        positions=[PositionRead.model_validate(position) for position in election.positions],
        my_status=BallotStatus(**status_payload) if status_payload else None,
    )


@router.get("/", response_model=List[ElectionListItem])
def list_elections(
    state: Optional[ElectionStateName] = Query(None),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: Participant = Depends(get_current_participant),
) -> List[ElectionListItem]:
    vote_totals = dict(
        db.query(Vote.election_id, func.count(Vote.id)).group_by(Vote.election_id).all()
    )
    items: List[ElectionListItem] = []
    for election in catalog.list_elections(db):
        election_state = resolve_election_state(election, now)
        if state and election_state is not ElectionState(state):
            continue
        items.append(
            ElectionListItem(
                id=election.id,
                title=election.title,
                state=election_state.value,
                start_time=election.start_time,
                end_time=election.end_time,
                position_count=len(election.positions),
                candidate_count=sum(len(position.candidates) for position in election.positions),
                total_votes=int(vote_totals.get(election.id, 0)),
            )
        )
    return items


@router.post("/", response_model=ElectionRead, status_code=status.HTTP_201_CREATED)
def create_election(
    payload: ElectionCreate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    actor: Participant = Depends(require_admin),
) -> ElectionRead:
    election = catalog.create_election(
        db,
        title=payload.title,
        description=payload.description,
        start_time=payload.start_time,
        end_time=payload.end_time,
        actor_participant_id=actor.id,
    )
    return _summarize_election(election, db, now)


@router.get("/{election_id}", response_model=ElectionRead)
def get_election(
    election_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    participant: Optional[Participant] = Depends(get_optional_participant),
) -> ElectionRead:
    election = catalog.get_election(db, election_id)
    return _summarize_election(election, db, now, participant)


@router.patch("/{election_id}", response_model=ElectionRead)
def update_election(
    election_id: int,
    payload: ElectionUpdate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    actor: Participant = Depends(require_admin),
) -> ElectionRead:
    election = catalog.update_election(
        db,
        election_id,
        payload.model_dump(exclude_unset=True),
        actor_participant_id=actor.id,
    )
    return _summarize_election(election, db, now)


@router.delete("/{election_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_election(
    election_id: int,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> Response:
    catalog.delete_election(db, election_id, actor_participant_id=actor.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{election_id}/positions", response_model=PositionRead, status_code=status.HTTP_201_CREATED)
def create_position(
    election_id: int,
    payload: PositionCreate,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> PositionRead:
    position = catalog.create_position(
        db,
        election_id,
        title=payload.title,
        description=payload.description,
        max_candidates=payload.max_candidates,
        actor_participant_id=actor.id,
    )
    return PositionRead.model_validate(position)


@router.patch("/positions/{position_id}", response_model=PositionRead)
def update_position(
    position_id: int,
    payload: PositionUpdate,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> PositionRead:
    position = catalog.update_position(
        db,
        position_id,
        payload.model_dump(exclude_unset=True),
        actor_participant_id=actor.id,
    )
    return PositionRead.model_validate(position)


@router.delete("/positions/{position_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_position(
    position_id: int,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> Response:
    catalog.delete_position(db, position_id, actor_participant_id=actor.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/positions/{position_id}/candidates", response_model=CandidateRead, status_code=status.HTTP_201_CREATED)
def create_candidate(
    position_id: int,
    payload: CandidateCreate,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> CandidateRead:
    candidate = catalog.create_candidate(
        db,
        position_id,
        name=payload.name,
        party=payload.party,
        description=payload.description,
        image_url=payload.image_url,
        actor_participant_id=actor.id,
    )
    return CandidateRead.model_validate(candidate)


@router.patch("/candidates/{candidate_id}", response_model=CandidateRead)
def update_candidate(
    candidate_id: int,
    payload: CandidateUpdate,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> CandidateRead:
    candidate = catalog.update_candidate(
        db,
        candidate_id,
        payload.model_dump(exclude_unset=True),
        actor_participant_id=actor.id,
    )
    return CandidateRead.model_validate(candidate)


@router.delete("/candidates/{candidate_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_candidate(
    candidate_id: int,
    db: Session = Depends(get_db),
    actor: Participant = Depends(require_admin),
) -> Response:
    catalog.delete_candidate(db, candidate_id, actor_participant_id=actor.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{election_id}/results", response_model=ElectionTallyRead)
def get_election_results(
    election_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: Participant = Depends(get_current_participant),
) -> ElectionTallyRead:
    return ElectionTallyRead.model_validate(serialize_tally(tally(db, election_id, now)))


@router.get("/{election_id}/results.csv")
def download_election_results_csv(
    election_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: Participant = Depends(require_admin),
) -> StreamingResponse:
    result = tally(db, election_id, now)
    election = result.election

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Election", election.title])
    writer.writerow(["State", result.state.value])
    writer.writerow(["Total votes", result.total_votes])
    writer.writerow(["Leader", result.leader.candidate.name if result.leader else ""])
    writer.writerow([])
    writer.writerow(["Position", "Candidate", "Party", "Votes", "% of votes"])
    for position in result.positions:
        for entry in position.candidates:
            writer.writerow(
                [
                    position.position.title,
                    entry.candidate.name,
                    entry.candidate.party or "",
                    entry.vote_count,
                    f"{entry.percentage:.2f}%",
                ]
            )

    buffer.seek(0)
    filename = f"election-{election.id}-results.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)
