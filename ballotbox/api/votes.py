from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_db, get_now
from ..auth.jwt import get_current_participant
from ..core.rate_limit import RateLimitRule, enforce
from ..models.models import Participant
from ..schemas.schemas import VoteCast, VoteHistoryItem, VoteOutcomeRead, VoteRead
from ..services.ledger import VoteOutcome, cast_or_change_vote
from ..services.stats import voting_history

router = APIRouter(prefix="/votes", tags=["votes"])

VOTE_RATE_LIMIT = RateLimitRule("votes-cast", limit=30, window_seconds=60)


async def vote_rate_limit(current: Participant = Depends(get_current_participant)) -> None:
    # Keyed per voter, not per client address.
    await enforce(VOTE_RATE_LIMIT, f"participant:{current.id}")


@router.post("/", response_model=VoteOutcomeRead, dependencies=[Depends(vote_rate_limit)])
def cast_vote(
    payload: VoteCast,
    response: Response,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    current: Participant = Depends(get_current_participant),
) -> VoteOutcomeRead:
    receipt = cast_or_change_vote(db, current.id, payload.candidate_id, now)
    if receipt.outcome is VoteOutcome.CAST:
        response.status_code = status.HTTP_201_CREATED
    return VoteOutcomeRead(outcome=receipt.outcome.value, vote=VoteRead.model_validate(receipt.vote))


@router.get("/me", response_model=List[VoteHistoryItem])
def read_my_votes(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    current: Participant = Depends(get_current_participant),
) -> List[VoteHistoryItem]:
    return [VoteHistoryItem(**item) for item in voting_history(db, current.id, now)]
