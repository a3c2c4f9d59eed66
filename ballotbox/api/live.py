from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket
from sqlalchemy.orm import Session

from ..api.dependencies import get_db, get_now
from ..auth.jwt import participant_from_token
from ..services.errors import UnknownElection
from ..services.live import live_results_websocket_handler
from ..services.results import serialize_tally, tally

router = APIRouter(prefix="/live", tags=["live"])


@router.websocket("/elections/{election_id}")
async def websocket_election_results(
    websocket: WebSocket,
    election_id: int,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> None:
    if not token:
        await websocket.close(code=4401)
        return
    participant = participant_from_token(db, token)
    if participant is None:
        await websocket.close(code=4401)
        return

    try:
        snapshot = serialize_tally(tally(db, election_id, now))
    except UnknownElection:
        await websocket.close(code=4404)
        return

    await live_results_websocket_handler(election_id, websocket, snapshot)
