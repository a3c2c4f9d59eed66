import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_participant,
    get_password_hash,
    verify_password,
)
from ..config import settings
from ..constants import ROLE_PENDING
from ..core.rate_limit import RateLimitRule, rate_limit_dependency
from ..models.models import Participant
from ..schemas.schemas import ParticipantCreate, ParticipantRead, Token, TokenRefreshRequest
from ..services.audit import audit_log
from ..services.trust import can_vote

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_RATE_LIMIT = RateLimitRule("auth-login", limit=10, window_seconds=60)
login_rate_limit = rate_limit_dependency(LOGIN_RATE_LIMIT)


def participant_read(participant: Participant) -> ParticipantRead:
    read = ParticipantRead.model_validate(participant)
    read.can_vote = can_vote(participant)
    return read


def _build_token_response(participant: Participant) -> Token:
    access_payload = {
        "sub": str(participant.id),
        "role": participant.role,
        "type": "access",
    }
    return Token(
        access_token=create_access_token(access_payload),
        refresh_token=create_refresh_token(str(participant.id)),
        token_type="bearer",
        role=participant.role,
        expires_in=settings.access_token_expire_minutes * 60,
        refresh_expires_in=settings.refresh_token_expire_minutes * 60,
    )


@router.post("/register", response_model=ParticipantRead, status_code=status.HTTP_201_CREATED)
def register_participant(payload: ParticipantCreate, db: Session = Depends(get_db)) -> ParticipantRead:
    """Self-registration. New accounts wait in the pending role until an administrator approves them."""
    email = payload.email.lower()
    existing = db.query(Participant).filter(func.lower(Participant.email) == email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    participant = Participant(
        email=email,
        full_name=payload.full_name,
        hashed_password=get_password_hash(payload.password),
        role=ROLE_PENDING,
    )
    db.add(participant)
    db.flush()
    audit_log(
        db_session=db,
        actor_participant_id=participant.id,
        action="participant.register",
        target_entity_type="Participant",
        target_entity_id=str(participant.id),
        after={"email": participant.email, "role": participant.role},
    )
    db.refresh(participant)
    logger.info("Participant %s registered and awaiting approval", participant.id)
    return participant_read(participant)


@router.post("/login", response_model=Token, dependencies=[Depends(login_rate_limit)])
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> Token:
    participant = (
        db.query(Participant)
        .filter(func.lower(Participant.email) == form_data.username.lower())
        .first()
    )
    if not participant or not verify_password(form_data.password, participant.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _build_token_response(participant)


@router.post("/refresh", response_model=Token)
def refresh_token(payload: TokenRefreshRequest, db: Session = Depends(get_db)) -> Token:
    credentials_exception = HTTPException(status_code=401, detail="Invalid refresh token")
    try:
        decoded = decode_token(payload.refresh_token)
    except JWTError as exc:
        raise credentials_exception from exc

    if decoded.get("type") != "refresh":
        raise credentials_exception

    participant_id = decoded.get("sub")
    if not participant_id:
        raise credentials_exception

    participant = db.get(Participant, int(participant_id))
    if not participant:
        raise credentials_exception
    return _build_token_response(participant)


@router.get("/me", response_model=ParticipantRead)
def read_current_participant(current: Participant = Depends(get_current_participant)) -> ParticipantRead:
    return participant_read(current)
