from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..config import settings
from ..models.models import Participant

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")
optional_bearer = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _create_token(data: dict, expires_minutes: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode = data.copy()
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict) -> str:
    payload = data.copy()
    payload.setdefault("type", "access")
    return _create_token(payload, settings.access_token_expire_minutes)


def create_refresh_token(participant_id: str) -> str:
    payload = {"sub": participant_id, "type": "refresh"}
    return _create_token(payload, settings.refresh_token_expire_minutes)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def participant_from_token(db: Session, token: str) -> Optional[Participant]:
    """Resolve an access token to its participant, or ``None`` when it is unusable."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    participant_id: Optional[str] = payload.get("sub")
    if participant_id is None or payload.get("type") not in (None, "access"):
        return None
    try:
        return db.get(Participant, int(participant_id))
    except ValueError:
        return None


def get_current_participant(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Participant:
    participant = participant_from_token(db, token)
    if participant is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return participant


def get_optional_participant(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(optional_bearer),
    db: Session = Depends(get_db),
) -> Optional[Participant]:
    if not credentials:
        return None
    return participant_from_token(db, credentials.credentials)


def require_roles(*allowed_roles: str):
    allowed = set(allowed_roles)

    def role_checker(participant: Participant = Depends(get_current_participant)) -> Participant:
        if not allowed:
            return participant
        if participant.has_any_role(*allowed):
            return participant
        raise HTTPException(status_code=403, detail="Operation not permitted for your role")

    return role_checker
