from datetime import datetime, timezone
from typing import Generator

from sqlalchemy.orm import Session

from .. import config


def get_db() -> Generator[Session, None, None]:
    db = config.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_now() -> datetime:
    """Clock used by every request; overridden in tests to pin election windows."""
    return datetime.now(timezone.utc)
