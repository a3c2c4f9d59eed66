import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.version import get_version_info
from ..schemas.schemas import HealthRead, VersionRead

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthRead)
def read_health(db: Session = Depends(get_db)) -> HealthRead:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("Database health check failed")
        return HealthRead(status="degraded", database="unavailable", details={"error": exc.__class__.__name__})
    return HealthRead(status="ok", database="ok")


@router.get("/version", response_model=VersionRead)
def read_version() -> VersionRead:
    return VersionRead(**get_version_info())
