from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db, get_now
from ..auth.jwt import require_roles
from ..constants import ROLE_ADMIN
from ..models.models import Participant
from ..schemas.schemas import DashboardStats
from ..services.stats import dashboard_stats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def read_dashboard_stats(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: Participant = Depends(require_roles(ROLE_ADMIN)),
) -> DashboardStats:
    return DashboardStats(**dashboard_stats(db, now))
