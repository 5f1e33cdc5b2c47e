from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.ability import Ability, Action, Subject
from ...api.deps import require_ability
from ...services.dashboard_service import DashboardService
from ...schemas.dashboard import DashboardStats

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

@router.get("", response_model=DashboardStats)
async def get_dashboard(
    _: Ability = Depends(require_ability(Action.READ, Subject.DASHBOARD)),
    db: Session = Depends(get_db)
):
    """Counts and revenue totals for the admin dashboard."""
    return DashboardService(db).stats()
