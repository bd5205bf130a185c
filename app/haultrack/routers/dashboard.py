from fastapi import APIRouter, Depends

from app.haultrack.core.context import RequestContext
from app.haultrack.core.deps import require_admin
from app.haultrack.db.session import get_db
from app.haultrack.schemas.dashboard import DashboardStatsResponse
from app.haultrack.services.dashboard import DashboardService
from app.haultrack.services.task_engine import utcnow

router = APIRouter()


@router.get("/api/dashboard/stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    stats = DashboardService(db).stats(now=utcnow())
    return DashboardStatsResponse(
        open_tasks=stats.open_tasks,
        in_progress_tasks=stats.in_progress_tasks,
        completed_today=stats.completed_today,
        active_drivers=stats.active_drivers,
        critical_containers=stats.critical_containers,
        total_capacity=float(stats.total_capacity),
        available_capacity=float(stats.available_capacity),
    )
