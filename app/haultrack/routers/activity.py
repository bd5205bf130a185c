from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.haultrack.core.config import settings
from app.haultrack.core.context import RequestContext
from app.haultrack.core.deps import require_admin
from app.haultrack.core.enums import ActivityType
from app.haultrack.db.session import get_db
from app.haultrack.repos.ledger import ActivityLogRepository
from app.haultrack.routers.responses import activity_response
from app.haultrack.schemas.activity import ActivityLogListResponse

router = APIRouter()


@router.get("/api/activity-logs", response_model=ActivityLogListResponse)
def list_activity_logs(
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
    user_id: UUID | None = Query(default=None),
    task_id: UUID | None = Query(default=None),
    container_id: UUID | None = Query(default=None),
    type: list[ActivityType] | None = Query(default=None),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
):
    limit = min(limit, settings.ACTIVITY_LOG_MAX_PAGE_SIZE)
    rows, total = ActivityLogRepository(db).list_entries(
        user_id=user_id,
        task_id=task_id,
        container_id=container_id,
        types=[item.value for item in type] if type else None,
        limit=limit,
        offset=offset,
    )
    return ActivityLogListResponse(
        entries=[activity_response(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
    )
