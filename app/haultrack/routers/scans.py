from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.haultrack.core.context import RequestContext
from app.haultrack.core.deps import require_request_context
from app.haultrack.db.session import get_db
from app.haultrack.repos.ledger import ScanEventRepository
from app.haultrack.routers.responses import normalize_uuid, scan_event_response, scan_location, task_response
from app.haultrack.schemas.scans import InfoScanResponse, ScanEventResponse, ScanRequest, ScanResolveResponse
from app.haultrack.services.scan_resolver import ScanResolver
from app.haultrack.services.task_engine import TaskEngine

router = APIRouter()


@router.post("/api/scans/resolve", response_model=ScanResolveResponse)
def resolve_scan(
    payload: ScanRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    resolution = ScanResolver(db).resolve(payload.qr_payload, context.user_id)
    return ScanResolveResponse(
        qr_code=resolution.qr_code,
        container_type=resolution.container_type.value,
        container_id=normalize_uuid(resolution.container.id),
        material_type=resolution.container.material_type,
        task=task_response(resolution.task),
        next_action=resolution.next_action,
    )


@router.post("/api/scans/info", response_model=InfoScanResponse, status_code=201)
def record_info_scan(
    payload: ScanRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    result = TaskEngine(db).record_info_scan(payload.qr_payload, context.user_id, scan_location(payload))
    return InfoScanResponse(
        container_type=result.container_type.value,
        container_id=normalize_uuid(result.container.id),
        scan_event=scan_event_response(result.scan_event),
    )


@router.get("/api/scan-events", response_model=list[ScanEventResponse])
def list_scan_events(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    container_id: UUID | None = Query(default=None),
    task_id: UUID | None = Query(default=None),
    user_id: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
):
    if not context.is_admin:
        user_id = UUID(context.user_id)
    rows = ScanEventRepository(db).list_events(
        container_id=container_id,
        task_id=task_id,
        user_id=user_id,
        limit=limit,
    )
    return [scan_event_response(row) for row in rows]
