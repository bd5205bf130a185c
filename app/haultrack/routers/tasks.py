from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.haultrack.core.context import RequestContext
from app.haultrack.core.deps import require_admin, require_request_context
from app.haultrack.core.enums import TaskStatus
from app.haultrack.core.error_catalog import NotFound
from app.haultrack.core.metrics import metrics
from app.haultrack.db.session import get_db
from app.haultrack.repos.ledger import ScanEventRepository
from app.haultrack.repos.tasks import TaskRepository
from app.haultrack.routers.responses import (
    normalize_uuid,
    scan_event_response,
    scan_location,
    task_response,
    transition_response,
)
from app.haultrack.schemas.common import LocationPayload
from app.haultrack.schemas.scans import ScanEventResponse
from app.haultrack.schemas.tasks import (
    AllowedTransitionsResponse,
    TaskAssignRequest,
    TaskCancelRequest,
    TaskCreateRequest,
    TaskDeliveryRequest,
    TaskListResponse,
    TaskReassignRequest,
    TaskResponse,
    TaskTransitionResponse,
    TaskWeightRequest,
)
from app.haultrack.services.idempotency import (
    IDEMPOTENCY_RESULT_HEADER,
    IDEMPOTENT_REPLAY,
    IdempotencyService,
    extract_idempotency_key,
)
from app.haultrack.services.task_engine import TaskEngine
from app.haultrack.services.task_transitions import allowed_transitions

router = APIRouter()


def _with_idempotency(
    request: Request,
    db,
    context: RequestContext,
    payload: dict,
    handler: Callable[[], TaskTransitionResponse | TaskResponse],
    *,
    status_code: int = 200,
):
    idempotency_key = extract_idempotency_key(request.headers)
    if idempotency_key is None:
        return handler()
    service = IdempotencyService(db)
    idempotency, replay = service.start(
        user_id=context.user_id,
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        metrics.increment_idempotency_replay()
        request.state.idempotency_replay = True
        return JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={IDEMPOTENCY_RESULT_HEADER: IDEMPOTENT_REPLAY},
        )
    request.state.idempotency = idempotency
    response = handler()
    idempotency.record_success(status_code=status_code, response_body=response.model_dump(mode="json"))
    return response


def _visible_task(db, task_id: UUID, context: RequestContext):
    # Drivers only see tasks assigned to them; anything else reads as missing.
    task = TaskRepository(db).get_by_id(task_id)
    if task is None or (not context.is_admin and normalize_uuid(task.assigned_to) != context.user_id):
        raise NotFound("task", str(task_id))
    return task


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


@router.get("/api/tasks", response_model=TaskListResponse)
def list_tasks(
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    assigned_to: UUID | None = Query(default=None),
    status: list[TaskStatus] | None = Query(default=None),
    container_id: UUID | None = Query(default=None),
    scheduled_date: date | None = Query(default=None),
    created_date: date | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    if not context.is_admin:
        assigned_to = UUID(context.user_id)
    scheduled_from, scheduled_to = _day_bounds(scheduled_date) if scheduled_date else (None, None)
    created_from, created_to = _day_bounds(created_date) if created_date else (None, None)
    rows, total = TaskRepository(db).list_tasks(
        assigned_to=assigned_to,
        statuses=status,
        container_id=container_id,
        scheduled_from=scheduled_from,
        scheduled_to=scheduled_to,
        created_from=created_from,
        created_to=created_to,
        limit=limit,
        offset=offset,
    )
    return TaskListResponse(tasks=[task_response(task) for task in rows], total=total)


@router.post("/api/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: Request,
    payload: TaskCreateRequest,
    context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    def handler():
        result = TaskEngine(db).create_task(
            context.user_id,
            container_id=payload.container_id,
            title=payload.title,
            scheduled_time=payload.scheduled_time,
            material_type=payload.material_type,
            planned_quantity=payload.planned_quantity,
            planned_quantity_unit=payload.planned_quantity_unit.value if payload.planned_quantity_unit else None,
            priority=payload.priority,
            description=payload.description,
            notes=payload.notes,
            delivery_container_id=payload.delivery_container_id,
        )
        return task_response(result.task)

    return _with_idempotency(request, db, context, payload.model_dump(mode="json"), handler, status_code=201)


@router.get("/api/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: UUID,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return task_response(_visible_task(db, task_id, context))


@router.get("/api/tasks/{task_id}/transitions", response_model=AllowedTransitionsResponse)
def get_allowed_transitions(
    task_id: UUID,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    task = _visible_task(db, task_id, context)
    return AllowedTransitionsResponse(
        task_id=normalize_uuid(task.id),
        status=task.status,
        allowed_transitions=[status.value for status in allowed_transitions(task.status)],
    )


@router.get("/api/tasks/{task_id}/scan-events", response_model=list[ScanEventResponse])
def list_task_scan_events(
    task_id: UUID,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    task = _visible_task(db, task_id, context)
    return [scan_event_response(event) for event in ScanEventRepository(db).list_events(task_id=task.id)]


@router.post("/api/tasks/{task_id}/assign", response_model=TaskTransitionResponse)
def assign_task(
    request: Request,
    task_id: UUID,
    payload: TaskAssignRequest,
    context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    def handler():
        return transition_response(TaskEngine(db).assign_driver(task_id, payload.driver_id, context.user_id))

    return _with_idempotency(request, db, context, payload.model_dump(mode="json"), handler)


@router.post("/api/tasks/{task_id}/reassign", response_model=TaskTransitionResponse)
def reassign_task(
    request: Request,
    task_id: UUID,
    payload: TaskReassignRequest,
    context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    def handler():
        return transition_response(TaskEngine(db).reassign(task_id, payload.driver_id, context.user_id))

    return _with_idempotency(request, db, context, payload.model_dump(mode="json"), handler)


@router.post("/api/tasks/{task_id}/accept", response_model=TaskTransitionResponse)
def accept_task(
    request: Request,
    task_id: UUID,
    payload: LocationPayload | None = None,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    def handler():
        return transition_response(TaskEngine(db).accept_task(task_id, context.user_id, scan_location(payload)))

    body = payload.model_dump(mode="json") if payload else {}
    return _with_idempotency(request, db, context, body, handler)


@router.post("/api/tasks/{task_id}/pickup", response_model=TaskTransitionResponse)
def confirm_pickup(
    request: Request,
    task_id: UUID,
    payload: LocationPayload | None = None,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    def handler():
        return transition_response(TaskEngine(db).confirm_pickup(task_id, context.user_id, scan_location(payload)))

    body = payload.model_dump(mode="json") if payload else {}
    return _with_idempotency(request, db, context, body, handler)


@router.post("/api/tasks/{task_id}/weight", response_model=TaskTransitionResponse)
def record_weight(
    request: Request,
    task_id: UUID,
    payload: TaskWeightRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    def handler():
        result = TaskEngine(db).record_weight(
            task_id,
            context.user_id,
            payload.amount,
            payload.unit.value if payload.unit else None,
        )
        return transition_response(result)

    return _with_idempotency(request, db, context, payload.model_dump(mode="json"), handler)


@router.post("/api/tasks/{task_id}/delivery", response_model=TaskTransitionResponse)
def confirm_delivery(
    request: Request,
    task_id: UUID,
    payload: TaskDeliveryRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    def handler():
        result = TaskEngine(db).confirm_delivery(
            task_id,
            context.user_id,
            payload.warehouse_container_id,
            amount=payload.amount,
            unit=payload.unit.value if payload.unit else None,
            location=scan_location(payload),
        )
        return transition_response(result)

    return _with_idempotency(request, db, context, payload.model_dump(mode="json"), handler)


@router.post("/api/tasks/{task_id}/cancel", response_model=TaskTransitionResponse)
def cancel_task(
    request: Request,
    task_id: UUID,
    payload: TaskCancelRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    def handler():
        result = TaskEngine(db).cancel(task_id, context.user_id, payload.reason, actor_role=context.role)
        return transition_response(result)

    return _with_idempotency(request, db, context, payload.model_dump(mode="json"), handler)
