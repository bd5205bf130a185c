from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from app.haultrack.db.models import (
    ActivityLog,
    CustomerContainer,
    FillHistory,
    ScanEvent,
    Task,
    User,
    WarehouseContainer,
)
from app.haultrack.schemas.activity import ActivityLogResponse
from app.haultrack.schemas.containers import (
    CustomerContainerResponse,
    FillHistoryResponse,
    WarehouseContainerResponse,
)
from app.haultrack.schemas.scans import ScanEventResponse
from app.haultrack.schemas.tasks import TaskResponse, TaskTransitionResponse
from app.haultrack.schemas.users import UserResponse
from app.haultrack.services.dashboard import fill_percent
from app.haultrack.services.task_engine import ScanLocation, TransitionResult
from app.haultrack.services.task_transitions import allowed_transitions


def normalize_uuid(value: str | UUID | None) -> str | None:
    if value is None:
        return None
    return str(UUID(str(value)))


def _float(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def scan_location(payload) -> ScanLocation | None:
    if payload is None or (payload.location is None and payload.geo_location is None):
        return None
    geo = payload.geo_location.model_dump() if payload.geo_location is not None else None
    return ScanLocation(details=payload.location, geo=geo)


def task_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=normalize_uuid(task.id),
        title=task.title,
        description=task.description,
        notes=task.notes,
        container_id=normalize_uuid(task.container_id),
        delivery_container_id=normalize_uuid(task.delivery_container_id),
        assigned_to=normalize_uuid(task.assigned_to),
        created_by=normalize_uuid(task.created_by),
        material_type=task.material_type,
        priority=task.priority,
        scheduled_time=task.scheduled_time,
        planned_quantity=_float(task.planned_quantity),
        planned_quantity_unit=task.planned_quantity_unit,
        actual_quantity=_float(task.actual_quantity),
        actual_quantity_unit=task.actual_quantity_unit,
        status=task.status,
        cancellation_reason=task.cancellation_reason,
        pickup_location=task.pickup_location,
        assigned_at=task.assigned_at,
        accepted_at=task.accepted_at,
        picked_up_at=task.picked_up_at,
        in_transit_at=task.in_transit_at,
        delivered_at=task.delivered_at,
        completed_at=task.completed_at,
        cancelled_at=task.cancelled_at,
        created_at=task.created_at,
        updated_at=task.updated_at,
        allowed_transitions=[status.value for status in allowed_transitions(task.status)],
    )


def activity_response(entry: ActivityLog) -> ActivityLogResponse:
    return ActivityLogResponse(
        id=normalize_uuid(entry.id),
        type=entry.type,
        message=entry.message,
        user_id=normalize_uuid(entry.user_id),
        task_id=normalize_uuid(entry.task_id),
        container_id=normalize_uuid(entry.container_id),
        scan_event_id=normalize_uuid(entry.scan_event_id),
        location=entry.location,
        metadata=entry.event_metadata,
        timestamp=entry.timestamp,
    )


def transition_response(result: TransitionResult) -> TaskTransitionResponse:
    warehouse = result.container if isinstance(result.container, WarehouseContainer) else None
    return TaskTransitionResponse(
        task=task_response(result.task),
        scan_event_id=normalize_uuid(result.scan_event.id) if result.scan_event is not None else None,
        fill_history_id=normalize_uuid(result.fill_entry.id) if result.fill_entry is not None else None,
        warehouse_container_id=normalize_uuid(warehouse.id) if warehouse is not None else None,
        warehouse_current_amount=_float(warehouse.current_amount) if warehouse is not None else None,
        activity=[activity_response(entry) for entry in result.activity],
    )


def customer_container_response(container: CustomerContainer) -> CustomerContainerResponse:
    return CustomerContainerResponse(
        id=normalize_uuid(container.id),
        customer_name=container.customer_name,
        location=container.location,
        coordinates=container.coordinates,
        material_type=container.material_type,
        content_description=container.content_description,
        qr_code=container.qr_code,
        is_active=container.is_active,
        last_emptied=container.last_emptied,
        created_at=container.created_at,
    )


def warehouse_container_response(container: WarehouseContainer) -> WarehouseContainerResponse:
    return WarehouseContainerResponse(
        id=normalize_uuid(container.id),
        location=container.location,
        warehouse_zone=container.warehouse_zone,
        material_type=container.material_type,
        content_description=container.content_description,
        qr_code=container.qr_code,
        quantity_unit=container.quantity_unit,
        current_amount=float(container.current_amount),
        max_capacity=float(container.max_capacity),
        available_capacity=float(container.max_capacity - container.current_amount),
        fill_percent=round(float(fill_percent(container)), 2),
        is_active=container.is_active,
        created_at=container.created_at,
    )


def fill_history_response(entry: FillHistory) -> FillHistoryResponse:
    return FillHistoryResponse(
        id=normalize_uuid(entry.id),
        warehouse_container_id=normalize_uuid(entry.warehouse_container_id),
        task_id=normalize_uuid(entry.task_id),
        amount_added=float(entry.amount_added),
        quantity_unit=entry.quantity_unit,
        recorded_by_user_id=normalize_uuid(entry.recorded_by_user_id),
        created_at=entry.created_at,
    )


def scan_event_response(event: ScanEvent) -> ScanEventResponse:
    return ScanEventResponse(
        id=normalize_uuid(event.id),
        container_id=normalize_uuid(event.container_id),
        container_type=event.container_type,
        task_id=normalize_uuid(event.task_id),
        scanned_by_user_id=normalize_uuid(event.scanned_by_user_id),
        scanned_at=event.scanned_at,
        scan_context=event.scan_context,
        location_type=event.location_type,
        location_details=event.location_details,
        geo_location=event.geo_location,
        scan_result=event.scan_result,
        result_message=event.result_message,
    )


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=normalize_uuid(user.id),
        email=user.email,
        name=user.name,
        phone=user.phone,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
    )
