from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from app.haultrack.core.enums import Priority, QuantityUnit
from app.haultrack.schemas.activity import ActivityLogResponse
from app.haultrack.schemas.common import LocationPayload


class TaskCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    notes: str | None = None
    container_id: UUID
    delivery_container_id: UUID | None = None
    material_type: str | None = None
    scheduled_time: datetime
    planned_quantity: Decimal | None = None
    planned_quantity_unit: QuantityUnit | None = None
    priority: Priority = Priority.NORMAL


class TaskAssignRequest(BaseModel):
    driver_id: UUID


class TaskReassignRequest(BaseModel):
    driver_id: UUID | None = None


class TaskCancelRequest(BaseModel):
    reason: str | None = None


class TaskWeightRequest(BaseModel):
    amount: Decimal
    unit: QuantityUnit | None = None


class TaskDeliveryRequest(LocationPayload):
    warehouse_container_id: UUID
    amount: Decimal | None = None
    unit: QuantityUnit | None = None


class TaskResponse(BaseModel):
    id: str
    title: str
    description: str | None
    notes: str | None
    container_id: str
    delivery_container_id: str | None
    assigned_to: str | None
    created_by: str
    material_type: str
    priority: str
    scheduled_time: datetime
    planned_quantity: float | None
    planned_quantity_unit: str
    actual_quantity: float | None
    actual_quantity_unit: str | None
    status: str
    cancellation_reason: str | None
    pickup_location: dict | None
    assigned_at: datetime | None
    accepted_at: datetime | None
    picked_up_at: datetime | None
    in_transit_at: datetime | None
    delivered_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime
    allowed_transitions: list[str]


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    total: int


class AllowedTransitionsResponse(BaseModel):
    task_id: str
    status: str
    allowed_transitions: list[str]


class TaskTransitionResponse(BaseModel):
    task: TaskResponse
    scan_event_id: str | None = None
    fill_history_id: str | None = None
    warehouse_container_id: str | None = None
    warehouse_current_amount: float | None = None
    activity: list[ActivityLogResponse] = []
