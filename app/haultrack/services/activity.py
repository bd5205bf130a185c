from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from app.haultrack.core.enums import ActivityType, ContainerType, TaskOperation, TaskStatus
from app.haultrack.db.models import ActivityLog, ScanEvent
from app.haultrack.repos.ledger import ActivityLogRepository


STATUS_ACTIVITY_TYPES: dict[TaskStatus, ActivityType] = {
    TaskStatus.PLANNED: ActivityType.TASK_ASSIGNED,
    TaskStatus.ASSIGNED: ActivityType.TASK_ASSIGNED,
    TaskStatus.ACCEPTED: ActivityType.TASK_ACCEPTED,
    TaskStatus.PICKED_UP: ActivityType.TASK_PICKED_UP,
    TaskStatus.IN_TRANSIT: ActivityType.TASK_IN_TRANSIT,
    TaskStatus.DELIVERED: ActivityType.TASK_DELIVERED,
    TaskStatus.COMPLETED: ActivityType.TASK_COMPLETED,
    TaskStatus.CANCELLED: ActivityType.TASK_CANCELLED,
}

SCAN_ACTIVITY_TYPES: dict[ContainerType, ActivityType] = {
    ContainerType.CUSTOMER: ActivityType.CONTAINER_SCANNED_AT_CUSTOMER,
    ContainerType.WAREHOUSE: ActivityType.CONTAINER_SCANNED_AT_WAREHOUSE,
}


def activity_type_for(operation: TaskOperation, status: TaskStatus | None = None) -> ActivityType:
    if operation == TaskOperation.CREATE:
        return ActivityType.TASK_CREATED
    if operation == TaskOperation.RECORD_WEIGHT:
        return ActivityType.WEIGHT_RECORDED
    if operation in (TaskOperation.ASSIGN, TaskOperation.REASSIGN):
        return ActivityType.TASK_ASSIGNED
    if status is None:
        raise ValueError(f"operation {operation.value} needs a resulting status")
    return STATUS_ACTIVITY_TYPES[status]


def _short(value) -> str:
    return str(value)[:8] if value is not None else "-"


def _amount(metadata: dict) -> str:
    amount = metadata.get("amount_label", metadata.get("amount"))
    unit = metadata.get("unit") or ""
    return f"{amount}{unit}" if amount is not None else "unknown amount"


def render_message(event_type: ActivityType, task, container, metadata: dict) -> str:
    title = getattr(task, "title", None) or _short(getattr(task, "id", None))
    container_ref = _short(getattr(container, "id", None))
    if event_type == ActivityType.TASK_CREATED:
        return f"Task '{title}' created for container {container_ref}"
    if event_type == ActivityType.TASK_ASSIGNED:
        driver = metadata.get("new_driver_id")
        if driver is None:
            return f"Task '{title}' unassigned"
        return f"Task '{title}' assigned to driver {_short(driver)}"
    if event_type == ActivityType.TASK_ACCEPTED:
        return f"Task '{title}' accepted"
    if event_type == ActivityType.TASK_PICKED_UP:
        return f"Picked up container {container_ref} for task '{title}'"
    if event_type == ActivityType.TASK_IN_TRANSIT:
        return f"Task '{title}' in transit"
    if event_type == ActivityType.TASK_DELIVERED:
        return f"Delivered {_amount(metadata)} to container {container_ref}"
    if event_type == ActivityType.TASK_COMPLETED:
        return f"Task '{title}' completed"
    if event_type == ActivityType.TASK_CANCELLED:
        return f"Task '{title}' cancelled: {metadata.get('reason', '')}"
    if event_type == ActivityType.WEIGHT_RECORDED:
        return f"Recorded weight {_amount(metadata)} for task '{title}'"
    if event_type == ActivityType.CONTAINER_SCANNED_AT_CUSTOMER:
        return f"Scanned customer container {container_ref}"
    return f"Scanned warehouse container {container_ref}"


@dataclass
class ActivityLogEmitter:
    """Builds activity entries inside the caller's unit of work.

    Entries are only added to the session; the engine commits them together
    with the state change that produced them.
    """

    db: object
    timestamp: datetime
    _sequence: int = field(default=0, init=False)
    emitted: list[ActivityLog] = field(default_factory=list, init=False)

    def emit(
        self,
        event_type: ActivityType,
        task,
        actor_id,
        container=None,
        scan_event: ScanEvent | None = None,
        *,
        location: dict | None = None,
        metadata: dict | None = None,
    ) -> ActivityLog:
        metadata = dict(metadata or {})
        if task is not None:
            metadata.setdefault("status", getattr(task.status, "value", task.status))
        self._sequence += 1
        entry = ActivityLog(
            id=uuid.uuid4(),
            type=event_type.value,
            message=render_message(event_type, task, container, metadata),
            user_id=actor_id,
            task_id=getattr(task, "id", None),
            container_id=getattr(container, "id", None),
            scan_event_id=getattr(scan_event, "id", None),
            location=location,
            event_metadata=metadata,
            timestamp=self.timestamp,
            sequence=self._sequence,
        )
        ActivityLogRepository(self.db).add(entry)
        self.emitted.append(entry)
        return entry

    def emit_transition(self, operation: TaskOperation, status: TaskStatus, task, actor_id, container=None, **kwargs):
        return self.emit(activity_type_for(operation, status), task, actor_id, container, **kwargs)
