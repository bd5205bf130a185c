from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Sequence

from app.haultrack.core.enums import ContainerType, Priority, TaskStatus
from app.haultrack.core.error_catalog import NoActiveTask, NoTaskForContainer, UnknownContainer
from app.haultrack.db.models import Task
from app.haultrack.repos.containers import CustomerContainerRepository, WarehouseContainerRepository
from app.haultrack.repos.tasks import TaskRepository
from app.haultrack.services.task_transitions import (
    CARRYING_STATUSES,
    IN_PROGRESS_STATUSES,
    OPEN_STATUSES,
    coerce_status,
)


NEXT_ACTION_ACCEPT = "accept"
NEXT_ACTION_PICKUP = "pickup"
NEXT_ACTION_DELIVER = "deliver"
NEXT_ACTION_NONE = "none"


@dataclass(frozen=True)
class ScanResolution:
    qr_code: str
    container_type: ContainerType
    container: object
    task: Task
    next_action: str


def parse_qr_payload(raw: str) -> str:
    text = (raw or "").strip()
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    if isinstance(parsed, dict):
        for field in ("qrCode", "id", "code"):
            value = parsed.get(field)
            if value:
                return str(value).strip()
    return text


def _next_action(status: TaskStatus, container_type: ContainerType) -> str:
    if container_type == ContainerType.CUSTOMER:
        if status in OPEN_STATUSES:
            return NEXT_ACTION_ACCEPT
        if status == TaskStatus.ACCEPTED:
            return NEXT_ACTION_PICKUP
        return NEXT_ACTION_NONE
    if status == TaskStatus.IN_TRANSIT:
        return NEXT_ACTION_DELIVER
    return NEXT_ACTION_NONE


_PRIORITY_RANK = {Priority.URGENT.value: 0, Priority.HIGH.value: 1, Priority.NORMAL.value: 2}


def _priority_rank(task) -> int:
    return _PRIORITY_RANK.get(getattr(task, "priority", None), len(_PRIORITY_RANK))


def match_customer_task(container_id, tasks: Sequence[Task]) -> Task | None:
    """Open tasks before in-progress ones, then by priority; ties keep the schedule order of ``tasks``."""
    candidates = sorted(
        (task for task in tasks if str(task.container_id) == str(container_id)),
        key=_priority_rank,
    )
    for wanted in (OPEN_STATUSES, IN_PROGRESS_STATUSES):
        for task in candidates:
            if coerce_status(task.status) in wanted:
                return task
    return None


def match_carrying_task(tasks: Sequence[Task]) -> Task | None:
    carrying = [task for task in tasks if coerce_status(task.status) in CARRYING_STATUSES]
    if not carrying:
        return None
    return carrying[0]


class ScanResolver:
    """Classifies a scanned QR code and finds the task it advances for a driver."""

    def __init__(self, db):
        self.customer_containers = CustomerContainerRepository(db)
        self.warehouse_containers = WarehouseContainerRepository(db)
        self.tasks = TaskRepository(db)

    def lookup_container(self, qr_code: str) -> tuple[ContainerType, object]:
        container = self.customer_containers.get_by_qr_code(qr_code)
        if container is not None:
            return ContainerType.CUSTOMER, container
        container = self.warehouse_containers.get_by_qr_code(qr_code)
        if container is not None:
            return ContainerType.WAREHOUSE, container
        raise UnknownContainer(qr_code)

    def driver_tasks(self, driver_id) -> list[Task]:
        return self.tasks.list_for_driver(driver_id, OPEN_STATUSES | IN_PROGRESS_STATUSES)

    def resolve(self, qr_payload: str, driver_id, open_tasks: Sequence[Task] | None = None) -> ScanResolution:
        qr_code = parse_qr_payload(qr_payload)
        container_type, container = self.lookup_container(qr_code)
        tasks = list(open_tasks) if open_tasks is not None else self.driver_tasks(driver_id)
        tasks = [task for task in tasks if str(task.assigned_to) == str(driver_id)]

        if container_type == ContainerType.CUSTOMER:
            task = match_customer_task(container.id, tasks)
            if task is None:
                raise NoTaskForContainer(str(container.id))
        else:
            task = match_carrying_task(tasks)
            if task is None:
                raise NoActiveTask(str(driver_id))

        return ScanResolution(
            qr_code=qr_code,
            container_type=container_type,
            container=container,
            task=task,
            next_action=_next_action(coerce_status(task.status), container_type),
        )
