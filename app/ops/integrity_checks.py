from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select

from app.haultrack.core.enums import TaskStatus
from app.haultrack.core.metrics import metrics
from app.haultrack.db.models import FillHistory, Task, WarehouseContainer
from app.haultrack.services.task_transitions import (
    IN_PROGRESS_STATUSES,
    STATUS_TIMESTAMP_FIELDS,
    is_reachable,
)


SEVERITY_CRITICAL = "CRITICAL"

# Statuses of the delivery path in the only order a task can enter them.
DELIVERY_PATH = (
    TaskStatus.ASSIGNED,
    TaskStatus.ACCEPTED,
    TaskStatus.PICKED_UP,
    TaskStatus.IN_TRANSIT,
    TaskStatus.DELIVERED,
    TaskStatus.COMPLETED,
)


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _format_quantity(value) -> str:
    return format(Decimal(value), "f")


def check_warehouse_capacity_bounds(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(WarehouseContainer.id, WarehouseContainer.current_amount, WarehouseContainer.max_capacity).where(
            (WarehouseContainer.current_amount < 0)
            | (WarehouseContainer.current_amount > WarehouseContainer.max_capacity)
        )
    ).all()
    findings = [
        IntegrityFinding(
            check_id="warehouse_capacity_bounds",
            severity=SEVERITY_CRITICAL,
            message="Warehouse container amount outside [0, max_capacity].",
            entity="warehouse_containers",
            entity_id=str(row.id),
            details={
                "current_amount": _format_quantity(row.current_amount),
                "max_capacity": _format_quantity(row.max_capacity),
            },
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("warehouse_capacity_bounds", len(findings))
    return findings


def check_fill_history_reconciliation(db) -> list[IntegrityFinding]:
    totals = dict(
        db.execute(
            select(FillHistory.warehouse_container_id, func.sum(FillHistory.amount_added)).group_by(
                FillHistory.warehouse_container_id
            )
        ).all()
    )
    rows = db.execute(
        select(WarehouseContainer.id, WarehouseContainer.current_amount, WarehouseContainer.initial_amount)
    ).all()
    findings = []
    for row in rows:
        added = Decimal(totals.get(row.id) or 0)
        net_increase = Decimal(row.current_amount) - Decimal(row.initial_amount)
        if added != net_increase:
            findings.append(
                IntegrityFinding(
                    check_id="fill_history_reconciliation",
                    severity=SEVERITY_CRITICAL,
                    message="Fill history does not add up to the container's net increase.",
                    entity="warehouse_containers",
                    entity_id=str(row.id),
                    details={
                        "fill_history_total": _format_quantity(added),
                        "net_increase": _format_quantity(net_increase),
                    },
                )
            )
    if findings:
        metrics.increment_invariant_violation("fill_history_reconciliation", len(findings))
    return findings


def task_fsm_violations(task) -> list[str]:
    """Reasons a task row's status and timestamps disagree; empty when consistent."""
    try:
        status = TaskStatus(task.status)
    except ValueError:
        return ["unknown_status"]
    problems = []
    if not is_reachable(status):
        problems.append("unreachable_status")
    if task.completed_at is not None and task.cancelled_at is not None:
        problems.append("completed_and_cancelled")
    if status == TaskStatus.CANCELLED:
        if task.cancelled_at is None:
            problems.append("missing_cancelled_at")
        if not (task.cancellation_reason or "").strip():
            problems.append("missing_cancellation_reason")
    elif task.cancelled_at is not None:
        problems.append("unexpected_cancelled_at")
    if status != TaskStatus.COMPLETED and task.completed_at is not None:
        problems.append("unexpected_completed_at")
    if status in DELIVERY_PATH:
        for entered in DELIVERY_PATH[: DELIVERY_PATH.index(status) + 1]:
            if getattr(task, STATUS_TIMESTAMP_FIELDS[entered]) is None:
                problems.append(f"missing_{STATUS_TIMESTAMP_FIELDS[entered]}")
    stamps = [getattr(task, STATUS_TIMESTAMP_FIELDS[entered]) for entered in DELIVERY_PATH]
    stamps = [value for value in stamps if value is not None]
    if any(later < earlier for earlier, later in zip(stamps, stamps[1:])):
        problems.append("timestamps_out_of_order")
    return problems


def check_task_fsm(db) -> list[IntegrityFinding]:
    findings = []
    for task in db.execute(select(Task)).scalars():
        problems = task_fsm_violations(task)
        if not problems:
            continue
        findings.append(
            IntegrityFinding(
                check_id="task_fsm",
                severity=SEVERITY_CRITICAL,
                message="Task status/timestamps inconsistent.",
                entity="tasks",
                entity_id=str(task.id),
                details={
                    "status": task.status,
                    "problems": problems,
                    "completed_at": _format_datetime(task.completed_at),
                    "cancelled_at": _format_datetime(task.cancelled_at),
                },
            )
        )
    if findings:
        metrics.increment_invariant_violation("task_fsm", len(findings))
    return findings


def check_single_active_task(db) -> list[IntegrityFinding]:
    rows = db.execute(
        select(Task.assigned_to, func.count(Task.id))
        .where(Task.assigned_to.is_not(None))
        .where(Task.status.in_([status.value for status in IN_PROGRESS_STATUSES]))
        .group_by(Task.assigned_to)
        .having(func.count(Task.id) > 1)
    ).all()
    findings = [
        IntegrityFinding(
            check_id="single_active_task",
            severity=SEVERITY_CRITICAL,
            message="Driver holds more than one in-progress task.",
            entity="users",
            entity_id=str(driver_id),
            details={"in_progress_tasks": count},
        )
        for driver_id, count in rows
    ]
    if findings:
        metrics.increment_invariant_violation("single_active_task", len(findings))
    return findings


def run_integrity_checks(db) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_warehouse_capacity_bounds(db))
    findings.extend(check_fill_history_reconciliation(db))
    findings.extend(check_task_fsm(db))
    findings.extend(check_single_active_task(db))
    return findings
