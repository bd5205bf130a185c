"""Canonical task status graph.

Every caller that needs to know whether a status change is legal (the engine,
the routers that expose ``allowed_transitions`` and the integrity scan)
consults this module instead of re-deriving the rules.
"""

from __future__ import annotations

from datetime import datetime

from app.haultrack.core.enums import TaskStatus
from app.haultrack.core.error_catalog import InvalidTransition, MissingCancellationReason


VALID_TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PLANNED: frozenset({TaskStatus.ASSIGNED, TaskStatus.CANCELLED}),
    TaskStatus.ASSIGNED: frozenset({TaskStatus.ACCEPTED, TaskStatus.PLANNED, TaskStatus.CANCELLED}),
    TaskStatus.ACCEPTED: frozenset({TaskStatus.PICKED_UP, TaskStatus.CANCELLED}),
    TaskStatus.PICKED_UP: frozenset({TaskStatus.IN_TRANSIT, TaskStatus.CANCELLED}),
    TaskStatus.IN_TRANSIT: frozenset({TaskStatus.DELIVERED, TaskStatus.CANCELLED}),
    TaskStatus.DELIVERED: frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

INITIAL_STATUS = TaskStatus.PLANNED
OPEN_STATUSES = frozenset({TaskStatus.PLANNED, TaskStatus.ASSIGNED})
IN_PROGRESS_STATUSES = frozenset(
    {TaskStatus.ACCEPTED, TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT, TaskStatus.DELIVERED}
)
# Statuses in which the driver is physically carrying material to the warehouse.
CARRYING_STATUSES = frozenset({TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT, TaskStatus.DELIVERED})
WEIGHABLE_STATUSES = frozenset({TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT})

STATUS_TIMESTAMP_FIELDS: dict[TaskStatus, str] = {
    TaskStatus.ASSIGNED: "assigned_at",
    TaskStatus.ACCEPTED: "accepted_at",
    TaskStatus.PICKED_UP: "picked_up_at",
    TaskStatus.IN_TRANSIT: "in_transit_at",
    TaskStatus.DELIVERED: "delivered_at",
    TaskStatus.COMPLETED: "completed_at",
    TaskStatus.CANCELLED: "cancelled_at",
}

PICKUP_CHAIN = (TaskStatus.ACCEPTED, TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT)


def coerce_status(value) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    return TaskStatus(str(value).strip().upper())


def is_valid_transition(current, requested) -> bool:
    try:
        current_status = coerce_status(current)
        requested_status = coerce_status(requested)
    except ValueError:
        return False
    return requested_status in VALID_TASK_TRANSITIONS[current_status]


def ensure_transition(current, requested) -> TaskStatus:
    if not is_valid_transition(current, requested):
        raise InvalidTransition(current, requested)
    return coerce_status(requested)


def ensure_cancellation_reason(reason: str | None) -> str:
    if reason is None or not reason.strip():
        raise MissingCancellationReason()
    return reason.strip()


def allowed_transitions(current) -> list[TaskStatus]:
    allowed = VALID_TASK_TRANSITIONS[coerce_status(current)]
    return [status for status in TaskStatus if status in allowed]


def pickup_hops(current) -> tuple[TaskStatus, ...]:
    """Remaining hops of the pickup chain starting from ``current``.

    ``ConfirmPickup`` always ends in IN_TRANSIT; from ASSIGNED it walks the
    whole chain, from ACCEPTED it skips the acceptance hop.  Any other status
    is rejected against the first hop the engine would have to take.
    """
    status = coerce_status(current)
    if status == TaskStatus.ACCEPTED:
        return PICKUP_CHAIN[1:]
    return PICKUP_CHAIN


def is_reachable(status) -> bool:
    target = coerce_status(status)
    seen = {INITIAL_STATUS}
    frontier = [INITIAL_STATUS]
    while frontier:
        node = frontier.pop()
        if node == target:
            return True
        for nxt in VALID_TASK_TRANSITIONS[node]:
            if nxt not in seen:
                seen.add(nxt)
                frontier.append(nxt)
    return False


def stamp(task, status: TaskStatus, now: datetime, *, overwrite: bool = False) -> None:
    field = STATUS_TIMESTAMP_FIELDS.get(status)
    if field is None:
        return
    if overwrite or getattr(task, field) is None:
        setattr(task, field, now)
