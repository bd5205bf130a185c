from datetime import datetime
from types import SimpleNamespace

import pytest

from app.haultrack.core.enums import TaskStatus
from app.haultrack.core.error_catalog import InvalidTransition, MissingCancellationReason
from app.haultrack.services.task_transitions import (
    VALID_TASK_TRANSITIONS,
    allowed_transitions,
    ensure_cancellation_reason,
    ensure_transition,
    is_reachable,
    is_valid_transition,
    pickup_hops,
    stamp,
)


@pytest.mark.parametrize(
    ("current", "requested"),
    [
        (TaskStatus.PLANNED, TaskStatus.ASSIGNED),
        (TaskStatus.ASSIGNED, TaskStatus.ACCEPTED),
        (TaskStatus.ASSIGNED, TaskStatus.PLANNED),
        (TaskStatus.ACCEPTED, TaskStatus.PICKED_UP),
        (TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT),
        (TaskStatus.IN_TRANSIT, TaskStatus.DELIVERED),
        (TaskStatus.DELIVERED, TaskStatus.COMPLETED),
        (TaskStatus.IN_TRANSIT, TaskStatus.CANCELLED),
    ],
)
def test_graph_edges_are_valid(current, requested):
    assert is_valid_transition(current, requested)
    assert ensure_transition(current, requested) == requested


@pytest.mark.parametrize(
    ("current", "requested"),
    [
        (TaskStatus.PLANNED, TaskStatus.ACCEPTED),
        (TaskStatus.ASSIGNED, TaskStatus.IN_TRANSIT),
        (TaskStatus.IN_TRANSIT, TaskStatus.PICKED_UP),
        (TaskStatus.COMPLETED, TaskStatus.CANCELLED),
        (TaskStatus.CANCELLED, TaskStatus.PLANNED),
    ],
)
def test_non_edges_raise_invalid_transition(current, requested):
    assert not is_valid_transition(current, requested)
    with pytest.raises(InvalidTransition) as exc:
        ensure_transition(current, requested)
    assert exc.value.details == {"current": current.value, "requested": requested.value}


def test_terminal_statuses_have_no_outgoing_edges():
    assert allowed_transitions(TaskStatus.COMPLETED) == []
    assert allowed_transitions(TaskStatus.CANCELLED) == []


def test_cancel_allowed_from_every_non_terminal_status():
    for status, targets in VALID_TASK_TRANSITIONS.items():
        if status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED):
            continue
        assert TaskStatus.CANCELLED in targets


def test_status_strings_are_accepted():
    assert is_valid_transition("planned", "ASSIGNED")
    assert not is_valid_transition("PLANNED", "BOGUS")


def test_every_status_is_reachable_from_planned():
    assert all(is_reachable(status) for status in TaskStatus)


def test_cancellation_reason_is_required_and_trimmed():
    assert ensure_cancellation_reason("  customer absent ") == "customer absent"
    for reason in (None, "", "   "):
        with pytest.raises(MissingCancellationReason):
            ensure_cancellation_reason(reason)


def test_pickup_hops_skip_accept_when_already_accepted():
    assert pickup_hops(TaskStatus.ASSIGNED) == (TaskStatus.ACCEPTED, TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT)
    assert pickup_hops(TaskStatus.ACCEPTED) == (TaskStatus.PICKED_UP, TaskStatus.IN_TRANSIT)


def test_stamp_keeps_first_value():
    first = datetime(2024, 1, 1, 8, 0)
    later = datetime(2024, 1, 1, 9, 0)
    task = SimpleNamespace(assigned_at=None)

    stamp(task, TaskStatus.ASSIGNED, first)
    stamp(task, TaskStatus.ASSIGNED, later)
    assert task.assigned_at == first

    stamp(task, TaskStatus.ASSIGNED, later, overwrite=True)
    assert task.assigned_at == later


def test_stamp_ignores_planned():
    task = SimpleNamespace()
    stamp(task, TaskStatus.PLANNED, datetime(2024, 1, 1))
    assert vars(task) == {}
