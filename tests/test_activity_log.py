from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.haultrack.core.enums import ActivityType, TaskOperation, TaskStatus
from app.haultrack.repos.ledger import ActivityLogRepository
from app.haultrack.services.activity import ActivityLogEmitter, activity_type_for, render_message
from tests.factories import create_customer_container, create_task, create_warehouse_container, task_in_transit


@pytest.mark.parametrize(
    ("operation", "status", "expected"),
    [
        (TaskOperation.CREATE, None, ActivityType.TASK_CREATED),
        (TaskOperation.ASSIGN, TaskStatus.ASSIGNED, ActivityType.TASK_ASSIGNED),
        (TaskOperation.REASSIGN, TaskStatus.PLANNED, ActivityType.TASK_ASSIGNED),
        (TaskOperation.PICKUP, TaskStatus.IN_TRANSIT, ActivityType.TASK_IN_TRANSIT),
        (TaskOperation.DELIVER, TaskStatus.COMPLETED, ActivityType.TASK_COMPLETED),
        (TaskOperation.CANCEL, TaskStatus.CANCELLED, ActivityType.TASK_CANCELLED),
        (TaskOperation.RECORD_WEIGHT, None, ActivityType.WEIGHT_RECORDED),
    ],
)
def test_activity_type_for_operation(operation, status, expected):
    assert activity_type_for(operation, status) == expected


def test_transition_without_status_is_a_programming_error():
    with pytest.raises(ValueError):
        activity_type_for(TaskOperation.PICKUP)


def test_delivered_message_uses_normalized_amount():
    task = SimpleNamespace(id="t-1", title="Morning run", status="DELIVERED")
    container = SimpleNamespace(id="abcdef12-0000")

    message = render_message(
        ActivityType.TASK_DELIVERED,
        task,
        container,
        {"amount": 500.0, "amount_label": "500", "unit": "kg"},
    )

    assert message == "Delivered 500kg to container abcdef12"


def test_unassign_message():
    task = SimpleNamespace(id="t-1", title="Morning run")
    assert render_message(ActivityType.TASK_ASSIGNED, task, None, {"new_driver_id": None}) == "Task 'Morning run' unassigned"


def test_emitter_numbers_entries_within_a_unit(db_session, engine, admin):
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    now = datetime(2024, 5, 6, 12, 0)

    emitter = ActivityLogEmitter(db_session, now)
    first = emitter.emit(ActivityType.CONTAINER_SCANNED_AT_CUSTOMER, task, admin.id, customer)
    second = emitter.emit(ActivityType.TASK_ACCEPTED, task, admin.id, customer)
    db_session.commit()

    assert (first.sequence, second.sequence) == (1, 2)
    assert first.timestamp == second.timestamp == now
    assert first.event_metadata["status"] == TaskStatus.PLANNED.value
    assert emitter.emitted == [first, second]


def test_delivery_entries_share_timestamp_and_carry_amount(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=120)

    result = engine.confirm_delivery(task.id, driver.id, warehouse.id, amount=Decimal("75.5"))

    scanned, delivered, completed = result.activity
    assert scanned.type == ActivityType.CONTAINER_SCANNED_AT_WAREHOUSE.value
    assert scanned.scan_event_id == result.scan_event.id
    assert delivered.timestamp == completed.timestamp == scanned.timestamp
    assert delivered.event_metadata["amount"] == 75.5
    assert delivered.event_metadata["amount_label"] == "75.5"
    assert delivered.message == f"Delivered 75.5kg to container {str(warehouse.id)[:8]}"
    assert completed.event_metadata["status"] == TaskStatus.COMPLETED.value


def test_entries_are_listed_newest_first(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)
    engine.confirm_pickup(task.id, driver.id)

    rows, total = ActivityLogRepository(db_session).list_entries(task_id=task.id)

    assert total == 6
    assert [row.type for row in rows[:3]] == [
        ActivityType.TASK_IN_TRANSIT.value,
        ActivityType.TASK_PICKED_UP.value,
        ActivityType.TASK_ACCEPTED.value,
    ]
    assert rows[-1].type == ActivityType.TASK_CREATED.value
