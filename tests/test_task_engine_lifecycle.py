from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from app.haultrack.core.enums import ActivityType, ScanContext, TaskStatus, UserRole
from app.haultrack.core.error_catalog import (
    ActiveTaskConflict,
    ConcurrentModification,
    ContainerInactive,
    DriverNotAssigned,
    DriverUnavailable,
    InsufficientCapacity,
    InvalidAmount,
    InvalidTransition,
    MaterialMismatch,
    MissingCancellationReason,
    NotFound,
    TaskNotInProgress,
    UnknownContainer,
    WrongTargetContainer,
)
from app.haultrack.db.models import ActivityLog, FillHistory, ScanEvent
from app.haultrack.services.task_engine import ScanLocation, TaskEngine
from tests.factories import (
    create_customer_container,
    create_task,
    create_user,
    create_warehouse_container,
    task_in_transit,
)


def _activity_types(db_session, task_id):
    rows = db_session.execute(
        select(ActivityLog)
        .where(ActivityLog.task_id == task_id)
        .order_by(ActivityLog.timestamp, ActivityLog.sequence)
    ).scalars()
    return [row.type for row in rows]


def _fill_count(db_session, container_id):
    return db_session.execute(
        select(func.count()).select_from(FillHistory).where(FillHistory.warehouse_container_id == container_id)
    ).scalar_one()


def test_create_task_starts_planned(db_session, engine, admin):
    customer = create_customer_container(db_session)

    task = create_task(engine, admin, customer, planned_quantity=200)

    assert task.status == TaskStatus.PLANNED
    assert task.material_type == "Cardboard"
    assert task.planned_quantity_unit == "kg"
    assert task.created_at == datetime(2024, 5, 6, 8, 0)
    assert _activity_types(db_session, task.id) == [ActivityType.TASK_CREATED.value]


def test_create_task_rejects_inactive_container(db_session, engine, admin):
    customer = create_customer_container(db_session, is_active=False)

    with pytest.raises(ContainerInactive):
        create_task(engine, admin, customer)


def test_create_task_rejects_target_with_other_material(db_session, engine, admin):
    customer = create_customer_container(db_session, material_type="Metal")
    warehouse = create_warehouse_container(db_session, material_type="Plastic")

    with pytest.raises(MaterialMismatch) as exc:
        create_task(engine, admin, customer, target=warehouse)
    assert exc.value.details == {"expected": "Metal", "actual": "Plastic"}


def test_pickup_then_delivery_completes_task(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, max_capacity=1000, current_amount=400)
    task = create_task(engine, admin, customer, target=warehouse, planned_quantity=450)
    engine.assign_driver(task.id, driver.id, admin.id)

    pickup = engine.confirm_pickup(task.id, driver.id, ScanLocation(details="Gate 2"))
    assert pickup.task.status == TaskStatus.IN_TRANSIT
    assert pickup.scan_event.scan_context == ScanContext.TASK_ACCEPT_AT_CUSTOMER.value
    assert pickup.task.pickup_location == {"details": "Gate 2"}

    delivery = engine.confirm_delivery(task.id, driver.id, warehouse.id, amount=Decimal("500"))

    db_session.refresh(warehouse)
    assert delivery.task.status == TaskStatus.COMPLETED
    assert warehouse.current_amount == Decimal("900")
    assert delivery.fill_entry.amount_added == Decimal("500")
    assert _fill_count(db_session, warehouse.id) == 1
    db_session.refresh(customer)
    assert customer.last_emptied == datetime(2024, 5, 6, 8, 3)


def test_status_timestamps_follow_each_hop(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session)
    task = task_in_transit(engine, admin, driver, customer, target=warehouse, planned_quantity=100)

    result = engine.confirm_delivery(task.id, driver.id, warehouse.id)
    task = result.task

    assert task.assigned_at == datetime(2024, 5, 6, 8, 1)
    assert task.accepted_at == task.picked_up_at == task.in_transit_at == datetime(2024, 5, 6, 8, 2)
    assert task.delivered_at == task.completed_at == datetime(2024, 5, 6, 8, 3)
    assert task.cancelled_at is None
    assert task.actual_quantity == Decimal("100")


def test_activity_trail_for_full_lifecycle(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=100)

    engine.confirm_delivery(task.id, driver.id, warehouse.id)

    assert _activity_types(db_session, task.id) == [
        ActivityType.TASK_CREATED.value,
        ActivityType.TASK_ASSIGNED.value,
        ActivityType.CONTAINER_SCANNED_AT_CUSTOMER.value,
        ActivityType.TASK_ACCEPTED.value,
        ActivityType.TASK_PICKED_UP.value,
        ActivityType.TASK_IN_TRANSIT.value,
        ActivityType.CONTAINER_SCANNED_AT_WAREHOUSE.value,
        ActivityType.TASK_DELIVERED.value,
        ActivityType.TASK_COMPLETED.value,
    ]


def test_insufficient_capacity_changes_nothing(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, max_capacity=1000, current_amount=950)
    task = task_in_transit(engine, admin, driver, customer, target=warehouse, planned_quantity=500)

    with pytest.raises(InsufficientCapacity) as exc:
        engine.confirm_delivery(task.id, driver.id, warehouse.id, amount=Decimal("500"))

    assert exc.value.details == {"available": 50.0, "requested": 500.0}
    db_session.refresh(warehouse)
    db_session.refresh(task)
    assert warehouse.current_amount == Decimal("950")
    assert task.status == TaskStatus.IN_TRANSIT
    assert _fill_count(db_session, warehouse.id) == 0
    assert ActivityType.TASK_DELIVERED.value not in _activity_types(db_session, task.id)


def test_amount_below_stored_precision_is_invalid(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, current_amount=0)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=100)

    with pytest.raises(InvalidAmount):
        engine.confirm_delivery(task.id, driver.id, warehouse.id, amount=Decimal("0.0004"))
    with pytest.raises(InvalidAmount):
        engine.record_weight(task.id, driver.id, Decimal("0.0004"))

    db_session.refresh(warehouse)
    db_session.refresh(task)
    assert warehouse.current_amount == Decimal("0")
    assert task.status == TaskStatus.IN_TRANSIT
    assert task.actual_quantity is None
    assert _fill_count(db_session, warehouse.id) == 0


def test_capacity_is_checked_at_stored_precision(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, max_capacity=1000, current_amount=950)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=50)

    result = engine.confirm_delivery(task.id, driver.id, warehouse.id, amount=Decimal("50.0004"))

    assert result.task.status == TaskStatus.COMPLETED
    assert result.fill_entry.amount_added == Decimal("50.000")
    db_session.refresh(warehouse)
    assert warehouse.current_amount == warehouse.max_capacity


def test_material_mismatch_changes_nothing(db_session, engine, admin, driver):
    customer = create_customer_container(db_session, material_type="Metal")
    warehouse = create_warehouse_container(db_session, material_type="Plastic", current_amount=10)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=50)

    with pytest.raises(MaterialMismatch) as exc:
        engine.confirm_delivery(task.id, driver.id, warehouse.id)

    assert exc.value.details == {"expected": "Metal", "actual": "Plastic"}
    db_session.refresh(warehouse)
    db_session.refresh(task)
    assert warehouse.current_amount == Decimal("10")
    assert task.status == TaskStatus.IN_TRANSIT
    scans = db_session.execute(select(ScanEvent).where(ScanEvent.container_id == warehouse.id)).scalars().all()
    assert scans == []


def test_wrong_target_container_is_rejected(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    target = create_warehouse_container(db_session)
    other = create_warehouse_container(db_session)
    task = task_in_transit(engine, admin, driver, customer, target=target, planned_quantity=50)

    with pytest.raises(WrongTargetContainer):
        engine.confirm_delivery(task.id, driver.id, other.id)


def test_delivery_into_inactive_container_is_rejected(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, is_active=False)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=50)

    with pytest.raises(ContainerInactive):
        engine.confirm_delivery(task.id, driver.id, warehouse.id)


def test_cancel_completed_task_is_invalid(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=50)
    engine.confirm_delivery(task.id, driver.id, warehouse.id)

    with pytest.raises(InvalidTransition) as exc:
        engine.cancel(task.id, admin.id, "test")

    assert exc.value.details == {"current": "COMPLETED", "requested": "CANCELLED"}


def test_second_delivery_does_not_credit_twice(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, current_amount=100)
    task = task_in_transit(engine, admin, driver, customer, planned_quantity=50)
    engine.confirm_delivery(task.id, driver.id, warehouse.id)

    with pytest.raises(InvalidTransition):
        engine.confirm_delivery(task.id, driver.id, warehouse.id)

    db_session.refresh(warehouse)
    assert warehouse.current_amount == Decimal("150")
    assert _fill_count(db_session, warehouse.id) == 1


def test_cancel_in_transit_keeps_warehouse_untouched(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session, current_amount=300)
    task = task_in_transit(engine, admin, driver, customer, target=warehouse, planned_quantity=50)

    result = engine.cancel(task.id, admin.id, "  truck broke down ")

    assert result.task.status == TaskStatus.CANCELLED
    assert result.task.cancellation_reason == "truck broke down"
    assert result.task.cancelled_at == datetime(2024, 5, 6, 8, 3)
    db_session.refresh(warehouse)
    assert warehouse.current_amount == Decimal("300")
    assert result.activity[0].event_metadata["reason"] == "truck broke down"


def test_cancel_requires_reason(db_session, engine, admin):
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)

    with pytest.raises(MissingCancellationReason):
        engine.cancel(task.id, admin.id, "   ")

    db_session.refresh(task)
    assert task.status == TaskStatus.PLANNED


def test_driver_cannot_cancel_someone_elses_task(db_session, engine, admin, driver):
    other = create_user(db_session)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    with pytest.raises(DriverNotAssigned):
        engine.cancel(task.id, other.id, "not mine", actor_role=UserRole.DRIVER.value)


def test_reassign_keeps_first_assignment_time(db_session, engine, admin, driver):
    second = create_user(db_session)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    moved = engine.reassign(task.id, second.id, admin.id).task
    assert moved.assigned_to == second.id
    assert moved.status == TaskStatus.ASSIGNED
    assert moved.assigned_at == datetime(2024, 5, 6, 8, 1)

    released = engine.reassign(task.id, None, admin.id).task
    assert released.status == TaskStatus.PLANNED
    assert released.assigned_to is None
    assert released.assigned_at == datetime(2024, 5, 6, 8, 1)


def test_reassign_after_accept_is_invalid(db_session, engine, admin, driver):
    second = create_user(db_session)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)
    engine.accept_task(task.id, driver.id)

    with pytest.raises(InvalidTransition):
        engine.reassign(task.id, second.id, admin.id)


def test_assign_rejects_driver_with_task_in_progress(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    task_in_transit(engine, admin, driver, customer, planned_quantity=50)
    second_task = create_task(engine, admin, create_customer_container(db_session))

    with pytest.raises(ActiveTaskConflict):
        engine.assign_driver(second_task.id, driver.id, admin.id)


def test_assign_rejects_inactive_or_non_driver_users(db_session, engine, admin):
    inactive = create_user(db_session, is_active=False)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)

    with pytest.raises(DriverUnavailable) as exc:
        engine.assign_driver(task.id, inactive.id, admin.id)
    assert exc.value.details["reason"] == "inactive"

    with pytest.raises(DriverUnavailable) as exc:
        engine.assign_driver(task.id, admin.id, admin.id)
    assert exc.value.details["reason"] == "not_a_driver"


def test_accept_then_pickup(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    accepted = engine.accept_task(task.id, driver.id)
    assert accepted.task.status == TaskStatus.ACCEPTED
    assert accepted.scan_event.scan_context == ScanContext.TASK_ACCEPT_AT_CUSTOMER.value

    picked = engine.confirm_pickup(task.id, driver.id)
    assert picked.task.status == TaskStatus.IN_TRANSIT
    assert picked.scan_event.scan_context == ScanContext.TASK_PICKUP.value
    assert [entry.type for entry in picked.activity] == [
        ActivityType.CONTAINER_SCANNED_AT_CUSTOMER.value,
        ActivityType.TASK_PICKED_UP.value,
        ActivityType.TASK_IN_TRANSIT.value,
    ]
    assert picked.task.accepted_at == datetime(2024, 5, 6, 8, 2)
    assert picked.task.picked_up_at == datetime(2024, 5, 6, 8, 3)


def test_pickup_of_planned_task_reports_first_hop(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)

    with pytest.raises(InvalidTransition) as exc:
        engine.confirm_pickup(task.id, driver.id)

    assert exc.value.details == {"current": "PLANNED", "requested": "ACCEPTED"}


def test_pickup_by_other_driver_is_rejected(db_session, engine, admin, driver):
    other = create_user(db_session)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    with pytest.raises(DriverNotAssigned):
        engine.confirm_pickup(task.id, other.id)


def test_record_weight_is_used_for_delivery(db_session, engine, admin, driver):
    customer = create_customer_container(db_session)
    warehouse = create_warehouse_container(db_session)
    task = create_task(engine, admin, customer, planned_quantity=300)
    engine.assign_driver(task.id, driver.id, admin.id)

    with pytest.raises(TaskNotInProgress):
        engine.record_weight(task.id, driver.id, Decimal("120"))

    engine.confirm_pickup(task.id, driver.id)
    with pytest.raises(InvalidAmount):
        engine.record_weight(task.id, driver.id, Decimal("0"))

    weighed = engine.record_weight(task.id, driver.id, Decimal("120"))
    assert weighed.task.actual_quantity == Decimal("120")
    assert weighed.activity[0].type == ActivityType.WEIGHT_RECORDED.value

    delivered = engine.confirm_delivery(task.id, driver.id, warehouse.id)
    assert delivered.fill_entry.amount_added == Decimal("120")


def test_unknown_task_is_not_found(engine, driver):
    with pytest.raises(NotFound):
        engine.accept_task("00000000-0000-0000-0000-000000000000", driver.id)


def test_info_scan_records_event_without_task(db_session, engine, driver):
    warehouse = create_warehouse_container(db_session, qr_code="WH-INFO-1")

    result = engine.record_info_scan('{"qrCode": "WH-INFO-1"}', driver.id, ScanLocation(details="Dock"))

    assert result.scan_event.task_id is None
    assert result.scan_event.scan_context == ScanContext.WAREHOUSE_INFO.value
    assert result.scan_event.location_details == "Dock"
    assert result.container.id == warehouse.id
    assert result.activity[0].type == ActivityType.CONTAINER_SCANNED_AT_WAREHOUSE.value

    with pytest.raises(UnknownContainer):
        engine.record_info_scan("NOPE", driver.id)


def test_allowed_transitions_for_task(db_session, engine, admin):
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)

    assert engine.allowed_transitions(task.id) == [TaskStatus.ASSIGNED, TaskStatus.CANCELLED]


def test_stale_commit_is_retried_once(db_session, clock, admin, monkeypatch):
    engine = TaskEngine(db_session, clock=clock, max_retries=1)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)

    real_commit = db_session.commit
    calls = {"count": 0}

    def flaky_commit():
        calls["count"] += 1
        if calls["count"] == 1:
            raise StaleDataError("simulated conflict")
        real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)
    result = engine.cancel(task.id, admin.id, "duplicate order")

    assert calls["count"] == 2
    assert result.task.status == TaskStatus.CANCELLED
    assert _activity_types(db_session, task.id).count(ActivityType.TASK_CANCELLED.value) == 1


def test_persistent_conflict_raises_concurrent_modification(db_session, clock, admin, monkeypatch):
    engine = TaskEngine(db_session, clock=clock, max_retries=1)
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)

    def always_stale():
        raise StaleDataError("simulated conflict")

    monkeypatch.setattr(db_session, "commit", always_stale)
    with pytest.raises(ConcurrentModification):
        engine.cancel(task.id, admin.id, "duplicate order")

    monkeypatch.undo()
    db_session.refresh(task)
    assert task.status == TaskStatus.PLANNED
