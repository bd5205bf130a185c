from types import SimpleNamespace

import pytest

from app.haultrack.core.enums import ContainerType, TaskStatus
from app.haultrack.core.error_catalog import NoActiveTask, NoTaskForContainer, UnknownContainer
from app.haultrack.services.scan_resolver import (
    NEXT_ACTION_ACCEPT,
    NEXT_ACTION_DELIVER,
    NEXT_ACTION_PICKUP,
    ScanResolver,
    match_carrying_task,
    match_customer_task,
    parse_qr_payload,
)
from tests.factories import create_customer_container, create_task, create_user, create_warehouse_container


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("CC-001", "CC-001"),
        ("  CC-001\n", "CC-001"),
        ('{"qrCode": "CC-002", "type": "customer"}', "CC-002"),
        ('{"id": "WC-9"}', "WC-9"),
        ('["not", "an", "object"]', '["not", "an", "object"]'),
        ("{broken", "{broken"),
    ],
)
def test_parse_qr_payload(raw, expected):
    assert parse_qr_payload(raw) == expected


def test_customer_match_prefers_open_task():
    in_progress = SimpleNamespace(container_id="c1", status=TaskStatus.ACCEPTED.value)
    open_task = SimpleNamespace(container_id="c1", status=TaskStatus.ASSIGNED.value)
    other = SimpleNamespace(container_id="c2", status=TaskStatus.ASSIGNED.value)

    assert match_customer_task("c1", [in_progress, open_task, other]) is open_task
    assert match_customer_task("c3", [in_progress, open_task, other]) is None


def test_customer_match_prefers_higher_priority():
    early_normal = SimpleNamespace(container_id="c1", status=TaskStatus.ASSIGNED.value, priority="normal")
    late_urgent = SimpleNamespace(container_id="c1", status=TaskStatus.ASSIGNED.value, priority="urgent")
    late_high = SimpleNamespace(container_id="c1", status=TaskStatus.PLANNED.value, priority="high")
    second_urgent = SimpleNamespace(container_id="c1", status=TaskStatus.ASSIGNED.value, priority="urgent")

    assert match_customer_task("c1", [early_normal, late_high, late_urgent, second_urgent]) is late_urgent
    assert match_customer_task("c1", [early_normal, late_high]) is late_high


def test_carrying_match_ignores_open_tasks():
    open_task = SimpleNamespace(status=TaskStatus.ASSIGNED.value)
    carrying = SimpleNamespace(status=TaskStatus.IN_TRANSIT.value)

    assert match_carrying_task([open_task, carrying]) is carrying
    assert match_carrying_task([open_task]) is None


def test_customer_scan_resolves_assigned_task(db_session, engine, admin, driver):
    customer = create_customer_container(db_session, qr_code="CC-RESOLVE-1")
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    resolution = ScanResolver(db_session).resolve("CC-RESOLVE-1", driver.id)

    assert resolution.container_type == ContainerType.CUSTOMER
    assert resolution.task.id == task.id
    assert resolution.next_action == NEXT_ACTION_ACCEPT

    engine.accept_task(task.id, driver.id)
    assert ScanResolver(db_session).resolve("CC-RESOLVE-1", driver.id).next_action == NEXT_ACTION_PICKUP


def test_customer_scan_without_claim(db_session, engine, admin, driver):
    other = create_user(db_session)
    customer = create_customer_container(db_session, qr_code="CC-RESOLVE-2")
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, other.id, admin.id)

    with pytest.raises(NoTaskForContainer):
        ScanResolver(db_session).resolve("CC-RESOLVE-2", driver.id)


def test_warehouse_scan_returns_task_in_transit(db_session, engine, admin, driver):
    create_warehouse_container(db_session, qr_code="WC-RESOLVE-1")
    customer = create_customer_container(db_session)
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    with pytest.raises(NoActiveTask):
        ScanResolver(db_session).resolve("WC-RESOLVE-1", driver.id)

    engine.confirm_pickup(task.id, driver.id)
    resolution = ScanResolver(db_session).resolve('{"qrCode": "WC-RESOLVE-1"}', driver.id)

    assert resolution.container_type == ContainerType.WAREHOUSE
    assert resolution.task.id == task.id
    assert resolution.next_action == NEXT_ACTION_DELIVER


def test_unknown_qr_code(db_session, driver):
    with pytest.raises(UnknownContainer) as exc:
        ScanResolver(db_session).resolve("MISSING-QR", driver.id)
    assert exc.value.details == {"qr_code": "MISSING-QR"}


def test_customer_codes_take_priority(db_session, driver, engine, admin):
    customer = create_customer_container(db_session, qr_code="SHARED-QR")
    create_warehouse_container(db_session, qr_code="SHARED-QR")
    task = create_task(engine, admin, customer)
    engine.assign_driver(task.id, driver.id, admin.id)

    resolution = ScanResolver(db_session).resolve("SHARED-QR", driver.id)
    assert resolution.container_type == ContainerType.CUSTOMER
