import threading
from decimal import Decimal

from sqlalchemy import func, select

from app.haultrack.core.error_catalog import AppError, InsufficientCapacity, InvalidTransition
from app.haultrack.db.models import FillHistory, WarehouseContainer
from app.haultrack.services.task_engine import TaskEngine
from tests.factories import create_customer_container, create_user, create_warehouse_container, task_in_transit


def _run_concurrently(session_factory, calls):
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        db = session_factory()
        try:
            barrier.wait(timeout=5)
            outcomes[index] = call(TaskEngine(db))
        except AppError as exc:
            outcomes[index] = exc
        finally:
            db.close()

    threads = [threading.Thread(target=worker, args=(index, call)) for index, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def test_concurrent_deliveries_never_overflow_capacity(db_session, session_factory, engine, admin):
    first_driver = create_user(db_session)
    second_driver = create_user(db_session)
    warehouse = create_warehouse_container(db_session, max_capacity=1000, current_amount=400)
    first = task_in_transit(engine, admin, first_driver, create_customer_container(db_session), planned_quantity=400)
    second = task_in_transit(engine, admin, second_driver, create_customer_container(db_session), planned_quantity=400)
    db_session.close()

    outcomes = _run_concurrently(
        session_factory,
        [
            lambda eng: eng.confirm_delivery(first.id, first_driver.id, warehouse.id, amount=Decimal("400")),
            lambda eng: eng.confirm_delivery(second.id, second_driver.id, warehouse.id, amount=Decimal("400")),
        ],
    )

    failures = [outcome for outcome in outcomes if isinstance(outcome, AppError)]
    successes = [outcome for outcome in outcomes if not isinstance(outcome, AppError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientCapacity)
    assert failures[0].details == {"available": 200.0, "requested": 400.0}

    with session_factory() as db:
        stored = db.get(WarehouseContainer, warehouse.id)
        assert stored.current_amount == Decimal("800")
        entries = db.execute(
            select(func.count()).select_from(FillHistory).where(FillHistory.warehouse_container_id == warehouse.id)
        ).scalar_one()
        assert entries == 1


def test_duplicate_delivery_scans_credit_once(db_session, session_factory, engine, admin, driver):
    warehouse = create_warehouse_container(db_session, current_amount=0)
    task = task_in_transit(engine, admin, driver, create_customer_container(db_session), planned_quantity=250)
    db_session.close()

    def deliver(eng):
        return eng.confirm_delivery(task.id, driver.id, warehouse.id)

    outcomes = _run_concurrently(session_factory, [deliver, deliver])

    failures = [outcome for outcome in outcomes if isinstance(outcome, AppError)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidTransition)
    assert failures[0].details["current"] == "COMPLETED"

    with session_factory() as db:
        assert db.get(WarehouseContainer, warehouse.id).current_amount == Decimal("250")
