"""Task transition engine.

Each public operation is one atomic unit: it takes the advisory locks for the
resources it touches, re-reads every row inside those locks, validates the
request against the status graph and delivery rules, writes the new state
together with scan events, fill history and activity entries, and commits.
Any failure rolls the whole unit back.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy.orm.exc import StaleDataError

from app.haultrack.core.config import settings
from app.haultrack.core.enums import (
    ActivityType,
    ContainerType,
    LocationType,
    Priority,
    ScanContext,
    ScanResult,
    TaskOperation,
    TaskStatus,
    UserRole,
)
from app.haultrack.core.error_catalog import (
    ActiveTaskConflict,
    AppError,
    ConcurrentModification,
    ContainerInactive,
    DriverNotAssigned,
    DriverUnavailable,
    InvalidAmount,
    InvalidTransition,
    MaterialMismatch,
    NotFound,
    TaskNotInProgress,
)
from app.haultrack.core.locks import KeyedLocks, driver_key, task_key, task_locks, warehouse_key
from app.haultrack.core.logging import log_json
from app.haultrack.core.metrics import metrics
from app.haultrack.db.models import FillHistory, ScanEvent, Task
from app.haultrack.repos.containers import CustomerContainerRepository, WarehouseContainerRepository
from app.haultrack.repos.ledger import FillHistoryRepository, ScanEventRepository
from app.haultrack.repos.tasks import TaskRepository
from app.haultrack.repos.users import UserRepository
from app.haultrack.services.activity import ActivityLogEmitter, SCAN_ACTIVITY_TYPES
from app.haultrack.services.delivery_checks import quantize_amount, validate_delivery
from app.haultrack.services.scan_resolver import ScanResolver, parse_qr_payload
from app.haultrack.services.task_transitions import (
    IN_PROGRESS_STATUSES,
    WEIGHABLE_STATUSES,
    allowed_transitions,
    coerce_status,
    ensure_cancellation_reason,
    ensure_transition,
    pickup_hops,
    stamp,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _id(value) -> str | None:
    return str(value) if value is not None else None


def _quantity_label(value: Decimal) -> str:
    normalized = value.normalize()
    return format(normalized, "f")


@dataclass(frozen=True)
class ScanLocation:
    details: str | None = None
    geo: dict | None = None

    def as_dict(self) -> dict | None:
        if self.details is None and self.geo is None:
            return None
        payload: dict = {}
        if self.details is not None:
            payload["details"] = self.details
        if self.geo is not None:
            payload["geo"] = self.geo
        return payload


@dataclass
class TransitionResult:
    task: Task | None
    scan_event: ScanEvent | None = None
    fill_entry: FillHistory | None = None
    container: object | None = None
    container_type: ContainerType | None = None
    activity: list = field(default_factory=list)


@dataclass
class _Unit:
    operation: TaskOperation
    task_id: str | None
    actor_id: str | None


class TaskEngine:
    def __init__(
        self,
        db,
        *,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLocks | None = None,
        max_retries: int | None = None,
    ):
        self.db = db
        self.clock = clock or utcnow
        self.locks = locks or task_locks
        self.max_retries = settings.CONCURRENT_MODIFICATION_RETRIES if max_retries is None else max_retries
        self.tasks = TaskRepository(db)
        self.users = UserRepository(db)
        self.customer_containers = CustomerContainerRepository(db)
        self.warehouse_containers = WarehouseContainerRepository(db)
        self.scan_events = ScanEventRepository(db)
        self.fill_history = FillHistoryRepository(db)

    def _execute(
        self,
        unit: _Unit,
        keys: tuple[str, ...],
        body: Callable[[datetime, ActivityLogEmitter], TransitionResult],
    ) -> TransitionResult:
        attempt = 0
        while True:
            try:
                with self.locks.hold(*keys):
                    now = self.clock()
                    emitter = ActivityLogEmitter(self.db, now)
                    result = body(now, emitter)
                    result.activity = list(emitter.emitted)
                    self.db.commit()
            except StaleDataError as exc:
                self.db.rollback()
                if attempt < self.max_retries:
                    attempt += 1
                    metrics.increment_concurrent_modification_retry()
                    log_json(
                        logger,
                        {
                            "event": "task_operation_retry",
                            "operation": unit.operation.value,
                            "task_id": unit.task_id,
                            "attempt": attempt,
                        },
                        level=logging.WARNING,
                    )
                    continue
                error = ConcurrentModification("task", unit.task_id)
                self._log_rejection(unit, error)
                raise error from exc
            except AppError as exc:
                self.db.rollback()
                self._log_rejection(unit, exc)
                raise
            except Exception:
                self.db.rollback()
                raise
            status = getattr(result.task, "status", None) if result.task is not None else None
            metrics.record_transition(operation=unit.operation.value, status=status or "n/a")
            log_json(
                logger,
                {
                    "event": "task_transition",
                    "operation": unit.operation.value,
                    "task_id": _id(result.task.id) if result.task is not None else unit.task_id,
                    "actor_id": unit.actor_id,
                    "status": status,
                    "activity": [entry.type for entry in result.activity],
                    "retries": attempt,
                },
            )
            return result

    def _log_rejection(self, unit: _Unit, error: AppError) -> None:
        metrics.increment_rejection(error.code)
        log_json(
            logger,
            {
                "event": "task_operation_rejected",
                "operation": unit.operation.value,
                "task_id": unit.task_id,
                "actor_id": unit.actor_id,
                "code": error.code,
                "details": error.details,
            },
            level=logging.WARNING,
        )

    def _load_task(self, task_id) -> Task:
        task = self.tasks.get_for_update(task_id)
        if task is None:
            raise NotFound("task", _id(task_id))
        return task

    def _ensure_assignee(self, task: Task, driver_id) -> None:
        if task.assigned_to is None or str(task.assigned_to) != str(driver_id):
            raise DriverNotAssigned(_id(task.id), _id(driver_id))

    def _ensure_no_other_active_task(self, task: Task, driver_id) -> None:
        other = self.tasks.find_other_in_progress(driver_id, IN_PROGRESS_STATUSES, exclude_task_id=task.id)
        if other is not None:
            raise ActiveTaskConflict(_id(driver_id), _id(other.id))

    def _load_driver(self, driver_id):
        driver = self.users.get_by_id(driver_id)
        if driver is None:
            raise DriverUnavailable(_id(driver_id), "not_found")
        if not driver.is_active:
            raise DriverUnavailable(_id(driver_id), "inactive")
        if (driver.role or "").upper() != UserRole.DRIVER.value:
            raise DriverUnavailable(_id(driver_id), "not_a_driver")
        return driver

    def _set_status(self, task: Task, status: TaskStatus, now: datetime) -> None:
        task.status = status.value
        stamp(task, status, now)
        task.updated_at = now

    def _record_scan(
        self,
        *,
        container,
        container_type: ContainerType,
        driver_id,
        context: ScanContext,
        now: datetime,
        task: Task | None = None,
        location: ScanLocation | None = None,
        result: ScanResult = ScanResult.SUCCESS,
        message: str | None = None,
    ) -> ScanEvent:
        event = ScanEvent(
            id=uuid.uuid4(),
            container_id=container.id,
            container_type=container_type.value,
            task_id=task.id if task is not None else None,
            scanned_by_user_id=driver_id,
            scanned_at=now,
            scan_context=context.value,
            location_type=(
                LocationType.CUSTOMER if container_type == ContainerType.CUSTOMER else LocationType.WAREHOUSE
            ).value,
            location_details=location.details if location else None,
            geo_location=location.geo if location else None,
            scan_result=result.value,
            result_message=message,
        )
        return self.scan_events.add(event)

    def create_task(
        self,
        actor_id,
        *,
        container_id,
        title: str,
        scheduled_time: datetime,
        material_type: str | None = None,
        planned_quantity: Decimal | None = None,
        planned_quantity_unit: str | None = None,
        priority: Priority = Priority.NORMAL,
        description: str | None = None,
        notes: str | None = None,
        delivery_container_id=None,
    ) -> TransitionResult:
        unit = _Unit(TaskOperation.CREATE, None, _id(actor_id))

        def body(now, emitter):
            container = self.customer_containers.get_by_id(container_id)
            if container is None:
                raise NotFound("customer_container", _id(container_id))
            if not container.is_active:
                raise ContainerInactive(ContainerType.CUSTOMER.value, _id(container.id))
            material = material_type or container.material_type
            if material != container.material_type:
                raise MaterialMismatch(expected=container.material_type, actual=material)
            planned = quantize_amount(planned_quantity)
            if planned is not None and planned <= 0:
                raise InvalidAmount(planned_quantity)
            if delivery_container_id is not None:
                target = self.warehouse_containers.get_by_id(delivery_container_id)
                if target is None:
                    raise NotFound("warehouse_container", _id(delivery_container_id))
                if target.material_type != material:
                    raise MaterialMismatch(expected=material, actual=target.material_type)

            task = Task(
                id=uuid.uuid4(),
                title=title,
                description=description,
                notes=notes,
                container_id=container.id,
                delivery_container_id=delivery_container_id,
                created_by=actor_id,
                material_type=material,
                priority=Priority(priority).value,
                scheduled_time=scheduled_time,
                planned_quantity=planned,
                planned_quantity_unit=planned_quantity_unit or settings.DEFAULT_QUANTITY_UNIT,
                status=TaskStatus.PLANNED.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(task)
            emitter.emit(ActivityType.TASK_CREATED, task, actor_id, container)
            return TransitionResult(task=task, container=container, container_type=ContainerType.CUSTOMER)

        return self._execute(unit, (), body)

    def _assign(self, task: Task, driver_id, actor_id, now, emitter, operation: TaskOperation) -> TransitionResult:
        current = coerce_status(task.status)
        if current not in (TaskStatus.PLANNED, TaskStatus.ASSIGNED):
            raise InvalidTransition(current, TaskStatus.ASSIGNED)
        driver = self._load_driver(driver_id)
        self._ensure_no_other_active_task(task, driver.id)
        if current == TaskStatus.PLANNED:
            ensure_transition(current, TaskStatus.ASSIGNED)
        previous_driver = task.assigned_to
        task.assigned_to = driver.id
        self._set_status(task, TaskStatus.ASSIGNED, now)
        emitter.emit_transition(
            operation,
            TaskStatus.ASSIGNED,
            task,
            actor_id,
            task.container,
            metadata={"previous_driver_id": _id(previous_driver), "new_driver_id": _id(driver.id)},
        )
        return TransitionResult(task=task)

    def assign_driver(self, task_id, driver_id, actor_id) -> TransitionResult:
        unit = _Unit(TaskOperation.ASSIGN, _id(task_id), _id(actor_id))

        def body(now, emitter):
            task = self._load_task(task_id)
            return self._assign(task, driver_id, actor_id, now, emitter, TaskOperation.ASSIGN)

        return self._execute(unit, (task_key(task_id), driver_key(driver_id)), body)

    def reassign(self, task_id, new_driver_id, actor_id) -> TransitionResult:
        """Move a not-yet-accepted task to another driver, or back to PLANNED when
        ``new_driver_id`` is None. ``assigned_at`` keeps the first assignment time."""
        unit = _Unit(TaskOperation.REASSIGN, _id(task_id), _id(actor_id))

        def body(now, emitter):
            task = self._load_task(task_id)
            if new_driver_id is not None:
                return self._assign(task, new_driver_id, actor_id, now, emitter, TaskOperation.REASSIGN)
            current = coerce_status(task.status)
            ensure_transition(current, TaskStatus.PLANNED)
            previous_driver = task.assigned_to
            task.assigned_to = None
            self._set_status(task, TaskStatus.PLANNED, now)
            emitter.emit_transition(
                TaskOperation.REASSIGN,
                TaskStatus.PLANNED,
                task,
                actor_id,
                task.container,
                metadata={"previous_driver_id": _id(previous_driver), "new_driver_id": None},
            )
            return TransitionResult(task=task)

        keys = (task_key(task_id),) + ((driver_key(new_driver_id),) if new_driver_id is not None else ())
        return self._execute(unit, keys, body)

    def accept_task(self, task_id, driver_id, location: ScanLocation | None = None) -> TransitionResult:
        unit = _Unit(TaskOperation.ACCEPT, _id(task_id), _id(driver_id))

        def body(now, emitter):
            task = self._load_task(task_id)
            ensure_transition(task.status, TaskStatus.ACCEPTED)
            self._ensure_assignee(task, driver_id)
            self._ensure_no_other_active_task(task, driver_id)
            container = task.container
            scan = self._record_scan(
                container=container,
                container_type=ContainerType.CUSTOMER,
                driver_id=task.assigned_to,
                context=ScanContext.TASK_ACCEPT_AT_CUSTOMER,
                now=now,
                task=task,
                location=location,
            )
            emitter.emit(
                ActivityType.CONTAINER_SCANNED_AT_CUSTOMER,
                task,
                task.assigned_to,
                container,
                scan,
                location=location.as_dict() if location else None,
            )
            self._set_status(task, TaskStatus.ACCEPTED, now)
            emitter.emit_transition(
                TaskOperation.ACCEPT,
                TaskStatus.ACCEPTED,
                task,
                task.assigned_to,
                container,
                scan_event=scan,
                location=location.as_dict() if location else None,
            )
            return TransitionResult(
                task=task, scan_event=scan, container=container, container_type=ContainerType.CUSTOMER
            )

        return self._execute(unit, (task_key(task_id), driver_key(driver_id)), body)

    def confirm_pickup(self, task_id, driver_id, location: ScanLocation | None = None) -> TransitionResult:
        unit = _Unit(TaskOperation.PICKUP, _id(task_id), _id(driver_id))

        def body(now, emitter):
            task = self._load_task(task_id)
            current = coerce_status(task.status)
            hops = pickup_hops(current)
            previous = current
            for hop in hops:
                previous = ensure_transition(previous, hop)
            self._ensure_assignee(task, driver_id)
            self._ensure_no_other_active_task(task, driver_id)

            context = ScanContext.TASK_PICKUP if current == TaskStatus.ACCEPTED else ScanContext.TASK_ACCEPT_AT_CUSTOMER
            container = task.container
            location_payload = location.as_dict() if location else None
            scan = self._record_scan(
                container=container,
                container_type=ContainerType.CUSTOMER,
                driver_id=task.assigned_to,
                context=context,
                now=now,
                task=task,
                location=location,
            )
            emitter.emit(
                ActivityType.CONTAINER_SCANNED_AT_CUSTOMER,
                task,
                task.assigned_to,
                container,
                scan,
                location=location_payload,
            )
            for hop in hops:
                self._set_status(task, hop, now)
                emitter.emit_transition(
                    TaskOperation.PICKUP,
                    hop,
                    task,
                    task.assigned_to,
                    container,
                    scan_event=scan,
                    location=location_payload,
                )
            task.pickup_timestamp = now
            task.pickup_location = location_payload
            return TransitionResult(
                task=task, scan_event=scan, container=container, container_type=ContainerType.CUSTOMER
            )

        return self._execute(unit, (task_key(task_id), driver_key(driver_id)), body)

    def record_weight(self, task_id, driver_id, amount: Decimal, unit: str | None = None) -> TransitionResult:
        op = _Unit(TaskOperation.RECORD_WEIGHT, _id(task_id), _id(driver_id))

        def body(now, emitter):
            task = self._load_task(task_id)
            current = coerce_status(task.status)
            if current not in WEIGHABLE_STATUSES:
                raise TaskNotInProgress(current)
            self._ensure_assignee(task, driver_id)
            weight = quantize_amount(amount)
            if weight is None or weight <= 0:
                raise InvalidAmount(amount)
            task.actual_quantity = weight
            task.actual_quantity_unit = unit or task.planned_quantity_unit
            task.updated_at = now
            emitter.emit(
                ActivityType.WEIGHT_RECORDED,
                task,
                task.assigned_to,
                task.container,
                metadata={"amount": float(weight), "unit": task.actual_quantity_unit},
            )
            return TransitionResult(task=task)

        return self._execute(op, (task_key(task_id),), body)

    def confirm_delivery(
        self,
        task_id,
        driver_id,
        warehouse_container_id,
        amount: Decimal | None = None,
        unit: str | None = None,
        location: ScanLocation | None = None,
    ) -> TransitionResult:
        op = _Unit(TaskOperation.DELIVER, _id(task_id), _id(driver_id))

        def body(now, emitter):
            task = self._load_task(task_id)
            ensure_transition(task.status, TaskStatus.DELIVERED)
            self._ensure_assignee(task, driver_id)
            container = self.warehouse_containers.get_for_update(warehouse_container_id)
            if container is None:
                raise NotFound("warehouse_container", _id(warehouse_container_id))
            if not container.is_active:
                raise ContainerInactive(ContainerType.WAREHOUSE.value, _id(container.id))
            decision = validate_delivery(task, container, amount, unit)

            location_payload = location.as_dict() if location else None
            scan = self._record_scan(
                container=container,
                container_type=ContainerType.WAREHOUSE,
                driver_id=task.assigned_to,
                context=ScanContext.TASK_COMPLETE_AT_WAREHOUSE,
                now=now,
                task=task,
                location=location,
            )
            emitter.emit(
                ActivityType.CONTAINER_SCANNED_AT_WAREHOUSE,
                task,
                task.assigned_to,
                container,
                scan,
                location=location_payload,
            )

            container.current_amount = container.current_amount + decision.amount
            container.updated_at = now
            entry = self.fill_history.add(
                FillHistory(
                    id=uuid.uuid4(),
                    warehouse_container_id=container.id,
                    task_id=task.id,
                    amount_added=decision.amount,
                    quantity_unit=decision.unit,
                    recorded_by_user_id=task.assigned_to,
                    created_at=now,
                )
            )

            customer_container = self.customer_containers.get_for_update(task.container_id)
            if customer_container is not None:
                customer_container.last_emptied = now
                customer_container.updated_at = now

            task.actual_quantity = decision.amount
            task.actual_quantity_unit = decision.unit
            task.delivery_container_id = container.id
            task.delivery_timestamp = now
            metadata = {
                "amount": float(decision.amount),
                "unit": decision.unit,
                "amount_label": _quantity_label(decision.amount),
                "warehouse_container_id": _id(container.id),
            }
            for hop in (TaskStatus.DELIVERED, TaskStatus.COMPLETED):
                self._set_status(task, hop, now)
                emitter.emit_transition(
                    TaskOperation.DELIVER,
                    hop,
                    task,
                    task.assigned_to,
                    container,
                    scan_event=scan,
                    location=location_payload,
                    metadata=metadata,
                )
            return TransitionResult(
                task=task,
                scan_event=scan,
                fill_entry=entry,
                container=container,
                container_type=ContainerType.WAREHOUSE,
            )

        return self._execute(op, (task_key(task_id), warehouse_key(warehouse_container_id)), body)

    def cancel(self, task_id, actor_id, reason: str | None, *, actor_role: str | None = None) -> TransitionResult:
        op = _Unit(TaskOperation.CANCEL, _id(task_id), _id(actor_id))

        def body(now, emitter):
            cleaned = ensure_cancellation_reason(reason)
            task = self._load_task(task_id)
            ensure_transition(task.status, TaskStatus.CANCELLED)
            if actor_role is not None and actor_role.upper() == UserRole.DRIVER.value:
                self._ensure_assignee(task, actor_id)
            self._set_status(task, TaskStatus.CANCELLED, now)
            task.cancellation_reason = cleaned
            emitter.emit_transition(
                TaskOperation.CANCEL,
                TaskStatus.CANCELLED,
                task,
                actor_id,
                task.container,
                metadata={"reason": cleaned},
            )
            return TransitionResult(task=task)

        return self._execute(op, (task_key(task_id),), body)

    def record_info_scan(self, qr_payload: str, driver_id, location: ScanLocation | None = None) -> TransitionResult:
        op = _Unit(TaskOperation.INFO_SCAN, None, _id(driver_id))

        def body(now, emitter):
            container_type, container = ScanResolver(self.db).lookup_container(parse_qr_payload(qr_payload))
            context = (
                ScanContext.CUSTOMER_INFO if container_type == ContainerType.CUSTOMER else ScanContext.WAREHOUSE_INFO
            )
            if container.is_active:
                result, message = ScanResult.SUCCESS, None
            else:
                result, message = ScanResult.INVALID_CONTAINER, "Container is not active"
            scan = self._record_scan(
                container=container,
                container_type=container_type,
                driver_id=driver_id,
                context=context,
                now=now,
                location=location,
                result=result,
                message=message,
            )
            emitter.emit(
                SCAN_ACTIVITY_TYPES[container_type],
                None,
                driver_id,
                container,
                scan,
                location=location.as_dict() if location else None,
                metadata={"scan_result": result.value},
            )
            return TransitionResult(task=None, scan_event=scan, container=container, container_type=container_type)

        return self._execute(op, (), body)

    def allowed_transitions(self, task_id) -> list[TaskStatus]:
        task = self.tasks.get_by_id(task_id)
        if task is None:
            raise NotFound("task", _id(task_id))
        return allowed_transitions(task.status)
