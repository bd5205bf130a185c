from dataclasses import dataclass
from decimal import Decimal

from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    NOT_FOUND = ErrorDefinition("NOT_FOUND", "Resource not found", status.HTTP_404_NOT_FOUND)
    USER_ALREADY_EXISTS = ErrorDefinition(
        "USER_ALREADY_EXISTS",
        "A user with this email already exists",
        status.HTTP_409_CONFLICT,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Requested status change is not allowed from the current status",
        status.HTTP_409_CONFLICT,
    )
    MISSING_CANCELLATION_REASON = ErrorDefinition(
        "MISSING_CANCELLATION_REASON",
        "A cancellation reason is required",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    MATERIAL_MISMATCH = ErrorDefinition(
        "MATERIAL_MISMATCH",
        "Container material does not match the task material",
        status.HTTP_409_CONFLICT,
    )
    WRONG_TARGET_CONTAINER = ErrorDefinition(
        "WRONG_TARGET_CONTAINER",
        "This is not the target container of the task",
        status.HTTP_409_CONFLICT,
    )
    INSUFFICIENT_CAPACITY = ErrorDefinition(
        "INSUFFICIENT_CAPACITY",
        "Warehouse container has insufficient remaining capacity",
        status.HTTP_409_CONFLICT,
    )
    UNKNOWN_CONTAINER = ErrorDefinition(
        "UNKNOWN_CONTAINER",
        "No container is registered for this QR code",
        status.HTTP_404_NOT_FOUND,
    )
    NO_TASK_FOR_CONTAINER = ErrorDefinition(
        "NO_TASK_FOR_CONTAINER",
        "This container does not belong to any of your tasks",
        status.HTTP_404_NOT_FOUND,
    )
    NO_ACTIVE_TASK = ErrorDefinition(
        "NO_ACTIVE_TASK",
        "You have no task in progress to deliver",
        status.HTTP_404_NOT_FOUND,
    )
    CONCURRENT_MODIFICATION = ErrorDefinition(
        "CONCURRENT_MODIFICATION",
        "The record was modified concurrently, please retry",
        status.HTTP_409_CONFLICT,
    )
    DRIVER_NOT_ASSIGNED = ErrorDefinition(
        "DRIVER_NOT_ASSIGNED",
        "Task is not assigned to this driver",
        status.HTTP_403_FORBIDDEN,
    )
    ACTIVE_TASK_CONFLICT = ErrorDefinition(
        "ACTIVE_TASK_CONFLICT",
        "Driver already has a task in progress",
        status.HTTP_409_CONFLICT,
    )
    DRIVER_UNAVAILABLE = ErrorDefinition(
        "DRIVER_UNAVAILABLE",
        "User cannot be assigned as driver",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    CONTAINER_INACTIVE = ErrorDefinition(
        "CONTAINER_INACTIVE",
        "Container is not active",
        status.HTTP_409_CONFLICT,
    )
    INVALID_AMOUNT = ErrorDefinition(
        "INVALID_AMOUNT",
        "Amount must be a positive quantity",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    TASK_NOT_IN_PROGRESS = ErrorDefinition(
        "TASK_NOT_IN_PROGRESS",
        "Task is not picked up or in transit",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code


def _quantity(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _label(value) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", value)


class InvalidTransition(AppError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            ErrorCatalog.INVALID_TRANSITION,
            details={"current": _label(current), "requested": _label(requested)},
        )


class MissingCancellationReason(AppError):
    def __init__(self):
        super().__init__(ErrorCatalog.MISSING_CANCELLATION_REASON, details={"field": "reason"})


class MaterialMismatch(AppError):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(ErrorCatalog.MATERIAL_MISMATCH, details={"expected": expected, "actual": actual})


class WrongTargetContainer(AppError):
    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(ErrorCatalog.WRONG_TARGET_CONTAINER, details={"expected": expected, "actual": actual})


class InsufficientCapacity(AppError):
    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(
            ErrorCatalog.INSUFFICIENT_CAPACITY,
            details={"available": _quantity(available), "requested": _quantity(requested)},
        )


class UnknownContainer(AppError):
    def __init__(self, qr_code: str):
        self.qr_code = qr_code
        super().__init__(ErrorCatalog.UNKNOWN_CONTAINER, details={"qr_code": qr_code})


class NoTaskForContainer(AppError):
    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(ErrorCatalog.NO_TASK_FOR_CONTAINER, details={"container_id": container_id})


class NoActiveTask(AppError):
    def __init__(self, driver_id: str):
        self.driver_id = driver_id
        super().__init__(ErrorCatalog.NO_ACTIVE_TASK, details={"driver_id": driver_id})


class ConcurrentModification(AppError):
    def __init__(self, entity: str, entity_id: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(ErrorCatalog.CONCURRENT_MODIFICATION, details={"entity": entity, "id": entity_id})


class NotFound(AppError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(ErrorCatalog.NOT_FOUND, details={"entity": entity, "id": entity_id})


class DriverNotAssigned(AppError):
    def __init__(self, task_id: str, driver_id: str):
        super().__init__(ErrorCatalog.DRIVER_NOT_ASSIGNED, details={"task_id": task_id, "driver_id": driver_id})


class ActiveTaskConflict(AppError):
    def __init__(self, driver_id: str, active_task_id: str):
        self.active_task_id = active_task_id
        super().__init__(
            ErrorCatalog.ACTIVE_TASK_CONFLICT,
            details={"driver_id": driver_id, "active_task_id": active_task_id},
        )


class DriverUnavailable(AppError):
    def __init__(self, user_id: str, reason: str):
        super().__init__(ErrorCatalog.DRIVER_UNAVAILABLE, details={"user_id": user_id, "reason": reason})


class ContainerInactive(AppError):
    def __init__(self, container_type: str, container_id: str):
        super().__init__(
            ErrorCatalog.CONTAINER_INACTIVE,
            details={"container_type": container_type, "container_id": container_id},
        )


class InvalidAmount(AppError):
    def __init__(self, amount: Decimal | None):
        super().__init__(ErrorCatalog.INVALID_AMOUNT, details={"amount": _quantity(amount)})


class TaskNotInProgress(AppError):
    def __init__(self, current):
        self.current = current
        super().__init__(ErrorCatalog.TASK_NOT_IN_PROGRESS, details={"current": _label(current)})
