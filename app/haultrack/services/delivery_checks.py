from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.haultrack.core.error_catalog import (
    InsufficientCapacity,
    InvalidAmount,
    MaterialMismatch,
    WrongTargetContainer,
)


@dataclass(frozen=True)
class DeliveryDecision:
    amount: Decimal
    unit: str
    available_before: Decimal
    remaining_after: Decimal


# Scale of the Numeric quantity columns.
QUANTITY_STEP = Decimal("0.001")


def _as_decimal(value) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_amount(value) -> Decimal | None:
    amount = _as_decimal(value)
    if amount is None:
        return None
    return amount.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def resolve_amount(task, proposed_amount=None) -> Decimal:
    """Explicit amount, else the weight recorded after pickup, else the planned quantity."""
    for candidate in (proposed_amount, task.actual_quantity, task.planned_quantity):
        amount = quantize_amount(candidate)
        if amount is None:
            continue
        if amount <= 0:
            raise InvalidAmount(amount)
        return amount
    raise InvalidAmount(None)


def available_capacity(container) -> Decimal:
    return _as_decimal(container.max_capacity) - _as_decimal(container.current_amount)


def validate_delivery(task, container, proposed_amount=None, unit: str | None = None) -> DeliveryDecision:
    if container.material_type != task.material_type:
        raise MaterialMismatch(expected=task.material_type, actual=container.material_type)

    target_id = task.delivery_container_id
    if target_id is not None and str(target_id) != str(container.id):
        raise WrongTargetContainer(expected=str(target_id), actual=str(container.id))

    amount = resolve_amount(task, proposed_amount)
    available = available_capacity(container)
    if amount > available:
        raise InsufficientCapacity(available=available, requested=amount)

    if unit is None:
        if proposed_amount is None and task.actual_quantity is not None:
            unit = task.actual_quantity_unit or task.planned_quantity_unit
        else:
            unit = task.planned_quantity_unit
    return DeliveryDecision(
        amount=amount,
        unit=unit,
        available_before=available,
        remaining_after=available - amount,
    )
