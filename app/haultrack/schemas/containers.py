from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.haultrack.core.enums import QuantityUnit
from app.haultrack.schemas.common import GeoPoint


class CustomerContainerCreateRequest(BaseModel):
    customer_name: str | None = None
    location: str
    coordinates: GeoPoint | None = None
    material_type: str = Field(min_length=1)
    content_description: str | None = None
    qr_code: str | None = None


class CustomerContainerResponse(BaseModel):
    id: str
    customer_name: str | None
    location: str
    coordinates: dict | None
    material_type: str
    content_description: str | None
    qr_code: str
    is_active: bool
    last_emptied: datetime | None
    created_at: datetime


class WarehouseContainerCreateRequest(BaseModel):
    location: str
    warehouse_zone: str | None = None
    material_type: str = Field(min_length=1)
    content_description: str | None = None
    qr_code: str | None = None
    quantity_unit: QuantityUnit = QuantityUnit.KG
    initial_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_capacity: Decimal = Field(gt=0)


class WarehouseContainerResponse(BaseModel):
    id: str
    location: str
    warehouse_zone: str | None
    material_type: str
    content_description: str | None
    qr_code: str
    quantity_unit: str
    current_amount: float
    max_capacity: float
    available_capacity: float
    fill_percent: float
    is_active: bool
    created_at: datetime


class ContainerActiveRequest(BaseModel):
    is_active: bool


class FillHistoryResponse(BaseModel):
    id: str
    warehouse_container_id: str
    task_id: str | None
    amount_added: float
    quantity_unit: str
    recorded_by_user_id: str | None
    created_at: datetime


class FillHistoryListResponse(BaseModel):
    entries: list[FillHistoryResponse]
    total_added: float
