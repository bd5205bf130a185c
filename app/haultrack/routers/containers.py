import uuid
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.haultrack.core.context import RequestContext
from app.haultrack.core.deps import require_admin, require_request_context
from app.haultrack.core.error_catalog import AppError, ErrorCatalog, NotFound
from app.haultrack.core.locks import task_locks, warehouse_key
from app.haultrack.db.models import CustomerContainer, WarehouseContainer
from app.haultrack.db.session import get_db
from app.haultrack.repos.containers import CustomerContainerRepository, WarehouseContainerRepository
from app.haultrack.repos.ledger import FillHistoryRepository
from app.haultrack.routers.responses import (
    customer_container_response,
    fill_history_response,
    warehouse_container_response,
)
from app.haultrack.schemas.containers import (
    ContainerActiveRequest,
    CustomerContainerCreateRequest,
    CustomerContainerResponse,
    FillHistoryListResponse,
    WarehouseContainerCreateRequest,
    WarehouseContainerResponse,
)

router = APIRouter()


def _get_customer(db, container_id) -> CustomerContainer:
    container = CustomerContainerRepository(db).get_by_id(container_id)
    if container is None:
        raise NotFound("customer_container", str(container_id))
    return container


def _get_warehouse(db, container_id) -> WarehouseContainer:
    container = WarehouseContainerRepository(db).get_by_id(container_id)
    if container is None:
        raise NotFound("warehouse_container", str(container_id))
    return container


@router.get("/api/containers/customer", response_model=list[CustomerContainerResponse])
def list_customer_containers(
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    material_type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
):
    rows = CustomerContainerRepository(db).list_containers(material_type=material_type, is_active=is_active)
    return [customer_container_response(row) for row in rows]


@router.post("/api/containers/customer", response_model=CustomerContainerResponse, status_code=201)
def create_customer_container(
    payload: CustomerContainerCreateRequest,
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    container_id = uuid.uuid4()
    container = CustomerContainer(
        id=container_id,
        customer_name=payload.customer_name,
        location=payload.location,
        coordinates=payload.coordinates.model_dump() if payload.coordinates else None,
        material_type=payload.material_type,
        content_description=payload.content_description,
        qr_code=payload.qr_code or f"customer-{container_id}",
        is_active=True,
    )
    return customer_container_response(CustomerContainerRepository(db).create(container))


@router.get("/api/containers/customer/qr/{qr_code}", response_model=CustomerContainerResponse)
def get_customer_container_by_qr(
    qr_code: str,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    container = CustomerContainerRepository(db).get_by_qr_code(qr_code)
    if container is None:
        raise NotFound("customer_container", qr_code)
    return customer_container_response(container)


@router.get("/api/containers/customer/{container_id}", response_model=CustomerContainerResponse)
def get_customer_container(
    container_id: UUID,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return customer_container_response(_get_customer(db, container_id))


@router.patch("/api/containers/customer/{container_id}/active", response_model=CustomerContainerResponse)
def set_customer_container_active(
    container_id: UUID,
    payload: ContainerActiveRequest,
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    container = _get_customer(db, container_id)
    container.is_active = payload.is_active
    db.commit()
    return customer_container_response(container)


@router.get("/api/containers/warehouse", response_model=list[WarehouseContainerResponse])
def list_warehouse_containers(
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
    material_type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    min_available: Decimal | None = Query(default=None, ge=0),
):
    rows = WarehouseContainerRepository(db).list_containers(
        material_type=material_type,
        is_active=is_active,
        has_capacity_for=min_available,
    )
    return [warehouse_container_response(row) for row in rows]


@router.post("/api/containers/warehouse", response_model=WarehouseContainerResponse, status_code=201)
def create_warehouse_container(
    payload: WarehouseContainerCreateRequest,
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    container_id = uuid.uuid4()
    container = WarehouseContainer(
        id=container_id,
        location=payload.location,
        warehouse_zone=payload.warehouse_zone,
        material_type=payload.material_type,
        content_description=payload.content_description,
        qr_code=payload.qr_code or f"warehouse-{container_id}",
        quantity_unit=payload.quantity_unit.value,
        initial_amount=payload.initial_amount,
        current_amount=payload.initial_amount,
        max_capacity=payload.max_capacity,
        is_active=True,
    )
    if container.current_amount > container.max_capacity:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"field": "initial_amount", "message": "initial amount exceeds max capacity"},
        )
    return warehouse_container_response(WarehouseContainerRepository(db).create(container))


@router.get("/api/containers/warehouse/qr/{qr_code}", response_model=WarehouseContainerResponse)
def get_warehouse_container_by_qr(
    qr_code: str,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    container = WarehouseContainerRepository(db).get_by_qr_code(qr_code)
    if container is None:
        raise NotFound("warehouse_container", qr_code)
    return warehouse_container_response(container)


@router.get("/api/containers/warehouse/{container_id}", response_model=WarehouseContainerResponse)
def get_warehouse_container(
    container_id: UUID,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return warehouse_container_response(_get_warehouse(db, container_id))


@router.patch("/api/containers/warehouse/{container_id}/active", response_model=WarehouseContainerResponse)
def set_warehouse_container_active(
    container_id: UUID,
    payload: ContainerActiveRequest,
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    with task_locks.hold(warehouse_key(container_id)):
        container = _get_warehouse(db, container_id)
        container.is_active = payload.is_active
        db.commit()
    return warehouse_container_response(container)


@router.get("/api/containers/warehouse/{container_id}/fill-history", response_model=FillHistoryListResponse)
def get_fill_history(
    container_id: UUID,
    _context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    _get_warehouse(db, container_id)
    repo = FillHistoryRepository(db)
    return FillHistoryListResponse(
        entries=[fill_history_response(entry) for entry in repo.list_for_container(container_id)],
        total_added=float(repo.total_added(container_id)),
    )
