from sqlalchemy import select

from app.haultrack.db.models import CustomerContainer, WarehouseContainer


class CustomerContainerRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, container_id):
        return self.db.get(CustomerContainer, container_id)

    def get_by_qr_code(self, qr_code: str):
        stmt = select(CustomerContainer).where(CustomerContainer.qr_code == qr_code)
        return self.db.execute(stmt).scalars().first()

    def get_for_update(self, container_id):
        stmt = (
            select(CustomerContainer)
            .where(CustomerContainer.id == container_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def list_containers(self, *, material_type: str | None = None, is_active: bool | None = None):
        stmt = select(CustomerContainer)
        if material_type:
            stmt = stmt.where(CustomerContainer.material_type == material_type)
        if is_active is not None:
            stmt = stmt.where(CustomerContainer.is_active.is_(is_active))
        stmt = stmt.order_by(CustomerContainer.location.asc(), CustomerContainer.id)
        return self.db.execute(stmt).scalars().all()

    def create(self, container: CustomerContainer) -> CustomerContainer:
        self.db.add(container)
        self.db.commit()
        self.db.refresh(container)
        return container


class WarehouseContainerRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, container_id):
        return self.db.get(WarehouseContainer, container_id)

    def get_by_qr_code(self, qr_code: str):
        stmt = select(WarehouseContainer).where(WarehouseContainer.qr_code == qr_code)
        return self.db.execute(stmt).scalars().first()

    def get_for_update(self, container_id):
        stmt = (
            select(WarehouseContainer)
            .where(WarehouseContainer.id == container_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def list_containers(
        self,
        *,
        material_type: str | None = None,
        is_active: bool | None = None,
        has_capacity_for=None,
    ):
        stmt = select(WarehouseContainer)
        if material_type:
            stmt = stmt.where(WarehouseContainer.material_type == material_type)
        if is_active is not None:
            stmt = stmt.where(WarehouseContainer.is_active.is_(is_active))
        if has_capacity_for is not None:
            stmt = stmt.where(
                WarehouseContainer.max_capacity - WarehouseContainer.current_amount >= has_capacity_for
            )
        stmt = stmt.order_by(WarehouseContainer.location.asc(), WarehouseContainer.id)
        return self.db.execute(stmt).scalars().all()

    def create(self, container: WarehouseContainer) -> WarehouseContainer:
        self.db.add(container)
        self.db.commit()
        self.db.refresh(container)
        return container
