import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import CHAR, TypeDecorator


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


Quantity = Numeric(12, 3, asdecimal=True)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="DRIVER", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class CustomerContainer(Base):
    __tablename__ = "customer_containers"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    coordinates: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    material_type: Mapped[str] = mapped_column(String(100), nullable=False)
    content_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    qr_code: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_emptied: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class WarehouseContainer(Base):
    __tablename__ = "warehouse_containers"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    warehouse_zone: Mapped[str | None] = mapped_column(String(100), nullable=True)
    material_type: Mapped[str] = mapped_column(String(100), nullable=False)
    content_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    qr_code: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    quantity_unit: Mapped[str] = mapped_column(String(10), default="kg", nullable=False)
    initial_amount: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"), nullable=False)
    current_amount: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"), nullable=False)
    max_capacity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    fill_history = relationship("FillHistory", back_populates="warehouse_container")

    __mapper_args__ = {"version_id_col": version}


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    container_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("customer_containers.id"), index=True, nullable=False
    )
    delivery_container_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("warehouse_containers.id"), index=True, nullable=True
    )
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("users.id"), index=True, nullable=True
    )
    created_by: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)
    material_type: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="normal", nullable=False)
    scheduled_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    planned_quantity: Mapped[Decimal | None] = mapped_column(Quantity, nullable=True)
    planned_quantity_unit: Mapped[str] = mapped_column(String(10), default="kg", nullable=False)
    actual_quantity: Mapped[Decimal | None] = mapped_column(Quantity, nullable=True)
    actual_quantity_unit: Mapped[str | None] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="PLANNED", index=True, nullable=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    pickup_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    picked_up_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    in_transit_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    pickup_timestamp: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    delivery_timestamp: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    container = relationship("CustomerContainer", foreign_keys=[container_id])
    delivery_container = relationship("WarehouseContainer", foreign_keys=[delivery_container_id])

    __mapper_args__ = {"version_id_col": version}


class ScanEvent(Base):
    __tablename__ = "scan_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    container_id: Mapped[uuid.UUID] = mapped_column(GUID(), index=True, nullable=False)
    container_type: Mapped[str] = mapped_column(String(20), nullable=False)
    task_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("tasks.id"), index=True, nullable=True)
    scanned_by_user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id"), index=True, nullable=False
    )
    scanned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    scan_context: Mapped[str] = mapped_column(String(40), nullable=False)
    location_type: Mapped[str] = mapped_column(String(20), nullable=False)
    location_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    geo_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    scan_result: Mapped[str] = mapped_column(String(30), default="SUCCESS", nullable=False)
    result_message: Mapped[str | None] = mapped_column(Text, nullable=True)


class FillHistory(Base):
    __tablename__ = "fill_history"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    warehouse_container_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("warehouse_containers.id"), index=True, nullable=False
    )
    task_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("tasks.id"), index=True, nullable=True)
    amount_added: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    quantity_unit: Mapped[str] = mapped_column(String(10), default="kg", nullable=False)
    recorded_by_user_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    warehouse_container = relationship("WarehouseContainer", back_populates="fill_history")


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("users.id"), index=True, nullable=True)
    task_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("tasks.id"), index=True, nullable=True)
    container_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), index=True, nullable=True)
    scan_event_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("scan_events.id"), nullable=True
    )
    location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), index=True, nullable=False)
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )


Index("ix_tasks_assigned_status", Task.assigned_to, Task.status)
Index("ix_activity_logs_timestamp_sequence", ActivityLog.timestamp, ActivityLog.sequence)
