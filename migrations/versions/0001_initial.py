"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def _quantity():
    return sa.Numeric(12, 3)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "customer_containers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=500), nullable=False),
        sa.Column("coordinates", sa.JSON(), nullable=True),
        sa.Column("material_type", sa.String(length=100), nullable=False),
        sa.Column("content_description", sa.Text(), nullable=True),
        sa.Column("qr_code", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_emptied", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_customer_containers_qr_code", "customer_containers", ["qr_code"], unique=True)

    op.create_table(
        "warehouse_containers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("location", sa.String(length=500), nullable=False),
        sa.Column("warehouse_zone", sa.String(length=100), nullable=True),
        sa.Column("material_type", sa.String(length=100), nullable=False),
        sa.Column("content_description", sa.Text(), nullable=True),
        sa.Column("qr_code", sa.String(length=255), nullable=False),
        sa.Column("quantity_unit", sa.String(length=10), nullable=False),
        sa.Column("initial_amount", _quantity(), nullable=False),
        sa.Column("current_amount", _quantity(), nullable=False),
        sa.Column("max_capacity", _quantity(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_warehouse_containers_qr_code", "warehouse_containers", ["qr_code"], unique=True)

    op.create_table(
        "tasks",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("container_id", GUID(), sa.ForeignKey("customer_containers.id"), nullable=False),
        sa.Column("delivery_container_id", GUID(), sa.ForeignKey("warehouse_containers.id"), nullable=True),
        sa.Column("assigned_to", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_by", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("material_type", sa.String(length=100), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("scheduled_time", sa.DateTime(), nullable=False),
        sa.Column("planned_quantity", _quantity(), nullable=True),
        sa.Column("planned_quantity_unit", sa.String(length=10), nullable=False),
        sa.Column("actual_quantity", _quantity(), nullable=True),
        sa.Column("actual_quantity_unit", sa.String(length=10), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("pickup_location", sa.JSON(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(), nullable=True),
        sa.Column("in_transit_at", sa.DateTime(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("pickup_timestamp", sa.DateTime(), nullable=True),
        sa.Column("delivery_timestamp", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tasks_container_id", "tasks", ["container_id"])
    op.create_index("ix_tasks_delivery_container_id", "tasks", ["delivery_container_id"])
    op.create_index("ix_tasks_assigned_to", "tasks", ["assigned_to"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_assigned_status", "tasks", ["assigned_to", "status"])

    op.create_table(
        "scan_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("container_id", GUID(), nullable=False),
        sa.Column("container_type", sa.String(length=20), nullable=False),
        sa.Column("task_id", GUID(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("scanned_by_user_id", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("scanned_at", sa.DateTime(), nullable=False),
        sa.Column("scan_context", sa.String(length=40), nullable=False),
        sa.Column("location_type", sa.String(length=20), nullable=False),
        sa.Column("location_details", sa.Text(), nullable=True),
        sa.Column("geo_location", sa.JSON(), nullable=True),
        sa.Column("scan_result", sa.String(length=30), nullable=False),
        sa.Column("result_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_scan_events_container_id", "scan_events", ["container_id"])
    op.create_index("ix_scan_events_task_id", "scan_events", ["task_id"])
    op.create_index("ix_scan_events_scanned_by_user_id", "scan_events", ["scanned_by_user_id"])

    op.create_table(
        "fill_history",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column(
            "warehouse_container_id",
            GUID(),
            sa.ForeignKey("warehouse_containers.id"),
            nullable=False,
        ),
        sa.Column("task_id", GUID(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("amount_added", _quantity(), nullable=False),
        sa.Column("quantity_unit", sa.String(length=10), nullable=False),
        sa.Column("recorded_by_user_id", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_fill_history_warehouse_container_id", "fill_history", ["warehouse_container_id"])
    op.create_index("ix_fill_history_task_id", "fill_history", ["task_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("user_id", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("task_id", GUID(), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("container_id", GUID(), nullable=True),
        sa.Column("scan_event_id", GUID(), sa.ForeignKey("scan_events.id"), nullable=True),
        sa.Column("location", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
    )
    op.create_index("ix_activity_logs_type", "activity_logs", ["type"])
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_task_id", "activity_logs", ["task_id"])
    op.create_index("ix_activity_logs_container_id", "activity_logs", ["container_id"])
    op.create_index("ix_activity_logs_timestamp", "activity_logs", ["timestamp"])
    op.create_index("ix_activity_logs_timestamp_sequence", "activity_logs", ["timestamp", "sequence"])

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )
    op.create_index("ix_idempotency_records_user_id", "idempotency_records", ["user_id"])


def downgrade() -> None:
    op.drop_table("idempotency_records")
    op.drop_table("activity_logs")
    op.drop_table("fill_history")
    op.drop_table("scan_events")
    op.drop_table("tasks")
    op.drop_table("warehouse_containers")
    op.drop_table("customer_containers")
    op.drop_table("users")
