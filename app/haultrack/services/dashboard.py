from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from app.haultrack.core.config import settings
from app.haultrack.repos.containers import WarehouseContainerRepository
from app.haultrack.repos.tasks import TaskRepository
from app.haultrack.services.task_transitions import IN_PROGRESS_STATUSES, OPEN_STATUSES


@dataclass(frozen=True)
class DashboardStats:
    open_tasks: int
    in_progress_tasks: int
    completed_today: int
    active_drivers: int
    critical_containers: int
    total_capacity: Decimal
    available_capacity: Decimal


def fill_percent(container) -> Decimal:
    if not container.max_capacity:
        return Decimal("0")
    return (Decimal(container.current_amount) / Decimal(container.max_capacity)) * 100


class DashboardService:
    def __init__(self, db):
        self.tasks = TaskRepository(db)
        self.warehouse_containers = WarehouseContainerRepository(db)

    def stats(self, *, now: datetime) -> DashboardStats:
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        containers = self.warehouse_containers.list_containers(is_active=True)
        critical = [c for c in containers if fill_percent(c) >= settings.CRITICAL_FILL_PERCENT]
        total = sum((Decimal(c.max_capacity) for c in containers), Decimal("0"))
        used = sum((Decimal(c.current_amount) for c in containers), Decimal("0"))
        return DashboardStats(
            open_tasks=self.tasks.count_by_status(OPEN_STATUSES),
            in_progress_tasks=self.tasks.count_by_status(IN_PROGRESS_STATUSES),
            completed_today=self.tasks.count_completed_between(day_start, day_start + timedelta(days=1)),
            active_drivers=self.tasks.count_drivers_with_status(IN_PROGRESS_STATUSES),
            critical_containers=len(critical),
            total_capacity=total,
            available_capacity=total - used,
        )
