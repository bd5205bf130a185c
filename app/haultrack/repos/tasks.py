from datetime import datetime

from sqlalchemy import func, select

from app.haultrack.db.models import Task


def _status_values(statuses) -> list[str]:
    return [getattr(status, "value", status) for status in statuses]


class TaskRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, task_id):
        return self.db.get(Task, task_id)

    def get_for_update(self, task_id):
        stmt = (
            select(Task)
            .where(Task.id == task_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def list_tasks(
        self,
        *,
        assigned_to=None,
        statuses: list[str] | None = None,
        container_id=None,
        scheduled_from: datetime | None = None,
        scheduled_to: datetime | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ):
        stmt = select(Task)
        count_stmt = select(func.count()).select_from(Task)
        filters = []
        if assigned_to is not None:
            filters.append(Task.assigned_to == assigned_to)
        if statuses:
            filters.append(Task.status.in_(_status_values(statuses)))
        if container_id is not None:
            filters.append(Task.container_id == container_id)
        if scheduled_from is not None:
            filters.append(Task.scheduled_time >= scheduled_from)
        if scheduled_to is not None:
            filters.append(Task.scheduled_time < scheduled_to)
        if created_from is not None:
            filters.append(Task.created_at >= created_from)
        if created_to is not None:
            filters.append(Task.created_at < created_to)
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)
        stmt = stmt.order_by(Task.scheduled_time.asc(), Task.created_at.asc(), Task.id)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def list_for_driver(self, driver_id, statuses) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.assigned_to == driver_id, Task.status.in_(_status_values(statuses)))
            .order_by(Task.scheduled_time.asc(), Task.id)
        )
        return self.db.execute(stmt).scalars().all()

    def find_other_in_progress(self, driver_id, statuses, *, exclude_task_id=None) -> Task | None:
        stmt = select(Task).where(
            Task.assigned_to == driver_id,
            Task.status.in_(_status_values(statuses)),
        )
        if exclude_task_id is not None:
            stmt = stmt.where(Task.id != exclude_task_id)
        return self.db.execute(stmt.order_by(Task.id)).scalars().first()

    def count_by_status(self, statuses) -> int:
        stmt = select(func.count()).select_from(Task).where(Task.status.in_(_status_values(statuses)))
        return self.db.execute(stmt).scalar_one()

    def count_completed_between(self, start: datetime, end: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(Task)
            .where(Task.completed_at >= start, Task.completed_at < end)
        )
        return self.db.execute(stmt).scalar_one()

    def count_drivers_with_status(self, statuses) -> int:
        stmt = select(func.count(func.distinct(Task.assigned_to))).where(
            Task.assigned_to.is_not(None),
            Task.status.in_(_status_values(statuses)),
        )
        return self.db.execute(stmt).scalar_one()
