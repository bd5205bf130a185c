from sqlalchemy import func, select

from app.haultrack.db.models import ActivityLog, FillHistory, ScanEvent


class ScanEventRepository:
    def __init__(self, db):
        self.db = db

    def add(self, event: ScanEvent) -> ScanEvent:
        self.db.add(event)
        return event

    def list_events(self, *, container_id=None, task_id=None, user_id=None, limit: int | None = None):
        stmt = select(ScanEvent)
        if container_id is not None:
            stmt = stmt.where(ScanEvent.container_id == container_id)
        if task_id is not None:
            stmt = stmt.where(ScanEvent.task_id == task_id)
        if user_id is not None:
            stmt = stmt.where(ScanEvent.scanned_by_user_id == user_id)
        stmt = stmt.order_by(ScanEvent.scanned_at.desc(), ScanEvent.id)
        if limit:
            stmt = stmt.limit(limit)
        return self.db.execute(stmt).scalars().all()


class FillHistoryRepository:
    def __init__(self, db):
        self.db = db

    def add(self, entry: FillHistory) -> FillHistory:
        self.db.add(entry)
        return entry

    def list_for_container(self, warehouse_container_id):
        stmt = (
            select(FillHistory)
            .where(FillHistory.warehouse_container_id == warehouse_container_id)
            .order_by(FillHistory.created_at.desc(), FillHistory.id)
        )
        return self.db.execute(stmt).scalars().all()

    def total_added(self, warehouse_container_id):
        stmt = select(func.coalesce(func.sum(FillHistory.amount_added), 0)).where(
            FillHistory.warehouse_container_id == warehouse_container_id
        )
        return self.db.execute(stmt).scalar_one()


class ActivityLogRepository:
    def __init__(self, db):
        self.db = db

    def add(self, entry: ActivityLog) -> ActivityLog:
        self.db.add(entry)
        return entry

    def list_entries(
        self,
        *,
        user_id=None,
        task_id=None,
        container_id=None,
        types: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ):
        stmt = select(ActivityLog)
        count_stmt = select(func.count()).select_from(ActivityLog)
        filters = []
        if user_id is not None:
            filters.append(ActivityLog.user_id == user_id)
        if task_id is not None:
            filters.append(ActivityLog.task_id == task_id)
        if container_id is not None:
            filters.append(ActivityLog.container_id == container_id)
        if types:
            filters.append(ActivityLog.type.in_(types))
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)
        stmt = stmt.order_by(ActivityLog.timestamp.desc(), ActivityLog.sequence.desc(), ActivityLog.id)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total
