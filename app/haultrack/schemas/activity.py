from datetime import datetime

from pydantic import BaseModel


class ActivityLogResponse(BaseModel):
    id: str
    type: str
    message: str
    user_id: str | None
    task_id: str | None
    container_id: str | None
    scan_event_id: str | None
    location: dict | None
    metadata: dict | None
    timestamp: datetime


class ActivityLogListResponse(BaseModel):
    entries: list[ActivityLogResponse]
    total: int
    limit: int
    offset: int
