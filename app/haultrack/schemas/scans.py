from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.haultrack.schemas.common import LocationPayload
from app.haultrack.schemas.tasks import TaskResponse


class ScanEventResponse(BaseModel):
    id: str
    container_id: str
    container_type: str
    task_id: str | None
    scanned_by_user_id: str
    scanned_at: datetime
    scan_context: str
    location_type: str
    location_details: str | None
    geo_location: dict | None
    scan_result: str
    result_message: str | None


class ScanRequest(LocationPayload):
    qr_payload: str = Field(min_length=1)


class ScanResolveResponse(BaseModel):
    qr_code: str
    container_type: str
    container_id: str
    material_type: str
    task: TaskResponse
    next_action: str


class InfoScanResponse(BaseModel):
    container_type: str
    container_id: str
    scan_event: ScanEventResponse
