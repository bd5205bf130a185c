from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.haultrack.core.enums import UserRole


class UserCreateRequest(BaseModel):
    email: str = Field(min_length=3)
    name: str = Field(min_length=1)
    phone: str | None = None
    role: UserRole = UserRole.DRIVER


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    phone: str | None
    role: str
    is_active: bool
    created_at: datetime
