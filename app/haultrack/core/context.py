from dataclasses import dataclass

from app.haultrack.core.enums import UserRole


@dataclass(frozen=True)
class RequestContext:
    user_id: str
    role: str
    trace_id: str

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == UserRole.ADMIN.value
