from pydantic import BaseModel


class DashboardStatsResponse(BaseModel):
    open_tasks: int
    in_progress_tasks: int
    completed_today: int
    active_drivers: int
    critical_containers: int
    total_capacity: float
    available_capacity: float
