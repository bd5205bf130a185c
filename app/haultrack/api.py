from fastapi import APIRouter

from app.haultrack.core.config import settings
from app.haultrack.routers.activity import router as activity_router
from app.haultrack.routers.containers import router as containers_router
from app.haultrack.routers.dashboard import router as dashboard_router
from app.haultrack.routers.health import router as health_router
from app.haultrack.routers.metrics import router as metrics_router
from app.haultrack.routers.scans import router as scans_router
from app.haultrack.routers.tasks import router as tasks_router
from app.haultrack.routers.users import router as users_router
from app.haultrack.schemas.errors import ERROR_RESPONSES

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(tasks_router, tags=["tasks"], responses=ERROR_RESPONSES)
api_router.include_router(containers_router, tags=["containers"], responses=ERROR_RESPONSES)
api_router.include_router(scans_router, tags=["scans"], responses=ERROR_RESPONSES)
api_router.include_router(activity_router, tags=["activity"], responses=ERROR_RESPONSES)
api_router.include_router(dashboard_router, tags=["dashboard"], responses=ERROR_RESPONSES)
api_router.include_router(users_router, tags=["users"], responses=ERROR_RESPONSES)
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
