from fastapi import FastAPI

from app.haultrack.api import api_router
from app.haultrack.core.config import settings
from app.haultrack.core.errors import setup_exception_handlers
from app.haultrack.core.logging import configure_logging
from app.haultrack.middleware.observability import ObservabilityMiddleware
from app.haultrack.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
