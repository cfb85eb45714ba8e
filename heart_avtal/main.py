from typing import Optional

from fastapi import FastAPI

from heart_avtal.api.v1.router import v1_router
from heart_avtal.core.config import get_settings
from heart_avtal.core.logging import configure_logging
from heart_avtal.core.middleware import RequestIdMiddleware
from heart_avtal.services.heart_avtal_service import HeartAvtalService


def create_app(service: Optional[HeartAvtalService] = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Collaborators default to the sandbox implementations
    app.state.heart_avtal_service = service or HeartAvtalService(settings=settings)

    # Middleware: Request ID
    app.add_middleware(
        RequestIdMiddleware,
        header_name=settings.request_id_header,
        actor_header=settings.actor_header,
    )

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
