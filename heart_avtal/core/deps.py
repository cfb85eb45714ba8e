# heart_avtal/core/deps.py
from fastapi import HTTPException, Request

from heart_avtal.core.config import get_settings
from heart_avtal.core.errors import HeartAvtalError
from heart_avtal.services.context import Actor
from heart_avtal.services.heart_avtal_service import HeartAvtalService


def get_actor(request: Request) -> Actor:
    """
    Caller identity as asserted by the gateway in front of this service.
    Authentication happens upstream; we only need a stable user id.
    """
    settings = get_settings()
    user_id = (request.headers.get(settings.actor_header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"Missing {settings.actor_header} header.")

    return Actor(
        user_id=user_id,
        ip_address=request.client.host if request.client else "unknown",
        request_id=getattr(request.state, "request_id", None),
    )


def get_heart_avtal_service(request: Request) -> HeartAvtalService:
    return request.app.state.heart_avtal_service


def to_http(e: HeartAvtalError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())
