import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from heart_avtal.core.logging import bind_request_context, reset_request_context

logger = logging.getLogger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Gives every request an id (incoming header or a new uuid4), echoes it in
    the response, and binds it together with the acting user to the logging
    context. The same id is copied onto audit entries written by the request.
    """

    def __init__(self, app, header_name: str = "X-Request-Id", actor_header: str = "X-Actor-Id"):
        super().__init__(app)
        self.header_name = header_name
        self.actor_header = actor_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = rid
        tokens = bind_request_context(rid, request.headers.get(self.actor_header))
        started = time.perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
        finally:
            reset_request_context(tokens)

        response.headers[self.header_name] = rid
        return response
