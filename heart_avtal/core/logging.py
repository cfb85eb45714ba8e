import logging
import sys
from contextvars import ContextVar, Token
from typing import Optional, Tuple

from pythonjsonlogger import jsonlogger

from heart_avtal.core.config import Settings

# Set by RequestIdMiddleware for the duration of one request.
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_var: ContextVar[Optional[str]] = ContextVar("actor", default=None)


def bind_request_context(request_id: str, actor: Optional[str]) -> Tuple[Token, Token]:
    return request_id_var.set(request_id), actor_var.set(actor)


def reset_request_context(tokens: Tuple[Token, Token]) -> None:
    request_id_var.reset(tokens[0])
    actor_var.reset(tokens[1])


class RequestContextFilter(logging.Filter):
    """Stamps the current request id and actor on records that don't carry their own."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        if getattr(record, "actor", None) is None:
            record.actor = actor_var.get()
        return True


def configure_logging(settings: Settings) -> None:
    """
    JSON logs on stdout. Every line carries the service name and, inside a
    request, the request id and acting user, so a contract operation can be
    followed from the HTTP call through to its audit entries.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # clear handlers if reloaded
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    fmt = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": settings.app_name, "environment": settings.environment},
    )
    handler.setFormatter(fmt)
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.sql_echo else logging.WARNING)
