"""Request logging with org context.

Every request gets a request_id (taken from an incoming X-Request-ID header
when it looks sane, generated otherwise) that is echoed on the response. The
id, plus the org the request is about, is bound into structlog's contextvars
for the duration of the request, so the metadata_sync.* and metadata_cache.*
events emitted while serving it carry the same fields as the final
request_completed line:

- instance_key: canonical key of the ``instance_url`` query parameter
- user_id: the ``{user_id}`` segment of /metadata/users/{user_id}/objects
- admin_key: whether an X-Admin-Key header was sent (never its value)

Output is JSON in production and console-rendered elsewhere.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.orgmeta.config import Environment, get_settings
from src.orgmeta.metadata.identity import canonical_instance_key

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
_USER_OBJECTS_PATH = re.compile(r"/metadata/users/([^/]+)/objects/?$")

# Hit by load balancer health checks; only logged at debug.
_QUIET_PATHS = frozenset({"/health", "/health/ready"})


def configure_structlog() -> None:
    """Configure structlog for the service; contextvars are merged first."""
    settings = get_settings()

    logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.ENVIRONMENT == Environment.production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def request_log_context(request: Request) -> dict[str, object]:
    """Org and caller fields for a request's log lines.

    Path parameters are not resolved yet when middleware runs, so the user id
    is read from the raw path.
    """
    context: dict[str, object] = {}

    instance_url = request.query_params.get("instance_url")
    if instance_url:
        context["instance_key"] = canonical_instance_key(instance_url)

    match = _USER_OBJECTS_PATH.search(request.url.path)
    if match:
        context["user_id"] = match.group(1)

    if "x-admin-key" in request.headers:
        context["admin_key"] = True

    return context


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER)
    if incoming and _REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request once, with timing and org context."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        fields = {
            "method": request.method,
            "path": request.url.path,
            "request_id": request_id,
            **request_log_context(request),
        }
        start_time = time.monotonic()

        with structlog.contextvars.bound_contextvars(**fields):
            try:
                response = await call_next(request)
            except Exception:
                logger.error(
                    "request_error",
                    status_code=500,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                    exc_info=True,
                )
                raise

            duration_ms = round((time.monotonic() - start_time) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id

            if response.status_code >= 500:
                log_method = logger.error
            elif response.status_code >= 400:
                log_method = logger.warning
            elif request.url.path.rstrip("/").endswith(tuple(_QUIET_PATHS)):
                log_method = logger.debug
            else:
                log_method = logger.info

            log_method(
                "request_completed",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        return response
