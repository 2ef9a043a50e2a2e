import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger(__name__)

# Paths polled by load balancers and the payment provider are logged at debug.
QUIET_PATH_PREFIXES = ("/health",)


class CorrelationIdMiddleware:
    """Bind a correlation ID to every log line emitted while serving a request.

    The ID is taken from the ``X-Request-ID`` header or generated as a UUID4,
    stored in a ContextVar plus structlog's contextvars, and echoed back in
    the ``X-Request-ID`` response header.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.META.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        path = request.path
        log = logger.bind(method=request.method, path=path)
        emit = log.debug if path.startswith(QUIET_PATH_PREFIXES) else log.info

        emit("request_started")
        response = self.get_response(request)
        emit("request_finished", status_code=response.status_code)

        response["X-Request-ID"] = cid
        return response
