"""
HTTP access logging.

One ``http_request`` line per request with method, path, status and
duration. A request id (taken from ``x-request-id`` or generated) is bound
to every log line emitted while the request is handled and echoed back in
the response. Health probes are logged at debug level so they do not drown
webhook traffic.
"""

import time
import uuid
from typing import Iterable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = structlog.stdlib.get_logger("http")

REQUEST_ID_HEADER = "x-request-id"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, quiet_paths: Iterable[str] = ("/healthz",)):
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            # Query strings are never logged
            self._log(request.method, request.url.path, status_code, time.perf_counter() - start)

    def _log(self, method: str, path: str, status_code: int, elapsed_s: float) -> None:
        if status_code >= 500:
            log = logger.error
        elif status_code >= 400:
            log = logger.warning
        elif path in self.quiet_paths:
            log = logger.debug
        else:
            log = logger.info
        log(
            "http_request",
            method=method,
            path=path,
            status=status_code,
            duration_ms=round(elapsed_s * 1000, 1),
        )
