"""
Access log for the oracle API.

Dashboards poll /health and /prices every few seconds, so successful reads
are logged at DEBUG; writes (POST /submit) and any error status are always
logged. The /submit body is never logged.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.scope.get("path", "")
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        elif request.method == "GET":
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            "request method=%s path=%s status=%s duration_ms=%.1f",
            request.method, path, status, duration_ms,
        )
        return response
