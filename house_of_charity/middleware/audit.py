# house_of_charity/middleware/audit.py
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("house_of_charity.requests")


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status, latency, user."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        user_id = getattr(request.state, "user_id", None)
        logger.info(
            "%s %s -> %s (%dms)",
            request.method,
            request.url.path,
            response.status_code,
            int((time.perf_counter() - start) * 1000),
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "user_id": user_id,
                "ip": request.client.host if request.client else None,
            },
        )
        return response
