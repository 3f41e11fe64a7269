"""
Logging Middleware - Request/Response logging
"""
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from tms_engine.utils.logger import get_logger

logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with the caller role, status code and duration."""

    async def dispatch(self, request: Request, call_next: Callable):
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = request.url.path
        role = request.headers.get("x-actor-role", "Anonymous")

        logger.info(f"→ {method} {path} as {role}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"✗ {method} {path} ERROR ({duration_ms}ms): {e}",
                exc_info=True
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"← {method} {path} {response.status_code} ({duration_ms}ms)")
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
