"""Request logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

class LoggingMiddleware(BaseHTTPMiddleware):
    """Log ``METHOD path -> status (ms)`` for API requests."""

    def __init__(self, app, prefix: str = "/api", skip_paths: list = None):
        super().__init__(app)
        self.prefix = prefix
        self.skip_paths = skip_paths or ["/api/health"]

    async def dispatch(self, request: Request, call_next: Callable):
        path = request.url.path
        if not path.startswith(self.prefix) or path in self.skip_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        logger.info(f"{request.method} {path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response
