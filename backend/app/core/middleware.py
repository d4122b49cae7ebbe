"""Request tracking, access logging and rate limiting middleware"""

import re
import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from backend.app.core.exceptions import RateLimitException
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

# Caller-supplied request IDs are echoed into logs and headers
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

DEFAULT_EXEMPT_PATHS = ("/", "/health", "/docs", "/redoc")


def client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to request state and to the response headers"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get("X-Request-ID")
        if incoming and REQUEST_ID_PATTERN.match(incoming):
            request_id = incoming
        else:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one line when a request starts and one when it finishes"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = getattr(request.state, "request_id", "unknown")
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        logger.info("Request started", extra={**context, "client": client_host(request)})

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {str(e)}",
                extra={**context, "duration_ms": round((time.perf_counter() - started) * 1000, 2)},
                exc_info=True
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "Request completed",
            extra={**context, "status_code": response.status_code, "duration_ms": duration_ms}
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding one-minute window per client IP, kept in process memory

    Requests over the limit get the standard error envelope with status 429
    and a ``Retry-After`` header.
    """

    window_seconds = 60

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 60,
        exempt_paths: Optional[Iterable[str]] = None
    ):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.exempt_paths = set(exempt_paths or DEFAULT_EXEMPT_PATHS)
        self.windows: Dict[str, Deque[float]] = {}

    def _window(self, client: str, now: float) -> Deque[float]:
        window = self.windows.setdefault(client, deque())
        while window and now - window[0] >= self.window_seconds:
            window.popleft()
        return window

    def _rejection(self, request: Request) -> JSONResponse:
        # Raised exceptions would bypass the app's handlers at this layer
        exc = RateLimitException("Rate limit exceeded. Please try again later.")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "error": exc.code,
                "message": exc.message,
                "request_id": getattr(request.state, "request_id", None),
            },
            headers={"Retry-After": str(self.window_seconds)},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client = client_host(request)
        window = self._window(client, time.monotonic())

        if len(window) >= self.requests_per_minute:
            logger.warning(
                f"Rate limit exceeded for client: {client}",
                extra={"client_ip": client, "path": request.url.path}
            )
            return self._rejection(request)

        window.append(time.monotonic())
        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(self.requests_per_minute - len(window))
        return response
