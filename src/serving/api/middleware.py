"""
API Middleware

Request id propagation and timing, per-client rate limiting and response
security headers. Health probes are logged at debug level and never count
against a client's rate limit.
"""

import asyncio
import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict, Iterable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.metrics import REQUEST_DURATION

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROBE_PATHS = frozenset({"/api/health", "/api/health/live", "/api/metrics"})


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def route_template(request: Request) -> str:
    """Matched route path such as ``/api/products``; keeps metric labels bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and time every request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        path = request.url.path
        log = logger.debug if path in PROBE_PATHS else logger.info

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed",
                method=request.method,
                path=path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        REQUEST_DURATION.labels(
            method=request.method,
            route=route_template(request),
            status_code=response.status_code,
        ).observe(duration_ms / 1000)
        log(
            "Request completed",
            method=request.method,
            path=path,
            query=str(request.url.query) or None,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            client=client_address(request),
        )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window limit of ``max_requests`` per ``window_seconds`` per client.

    Counters live in process memory, so each worker enforces its own window.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 60,
        exempt_paths: Iterable[str] = PROBE_PATHS,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_paths = frozenset(exempt_paths)
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        """Drop hits older than the window; clients left with none are forgotten."""
        for client in list(self._hits):
            hits = self._hits[client]
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if not hits:
                del self._hits[client]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client = client_address(request)
        now = time.monotonic()

        async with self._lock:
            self._prune(now)
            hits = self._hits.setdefault(client, deque())

            if len(hits) >= self.max_requests:
                retry_after = max(1, int(self.window_seconds - (now - hits[0])))
                logger.warning("Rate limit exceeded", client=client, path=request.url.path)
                return JSONResponse(
                    status_code=429,
                    content={"error": "Rate limit exceeded"},
                    headers={
                        "Retry-After": str(retry_after),
                        "X-RateLimit-Limit": str(self.max_requests),
                        "X-RateLimit-Remaining": "0",
                    },
                )

            hits.append(now)
            remaining = self.max_requests - len(hits)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers on every response; the API never renders HTML"""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response
