"""
HTTP middleware: request logging, optional rate limiting and CORS.
"""
import logging
import threading
import time
import uuid
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from fastapi import Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# Set up logging
logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log the start and end of every request.

    A request id sent by the caller (or a proxy) is kept; otherwise one is
    generated. Either way it is echoed back in ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"[{request_id}] {request.method} {request.url.path} from {client_host}")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            logger.exception(f"[{request_id}] {request.method} {request.url.path} failed after {elapsed:.4f}s")
            raise

        elapsed = time.perf_counter() - started
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(f"[{request_id}] {response.status_code} in {elapsed:.4f}s")
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window request limit per client IP.

    Counters live in process memory; several API processes each enforce the
    limit on their own. Clients idle for a whole window are dropped once per
    window.
    """

    def __init__(self, app: ASGIApp, rate_limit: int = 100, window_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(app)
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _allow(self, client_ip: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            hits = self._hits[client_ip]
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if len(hits) >= self.rate_limit:
                return False
            hits.append(now)
            return True

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        idle = [ip for ip, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for ip in idle:
            del self._hits[ip]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        if not self._allow(client_ip):
            logger.warning(f"Rate limit exceeded for {client_ip}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Rate limit exceeded"},
            )
        return await call_next(request)


def setup_middlewares(app, settings):
    """
    Set up all custom middlewares for the application.

    Args:
        app: FastAPI application instance
        settings: Application settings (CORS origins, rate limit)
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.rate_limit_per_minute > 0:
        app.add_middleware(RateLimitMiddleware, rate_limit=settings.rate_limit_per_minute, window_seconds=60.0)
    app.add_middleware(RequestLoggingMiddleware)
