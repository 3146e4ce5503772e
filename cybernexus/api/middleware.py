"""
HTTP middleware: request ids, request logging, rate limiting and
security headers.
"""

import time
import uuid
from typing import Callable, Optional, Sequence

from fastapi import Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from cybernexus.core.architecture.rate_limiter import RateLimitConfig, RateLimiter
from cybernexus.core.config import Settings, settings
from cybernexus.core.logging import get_logger, request_id_context

logger = get_logger(__name__)


def client_ip(request: Request, trusted_hops: Optional[int] = None) -> Optional[str]:
    """
    Address of the calling client.

    Each trusted proxy appends the peer it saw to X-Forwarded-For, so the
    client is the entry `trusted_hops` from the right. Anything further
    left was written by the client itself and is ignored.
    """
    if trusted_hops is None:
        trusted_hops = settings.trusted_proxy_hops
    peer = request.client.host if request.client else None
    if trusted_hops <= 0:
        return peer

    header = request.headers.get("X-Forwarded-For", "")
    forwarded = [part.strip() for part in header.split(",") if part.strip()]
    if not forwarded:
        return peer
    return forwarded[-min(trusted_hops, len(forwarded))]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id, exposed to logs and echoed in X-Request-ID"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_context.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_context.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging middleware

    Logs all requests with timing information.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 1),
            client=client_ip(request),
        )
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware

    One token bucket per client IP for all API traffic, and a much smaller
    one for the credential endpoints.
    """

    def __init__(
        self,
        app: ASGIApp,
        general: RateLimitConfig,
        auth: RateLimitConfig,
        auth_paths: Sequence[str] = (),
        path_prefix: str = "/api",
        trusted_hops: int = 0,
    ):
        super().__init__(app)
        self.general_limiter = RateLimiter("api", general)
        self.auth_limiter = RateLimiter("auth", auth)
        self.auth_paths = tuple(auth_paths)
        self.path_prefix = path_prefix
        self.trusted_hops = trusted_hops

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not path.startswith(self.path_prefix):
            return await call_next(request)

        key = client_ip(request, self.trusted_hops) or "unknown"
        limiter = self.auth_limiter if path in self.auth_paths else self.general_limiter
        result = limiter.check(key)

        if not result.allowed:
            retry_after = int(result.retry_after or 1) + 1
            message = (
                "Too many authentication attempts, please try again later."
                if limiter is self.auth_limiter
                else "Too many requests from this IP, please try again later."
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"message": message, "retry_after": retry_after},
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.rate_limit.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.rate_limit.remaining)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Security headers middleware

    Adds security headers to all responses.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


def setup_middleware(app: ASGIApp, config: Settings) -> None:
    """
    Setup all middleware for the application

    Last added is outermost: request ids wrap everything so every log line
    of a request carries its id.
    """
    app.add_middleware(SecurityHeadersMiddleware)

    if config.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            general=RateLimitConfig(
                max_requests=config.rate_limit_requests,
                time_window=config.rate_limit_window_seconds,
            ),
            auth=RateLimitConfig(
                max_requests=config.auth_rate_limit_requests,
                time_window=config.auth_rate_limit_window_seconds,
            ),
            auth_paths=(f"{config.api_prefix}/auth/login", f"{config.api_prefix}/auth/register"),
            path_prefix=config.api_prefix,
            trusted_hops=config.trusted_proxy_hops,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
