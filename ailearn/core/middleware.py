"""HTTP middleware: request logging, security headers, rate limiting, CSRF."""
import logging
import secrets
import time
from typing import Dict, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("ailearn.http")

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
API_PREFIX = "/api/"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "HTTP %s %s %s %.1fms",
            request.method, request.url.path, response.status_code, elapsed_ms,
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, hsts: bool = False):
        super().__init__(app)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        if self.hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request budget per client address on API routes."""

    def __init__(self, app, max_requests: int = 100, window_seconds: int = 900):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, Tuple[float, int]] = {}

    def _hit(self, key: str, now: float) -> int:
        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window_seconds:
            started, count = now, 0
        count += 1
        self._windows[key] = (started, count)
        return count

    def _prune(self, now: float) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(API_PREFIX):
            return await call_next(request)

        now = time.monotonic()
        if len(self._windows) > 10_000:
            self._prune(now)

        client = request.client.host if request.client else "unknown"
        if self._hit(client, now) > self.max_requests:
            logger.warning("Rate limit exceeded for %s", client)
            return _error(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests, please try again later.")
        return await call_next(request)


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Double-submit cookie check for cookie-authenticated state changes.

    Requests authenticating only with an Authorization header are exempt.
    """

    def __init__(self, app, auth_cookie_name: str = "token"):
        super().__init__(app)
        self.auth_cookie_name = auth_cookie_name

    async def dispatch(self, request: Request, call_next):
        if (
            request.method in UNSAFE_METHODS
            and request.url.path.startswith(API_PREFIX)
            and request.cookies.get(self.auth_cookie_name)
        ):
            cookie_token = request.cookies.get(CSRF_COOKIE_NAME, "")
            header_token = request.headers.get(CSRF_HEADER_NAME, "")
            if not cookie_token or not secrets.compare_digest(cookie_token.encode(), header_token.encode()):
                return _error(status.HTTP_403_FORBIDDEN, "Invalid CSRF token")
        return await call_next(request)
