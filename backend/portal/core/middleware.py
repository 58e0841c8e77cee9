"""
HTTP middleware: security headers, per-client rate limiting and a JSON body
size cap. Installed by portal.main.create_app().
"""
import logging
import math
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger("uvicorn.error")

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline'",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "font-src 'self' data: https://fonts.gstatic.com",
    "img-src 'self' data: blob: https:",
    "media-src 'self' blob: https:",
    "frame-src https://www.youtube.com https://youtube.com",
    "connect-src 'self' https:",
    "object-src 'none'",
])


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, production: bool = False):
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        headers = response.headers
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        headers.setdefault("Cross-Origin-Resource-Policy", "cross-origin")
        headers.setdefault("Content-Security-Policy",
                           CONTENT_SECURITY_POLICY + ("; upgrade-insecure-requests" if self.production else ""))
        if self.production:
            headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
        return response


_PORT_SUFFIX = re.compile(r":\d+$")


def client_key(request: Request) -> str:
    """
    Client address used as the rate limit bucket.
    The first X-Forwarded-For hop is trusted (the app runs behind one proxy);
    IPv4-mapped prefixes and ports some proxies append are stripped.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else ""
    if ip.count(":") == 1:  # IPv4 with port
        ip = _PORT_SUFFIX.sub("", ip)
    return ip.removeprefix("::ffff:")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window limiter: at most `max_requests` per client per window on
    paths under `path_prefix`. State is per process.
    """

    def __init__(self, app, max_requests: int = 1000, window_sec: int = 900, path_prefix: str = "/api"):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_sec = window_sec
        self.path_prefix = path_prefix
        # client -> (window start, count)
        self._hits: dict[str, tuple[float, int]] = {}

    def _hit(self, key: str, now: float) -> tuple[int, float]:
        start, count = self._hits.get(key, (now, 0))
        if now - start >= self.window_sec:
            start, count = now, 0
        count += 1
        self._hits[key] = (start, count)
        if len(self._hits) > 10_000:
            self._prune(now)
        return count, start + self.window_sec

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._hits.items() if now - start >= self.window_sec]
        for k in expired:
            del self._hits[k]

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        now = time.monotonic()
        key = client_key(request)
        count, reset_at = self._hit(key, now)
        remaining = max(self.max_requests - count, 0)
        reset_in = max(math.ceil(reset_at - now), 0)

        if count > self.max_requests:
            logger.warning("[rate-limit] %s exceeded %d requests", key, self.max_requests)
            response = JSONResponse({"error": "Too many requests, please try again later."}, status_code=429)
            response.headers["Retry-After"] = str(reset_in)
        else:
            response = await call_next(request)

        response.headers["RateLimit-Limit"] = str(self.max_requests)
        response.headers["RateLimit-Remaining"] = str(remaining)
        response.headers["RateLimit-Reset"] = str(reset_in)
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject JSON/urlencoded bodies above `max_bytes`; multipart uploads are capped per route."""

    def __init__(self, app, max_bytes: int = 1024 * 1024):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        content_type = request.headers.get("content-type", "")
        length = request.headers.get("content-length")
        if (content_type.startswith(("application/json", "application/x-www-form-urlencoded"))
                and length and length.isdigit() and int(length) > self.max_bytes):
            return JSONResponse({"error": "Request body too large"}, status_code=413)
        return await call_next(request)
