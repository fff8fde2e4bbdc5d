"""Per-IP rate limiting backed by Redis.

The intake endpoints are public (no accounts), so requests are counted
per client IP and path in a Redis sorted set (sliding window).  When
Redis is unreachable requests are let through.
"""

import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response, status
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from readiness.config import settings
from readiness.middleware.exceptions import create_error_response
from readiness.utils.cache import get_redis

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        default_limit: int = 100,  # requests
        default_window: int = 60,  # seconds
        exempt_paths: Optional[list[str]] = None,
        custom_limits: Optional[dict[str, tuple[int, int]]] = None,
    ):
        super().__init__(app)
        self.default_limit = default_limit
        self.default_window = default_window
        self.exempt_paths = exempt_paths or ["/docs", "/openapi.json"]
        # {path prefix: (limit, window seconds)}
        self.custom_limits = custom_limits or {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not settings.rate_limit_enabled or path.startswith(tuple(self.exempt_paths)):
            return await call_next(request)

        limit, window = self.limit_for(path)
        used, reset_at = await self._hit(f"ratelimit:{client_ip(request)}:{path}", window)
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(limit - used, 0)),
            "X-RateLimit-Reset": str(int(reset_at)),
        }

        if used > limit:
            retry_after = max(int(reset_at - time.time()), 1)
            logger.warning("Rate limit exceeded for %s on %s", client_ip(request), path)
            return create_error_response(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                error_code="HTTP_429",
                headers={**headers, "Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def limit_for(self, path: str) -> tuple[int, int]:
        for prefix, (limit, window) in self.custom_limits.items():
            if path.startswith(prefix):
                return limit, window
        return self.default_limit, self.default_window

    async def _hit(self, key: str, window: int) -> tuple[int, float]:
        """Record one request; return (requests in window, window reset time)."""
        now = time.time()
        try:
            client = await get_redis()
            async with client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now - window)
                pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.expire(key, window)
                _, _, used, oldest, _ = await pipe.execute()
        except (RedisError, OSError) as exc:
            logger.error("Rate limit check failed, allowing request: %s", exc)
            return 0, now + window

        reset_at = (oldest[0][1] if oldest else now) + window
        return used, reset_at


def client_ip(request: Request) -> str:
    # X-Forwarded-For is set by the load balancer
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
