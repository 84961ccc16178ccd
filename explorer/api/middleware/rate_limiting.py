import threading
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from explorer.api.middleware.api_key import is_valid_api_key


class InMemoryRateLimiter:
    """Sliding one-hour window of request timestamps per client IP"""

    def __init__(self, limit_per_hour: int, metrics_registry=None):
        self.requests = defaultdict(list)
        self.limit_per_hour = limit_per_hour
        self._lock = threading.Lock()
        self.rate_limit_hits_total = None
        self.rate_limit_bypassed_total = None
        if metrics_registry:
            self.rate_limit_hits_total = metrics_registry.create_counter(
                'rate_limit_hits_total',
                'Total rate limit hits',
                ['endpoint']
            )
            self.rate_limit_bypassed_total = metrics_registry.create_counter(
                'rate_limit_bypassed_total',
                'Total rate limit bypasses',
                ['reason']
            )

    def is_allowed(self, client_ip: str, endpoint: str = "unknown", now: Optional[datetime] = None) -> tuple[bool, Optional[int]]:
        """Check if request is allowed and return (allowed, retry_after_seconds)"""
        now = now or datetime.now()
        hour_ago = now - timedelta(hours=1)

        with self._lock:
            self.requests[client_ip] = [
                req_time for req_time in self.requests[client_ip]
                if req_time > hour_ago
            ]

            if len(self.requests[client_ip]) >= self.limit_per_hour:
                if self.rate_limit_hits_total:
                    self.rate_limit_hits_total.labels(endpoint=endpoint).inc()

                oldest_request = min(self.requests[client_ip])
                retry_after = int((oldest_request + timedelta(hours=1) - now).total_seconds())
                return False, max(retry_after, 1)

            self.requests[client_ip].append(now)
            return True, None

    def record_bypass(self, reason: str):
        if self.rate_limit_bypassed_total:
            self.rate_limit_bypassed_total.labels(reason=reason).inc()


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def create_rate_limit_middleware(rate_limiter: InMemoryRateLimiter):
    """Build a middleware that rate limits clients without a valid API key"""

    async def rate_limit_middleware(request: Request, call_next):
        if is_valid_api_key(request):
            rate_limiter.record_bypass("api_key")
            return await call_next(request)

        client_ip = get_client_ip(request)
        allowed, retry_after = rate_limiter.is_allowed(client_ip, request.url.path)
        if not allowed:
            logger.warning(
                "Rate limit exceeded - blocking request",
                extra={
                    "client_ip": client_ip,
                    "endpoint": request.url.path,
                    "retry_after_seconds": retry_after,
                    "limit_per_hour": rate_limiter.limit_per_hour,
                    "method": request.method
                }
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "Rate limit exceeded",
                    "message": "Too many requests. Please try again later or provide an API key.",
                    "retry_after": str(retry_after)
                },
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    return rate_limit_middleware
