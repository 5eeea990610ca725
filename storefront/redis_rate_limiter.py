"""Redis-backed rate limiter middleware."""
import logging
import time
from typing import Optional, Tuple

import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.auth import decode_access_token
from storefront.config import AUTH_COOKIE_NAME
from storefront.errors import AccessDenied, error_body
from storefront.monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)

SUSPICIOUS_WINDOW_SECONDS = 300


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Sliding window rate limiter shared across storefront instances.

    Two tiers are enforced: a per-IP limit for every request and a
    tighter per-user limit for requests carrying a valid session token.
    When Redis is unreachable requests are let through.
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = 600,
        requests_per_minute_user: int = 120,
        window_seconds: int = 60
    ):
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.window_seconds = window_seconds

    def _check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int
    ) -> Tuple[bool, int]:
        """
        Record a request in a Redis sorted set and check the window.

        Args:
            key: Redis key for this limit (e.g., "rate:ip:192.168.1.1")
            limit: Maximum requests allowed
            window: Time window in seconds

        Returns:
            Tuple of (is_allowed, current_count)
        """
        try:
            current_time = time.time()
            window_start = current_time - window

            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(current_time): current_time})
            pipe.expire(key, window + 1)
            results = pipe.execute()

            # Count before the current request was added
            count = results[1]
            return count < limit, count + 1

        except redis.RedisError as e:
            logger.error("Redis rate limit error", extra={"error": str(e), "key": key})
            return True, 0

    @staticmethod
    def _client_ip(request: Request) -> str:
        if "x-forwarded-for" in request.headers:
            return request.headers["x-forwarded-for"].split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    @staticmethod
    def _user_key(request: Request) -> Optional[str]:
        """Rate limit key for the session's user, if a valid token is present."""
        token = request.cookies.get(AUTH_COOKIE_NAME)
        auth_header = request.headers.get("authorization")
        if not token and auth_header and auth_header.lower().startswith("bearer "):
            token = auth_header.split(" ", 1)[1].strip()
        if not token:
            return None

        try:
            identity = decode_access_token(token)
        except AccessDenied:
            # Route dependencies reject the token; limit by IP only
            return None
        return f"user_{identity.id}"

    def _too_many_requests(self, tier: str, limit: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content=error_body(f"Rate limit exceeded for {tier}. Maximum {limit} requests per minute."),
            headers={"Retry-After": str(self.window_seconds)}
        )

    async def dispatch(self, request: Request, call_next):
        client_ip = self._client_ip(request)
        user_id = self._user_key(request)

        # The Redis client is synchronous; keep its round trips off the event loop
        ip_allowed, ip_count = await run_in_threadpool(
            self._check_rate_limit,
            f"rate:ip:{client_ip}",
            self.requests_per_minute_ip,
            self.window_seconds
        )
        if not ip_allowed:
            rate_limit_exceeded_counter.add(1, {"limit_type": "ip"})
            logger.warning("Rate limit exceeded for IP", extra={
                "client_ip": client_ip,
                "count": ip_count,
                "limit": self.requests_per_minute_ip
            })
            return self._too_many_requests("IP", self.requests_per_minute_ip)

        if user_id:
            user_allowed, user_count = await run_in_threadpool(
                self._check_rate_limit,
                f"rate:user:{user_id}",
                self.requests_per_minute_user,
                self.window_seconds
            )
            if not user_allowed:
                rate_limit_exceeded_counter.add(1, {"limit_type": "user"})
                logger.warning("Rate limit exceeded for user", extra={
                    "rate_key": user_id,
                    "count": user_count,
                    "limit": self.requests_per_minute_user
                })
                return self._too_many_requests("user", self.requests_per_minute_user)

        response = await call_next(request)

        await run_in_threadpool(self._detect_suspicious_activity, response.status_code, client_ip)

        return response

    def _record_failure(self, kind: str, client_ip: str) -> int:
        """Add a failed response to the client's window and return the window's count."""
        current_time = time.time()
        key = f"suspicious:{kind}:{client_ip}"
        self.redis.zadd(key, {str(current_time): current_time})
        self.redis.expire(key, SUSPICIOUS_WINDOW_SECONDS + 1)
        return self.redis.zcount(key, current_time - SUSPICIOUS_WINDOW_SECONDS, current_time)

    def _detect_suspicious_activity(self, status_code: int, client_ip: str) -> None:
        """
        Flag clients whose recent failures look like abuse.

        Patterns within a five minute window:
        - Credential stuffing: 5+ 401 responses
        - Endpoint scanning: 10+ 404 responses
        - Abuse: 20+ 4xx responses
        """
        if not 400 <= status_code < 500:
            return

        patterns = []
        if status_code == 401:
            patterns.append(("401", 5, "credential_stuffing"))
        if status_code == 404:
            patterns.append(("404", 10, "endpoint_scanning"))
        patterns.append(("4xx", 20, "abuse"))

        try:
            for kind, threshold, activity in patterns:
                count = self._record_failure(kind, client_ip)
                if count >= threshold:
                    suspicious_activity_counter.add(1, {"type": activity})
                    logger.warning("Suspicious activity detected", extra={
                        "activity": activity,
                        "client_ip": client_ip,
                        "count": count
                    })
        except redis.RedisError as e:
            logger.error("Error detecting suspicious activity", extra={"error": str(e)})
