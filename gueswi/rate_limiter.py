"""
Fixed-window rate limiting for the public and auth endpoints

Counts are kept per process and pushed to Redis every few seconds so that
a restarted worker picks up where the window left off. Any failure denies
the request.
"""

import logging
import time
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import HTTPException, Request, status

from . import config

logger = logging.getLogger(__name__)

_redis: Optional[redis.Redis] = None

SYNC_INTERVAL = 10
PRUNE_INTERVAL = 60


def get_redis_client() -> redis.Redis:
    """Shared Redis connection for the cache and the limiter"""
    global _redis
    if _redis is None:
        host = config.REDIS_URL.rsplit("@", 1)[-1]
        logger.info(f"📡 Connecting to Redis at {host}")
        client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=10,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
        logger.info("✅ Redis connected")
        _redis = client
    return _redis


class WindowCounter:
    """In-memory request counters, mirrored to Redis

    Each key maps to [count, window_end, last_sync].
    """

    def __init__(self, sync_interval: int = SYNC_INTERVAL):
        self.sync_interval = sync_interval
        self.windows: dict[str, list[int]] = {}
        self.lock = Lock()
        self._last_prune = 0

    def _prune(self, now: int):
        if now - self._last_prune < PRUNE_INTERVAL:
            return
        expired = [key for key, window in self.windows.items() if window[1] <= now]
        for key in expired:
            del self.windows[key]
        if expired:
            logger.debug(f"🧹 Pruned {len(expired)} rate limit windows")
        self._last_prune = now

    def _load(self, key: str, now: int, window_seconds: int, backend: Optional[redis.Redis]) -> list[int]:
        window = [0, now + window_seconds, now]
        if backend is not None:
            try:
                stored, ttl = backend.get(key), backend.ttl(key)
                if stored and ttl > 0:
                    window = [int(stored), now + ttl, now]
            except redis.RedisError as e:
                logger.warning(f"⚠️ Could not read {key} from Redis: {e}")
        return window

    def hit(
        self, key: str, limit: int, window_seconds: int, backend: Optional[redis.Redis] = None
    ) -> tuple[bool, int, int]:
        """Count one request against `key`

        Returns (allowed, count, seconds until the window resets).
        """
        now = int(time.time())
        with self.lock:
            self._prune(now)
            window = self.windows.get(key)
            if window is None:
                window = self.windows[key] = self._load(key, now, window_seconds, backend)
            elif now >= window[1]:
                window[:] = [0, now + window_seconds, 0]

            allowed = window[0] < limit
            if allowed:
                window[0] += 1

            if backend is not None and now - window[2] >= self.sync_interval:
                try:
                    backend.set(key, window[0], ex=window_seconds)
                    window[2] = now
                except redis.RedisError as e:
                    logger.warning(f"⚠️ Could not sync {key} to Redis: {e}")

            return allowed, window[0], max(0, window[1] - now)


counter = WindowCounter()


def client_ip_from_request(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", per_ip: bool = True
) -> Callable:
    """Build a dependency allowing `limit` requests per window

        login_rate_limit = create_rate_limiter(limit=10, window_seconds=60, key_prefix="login")

        @router.post("/login")
        async def login(data: LoginRequest, _: None = Depends(login_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return

        scope = client_ip_from_request(request) if per_ip else "global"
        key = f"{key_prefix}:{scope}"
        try:
            allowed, count, retry_after = counter.hit(key, limit, window_seconds, get_redis_client())
        except Exception as e:
            logger.error(f"❌ Rate limiter unavailable, denying {key}: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Rate limiting service temporarily unavailable",
            ) from e

        if not allowed:
            logger.warning(f"🚫 Rate limit hit for {key} ({count}/{limit})")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

    return rate_limiter
