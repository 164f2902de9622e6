"""
Short-lived Redis cache for dashboard counters and pipeline metrics
A Redis outage only ever costs a recomputation
"""
import json
import logging
from typing import Any, Optional

from . import config
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

DASHBOARD_STATS_TTL = 30
PIPELINE_METRICS_TTL = 60


class Cache:
    """JSON values in Redis, keyed per tenant"""

    def __init__(self):
        self.redis_client = None

    def _client(self):
        if not config.CACHE_ENABLED:
            return None
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        client = self._client()
        if client is None:
            return None
        try:
            raw = client.get(key)
        except Exception as e:
            logger.error(f"❌ Cache read failed for {key}: {e}")
            return None
        logger.debug(f"{'✅ Cache hit' if raw else 'Cache miss'}: {key}")
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        client = self._client()
        if client is None:
            return False
        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            return True
        except Exception as e:
            logger.error(f"❌ Cache write failed for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self._client()
        if client is None:
            return False
        try:
            client.delete(key)
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete failed for {key}: {e}")
            return False


cache = Cache()


def dashboard_stats_key(tenant_id: str) -> str:
    return f"dashboard_stats:{tenant_id}"


def pipeline_metrics_key(tenant_id: str, pipeline_id: str) -> str:
    return f"pipeline_metrics:{tenant_id}:{pipeline_id}"


def invalidate_dashboard_stats(tenant_id: str) -> bool:
    """Drop cached dashboard counters after extensions or calls change"""
    return cache.delete(dashboard_stats_key(tenant_id))


def invalidate_pipeline_metrics(tenant_id: str, pipeline_id: Optional[str]) -> bool:
    """Drop cached metrics after a lead or stage change in the pipeline"""
    if not pipeline_id:
        return False
    return cache.delete(pipeline_metrics_key(tenant_id, pipeline_id))
