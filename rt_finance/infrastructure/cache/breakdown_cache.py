"""Redis cache for per-period breakdown views"""

import json
import logging
from datetime import date
from typing import Any, Optional

import redis

from rt_finance.config import settings
from rt_finance.infrastructure.observability.metrics import breakdown_cache_counter
from rt_finance.utils.date_utils import parse_period, current_period

logger = logging.getLogger(__name__)


def breakdown_key(period: str) -> str:
    year, month = parse_period(period)
    return f"breakdown:{year:04d}:{month:02d}"


def breakdown_ttl(period: str, today: Optional[date] = None) -> int:
    """Current month stays fresh for an hour; past months rarely change"""
    if period == current_period(today):
        return settings.breakdown_ttl_current_seconds
    return settings.breakdown_ttl_past_seconds


class BreakdownCache:
    """
    JSON cache keyed by period.

    Redis failures are logged and reported as misses; they never fail the
    request that triggered them.
    """

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str | None = None) -> "BreakdownCache":
        return cls(redis.Redis.from_url(url or settings.redis_url, decode_responses=True))

    def get(self, period: str) -> Optional[Any]:
        key = breakdown_key(period)
        try:
            cached = self.redis.get(key)
        except redis.RedisError as e:
            breakdown_cache_counter.labels(result="error").inc()
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if cached is None:
            breakdown_cache_counter.labels(result="miss").inc()
            return None

        breakdown_cache_counter.labels(result="hit").inc()
        return json.loads(cached)

    def set(self, period: str, value: Any, today: Optional[date] = None) -> None:
        key = breakdown_key(period)
        try:
            self.redis.setex(key, breakdown_ttl(period, today), json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def invalidate(self, period: str) -> None:
        key = breakdown_key(period)
        try:
            self.redis.delete(key)
            logger.info("Invalidated breakdown cache", extra={"cache_key": key})
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")
