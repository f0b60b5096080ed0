"""
Short-lived Redis cache for analytics payloads served to dashboards.

Dashboards tolerate read-committed staleness, so a snapshot is kept for
ANALYTICS_CACHE_TTL seconds and dropped whenever a submission of the
assessment changes. Redis failures degrade to cache misses.
"""
import hashlib
import json
import logging
from typing import Any, Optional

import redis

from tutorhub.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def set_redis(client: Optional[redis.Redis]) -> None:
    global _client
    _client = client


def cache_enabled() -> bool:
    return settings.ANALYTICS_CACHE_TTL > 0


def analytics_key(assessment_id: int, filters: dict) -> str:
    digest = hashlib.md5(json.dumps(filters, sort_keys=True, default=str).encode()).hexdigest()
    return f"analytics:{assessment_id}:{digest}"


def _index_key(assessment_id: int) -> str:
    return f"analytics:{assessment_id}:keys"


def get_cached_analytics(assessment_id: int, filters: dict) -> Optional[dict]:
    if not cache_enabled():
        return None
    try:
        raw = get_redis().get(analytics_key(assessment_id, filters))
    except redis.RedisError as e:
        logger.error(f"Cache get error: {e}")
        return None
    return json.loads(raw) if raw else None


def store_analytics(assessment_id: int, filters: dict, payload: Any) -> None:
    if not cache_enabled():
        return
    key = analytics_key(assessment_id, filters)
    try:
        pipe = get_redis().pipeline()
        pipe.set(key, json.dumps(payload, default=str), ex=settings.ANALYTICS_CACHE_TTL)
        pipe.sadd(_index_key(assessment_id), key)
        pipe.expire(_index_key(assessment_id), settings.ANALYTICS_CACHE_TTL)
        pipe.execute()
    except redis.RedisError as e:
        logger.error(f"Cache set error: {e}")


def invalidate_analytics(assessment_id: int) -> None:
    if not cache_enabled():
        return
    try:
        client = get_redis()
        keys = client.smembers(_index_key(assessment_id))
        if keys:
            client.delete(*keys)
        client.delete(_index_key(assessment_id))
    except redis.RedisError as e:
        logger.error(f"Cache delete error: {e}")
