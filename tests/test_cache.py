import pytest
import redis

from tutorhub.core import cache
from tutorhub.core.config import settings


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.sets = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value

    def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)

    def expire(self, key, ttl):
        pass

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def delete(self, *keys):
        for k in keys:
            self.data.pop(k, None)
            self.sets.pop(k, None)

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        return [getattr(self.client, name)(*args, **kwargs) for name, args, kwargs in self.ops]


class BrokenRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("down")
        return fail


@pytest.fixture
def fake_redis(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(settings, "ANALYTICS_CACHE_TTL", 60)
    cache.set_redis(client)
    yield client
    cache.set_redis(None)


def test_store_get_and_invalidate(fake_redis):
    filters = {"status": None, "participant": "child", "search": None}
    assert cache.get_cached_analytics(1, filters) is None
    cache.store_analytics(1, filters, {"passing_rate": 75.0})
    cache.store_analytics(2, filters, {"passing_rate": 10.0})
    assert cache.get_cached_analytics(1, filters) == {"passing_rate": 75.0}
    assert cache.get_cached_analytics(1, {**filters, "participant": None}) is None

    cache.invalidate_analytics(1)
    assert cache.get_cached_analytics(1, filters) is None
    assert cache.get_cached_analytics(2, filters) == {"passing_rate": 10.0}


def test_disabled_cache_never_touches_redis(monkeypatch):
    monkeypatch.setattr(settings, "ANALYTICS_CACHE_TTL", 0)
    cache.set_redis(BrokenRedis())
    try:
        cache.store_analytics(1, {}, {"x": 1})
        assert cache.get_cached_analytics(1, {}) is None
        cache.invalidate_analytics(1)
    finally:
        cache.set_redis(None)


def test_redis_errors_degrade_to_misses(monkeypatch, caplog):
    monkeypatch.setattr(settings, "ANALYTICS_CACHE_TTL", 60)
    cache.set_redis(BrokenRedis())
    try:
        cache.store_analytics(1, {}, {"x": 1})
        assert cache.get_cached_analytics(1, {}) is None
        cache.invalidate_analytics(1)
    finally:
        cache.set_redis(None)
    assert "Cache get error" in caplog.text


def test_analytics_key_is_stable():
    assert cache.analytics_key(3, {"a": 1, "b": 2}) == cache.analytics_key(3, {"b": 2, "a": 1})
    assert cache.analytics_key(3, {"a": 1}) != cache.analytics_key(4, {"a": 1})
