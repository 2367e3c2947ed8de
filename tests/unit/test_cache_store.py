import pytest

from app.config import settings
from app.services.cache.store import (
    FreshnessPolicy,
    MemoryCacheStore,
    RedisCacheStore,
    get_cache_store,
    set_cache_store,
)
from app.services.redis_client import CacheRedisClient


def test_freshness_policy_classifies_age():
    policy = FreshnessPolicy(max_age_seconds=3600, stale_after_seconds=600)

    assert policy.classify(0) == "fresh"
    assert policy.classify(600) == "fresh"
    assert policy.classify(601) == "stale"
    assert policy.classify(3599) == "stale"
    assert policy.classify(3600) == "expired"
    assert policy.classify(None) == "expired"
    assert policy.classify(-5) == "expired"


def test_freshness_policy_rejects_inverted_thresholds():
    with pytest.raises(ValueError):
        FreshnessPolicy(max_age_seconds=10, stale_after_seconds=20)


@pytest.mark.asyncio
async def test_memory_store_round_trip_is_a_copy():
    store = MemoryCacheStore()
    document = {"items": [1, 2]}

    await store.write("k", document)
    document["items"].append(3)

    assert await store.read("k") == {"items": [1, 2]}
    assert await store.clear("k") is True
    assert await store.read("k") is None
    assert await store.clear("k") is False


@pytest.mark.asyncio
async def test_redis_store_serializes_json(fake_redis, redis_cache_client):
    store = RedisCacheStore(redis_cache_client, ttl_s=60)

    await store.write("sagan_segments", [{"id": "1", "name": "VIPs"}])

    assert fake_redis.store["sagan_segments"] == '[{"id": "1", "name": "VIPs"}]'
    assert fake_redis.ttls["sagan_segments"] == 60
    assert await store.read("sagan_segments") == [{"id": "1", "name": "VIPs"}]


@pytest.mark.asyncio
async def test_redis_store_discards_unreadable_documents(fake_redis, redis_cache_client):
    fake_redis.store["broken"] = "{not json"
    store = RedisCacheStore(redis_cache_client)

    assert await store.read("broken") is None


def test_get_cache_store_defaults_to_memory(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", None)
    set_cache_store(None)

    assert isinstance(get_cache_store(), MemoryCacheStore)


@pytest.mark.asyncio
async def test_redis_store_without_ttl_never_expires(fake_redis, redis_cache_client):
    store = RedisCacheStore(redis_cache_client)

    assert await store.write("sagan_visible_columns", ["email"]) is True

    assert fake_redis.ttls["sagan_visible_columns"] is None
    assert await store.clear("sagan_visible_columns") is True
    assert await store.clear("sagan_visible_columns") is False


@pytest.mark.asyncio
async def test_redis_failures_read_as_misses(fake_redis, redis_cache_client):
    fake_redis.fail = True
    store = RedisCacheStore(redis_cache_client)

    assert await store.read("sagan_contacts") is None
    assert await store.write("sagan_contacts", []) is False
    assert await store.clear("sagan_contacts") is False
    assert await store.ping() is False


def test_cache_client_reports_configuration(monkeypatch, fake_redis):
    monkeypatch.setattr(settings, "REDIS_URL", None)

    assert CacheRedisClient().configured is False
    assert CacheRedisClient(url="redis://cache:6379/0").configured is True
    assert CacheRedisClient(client=fake_redis).configured is True
