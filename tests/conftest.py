import pytest

from app.config import settings
from app.services.cache.store import MemoryCacheStore, set_cache_store
from app.services.redis_client import CacheRedisClient


class FakeRedis:
    """Stands in for redis.asyncio.Redis; records values and expiries."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("redis down")

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(key)

    async def delete(self, *keys: str) -> int:
        self._check()
        return sum(self.store.pop(key, None) is not None for key in keys)

    async def ping(self) -> bool:
        self._check()
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_cache_client(fake_redis):
    return CacheRedisClient(client=fake_redis)


@pytest.fixture(autouse=True)
def memory_store():
    """Every test gets a fresh process-wide cache store."""
    store = MemoryCacheStore()
    set_cache_store(store)
    yield store
    set_cache_store(None)


@pytest.fixture
def sendgrid_api_key(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", "SG.test-key")
    return "SG.test-key"


@pytest.fixture
def no_sendgrid_api_key(monkeypatch):
    monkeypatch.setattr(settings, "SENDGRID_API_KEY", None)
