"""Tests for report caching.

Redis is replaced by an in-memory stand-in exposing the handful of
commands the cache layer uses.
"""

import fnmatch
from datetime import date

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from clinicdesk.config import settings
from clinicdesk.utils import cache as cache_module
from clinicdesk.utils.cache import cache_key, cached, invalidate_cache


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)
            self.ttls.pop(key, None)

    async def ping(self):
        return True


class BrokenRedis:
    async def get(self, key):
        raise RedisConnectionError("connection refused")

    async def scan_iter(self, match="*"):
        raise RedisConnectionError("connection refused")
        yield  # pragma: no cover

    async def ping(self):
        raise RedisConnectionError("connection refused")


@pytest_asyncio.fixture
async def fake_redis(monkeypatch):
    fake = FakeRedis()

    async def _get_redis():
        return fake

    monkeypatch.setattr(settings, "cache_enabled", True)
    monkeypatch.setattr(cache_module, "get_redis", _get_redis)
    monkeypatch.setattr("clinicdesk.routers.health.get_redis", _get_redis)
    return fake


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheUtility:

    async def test_cache_key_generation(self):
        key1 = cache_key(limit=50, offset=0)
        key2 = cache_key(offset=0, limit=50)
        key3 = cache_key(limit=100, offset=0)

        assert key1 == key2
        assert key1 != key3
        assert cache_key() == "default"

    async def test_cached_decorator(self, fake_redis):
        call_count = 0

        @cached(ttl=10, prefix="test")
        async def expensive_function(db, *, clinic_id: str, start: date):
            nonlocal call_count
            call_count += 1
            return {"clinic": clinic_id, "start": start.isoformat()}

        result1 = await expensive_function(object(), clinic_id="c1", start=date(2026, 1, 1))
        result2 = await expensive_function(object(), clinic_id="c1", start=date(2026, 1, 1))
        result3 = await expensive_function(object(), clinic_id="c2", start=date(2026, 1, 1))

        assert result1 == result2 == {"clinic": "c1", "start": "2026-01-01"}
        assert result3["clinic"] == "c2"
        assert call_count == 2
        assert set(fake_redis.ttls.values()) == {10}

    async def test_default_ttl_from_settings(self, fake_redis):
        @cached(prefix="test")
        async def report(*, n: int):
            return {"n": n}

        await report(n=1)

        assert list(fake_redis.ttls.values()) == [settings.cache_ttl_seconds]
        assert settings.cache_ttl_seconds == 300

    async def test_cache_invalidation(self, fake_redis):
        fake_redis.store.update({
            "reports:payment_summary:abc": "1",
            "reports:revenue_report:def": "2",
            "other:func:xyz": "3",
        })

        await invalidate_cache("reports:*")

        assert list(fake_redis.store) == ["other:func:xyz"]

    async def test_disabled_cache_bypasses_redis(self, monkeypatch):
        async def _fail():
            raise AssertionError("Redis must not be touched when caching is disabled")

        monkeypatch.setattr(settings, "cache_enabled", False)
        monkeypatch.setattr(cache_module, "get_redis", _fail)
        call_count = 0

        @cached(prefix="test")
        async def report(*, n: int):
            nonlocal call_count
            call_count += 1
            return {"n": n}

        await report(n=1)
        await report(n=1)
        await invalidate_cache("test:*")

        assert call_count == 2

    async def test_redis_failure_falls_back_to_uncached(self, monkeypatch):
        broken = BrokenRedis()

        async def _get_redis():
            return broken

        monkeypatch.setattr(settings, "cache_enabled", True)
        monkeypatch.setattr(cache_module, "get_redis", _get_redis)

        @cached(prefix="test")
        async def report(*, n: int):
            return {"n": n}

        assert await report(n=7) == {"n": 7}
        await invalidate_cache("test:*")


@pytest.mark.cache
@pytest.mark.api
@pytest.mark.asyncio
class TestReportCaching:

    async def test_summary_cached_then_invalidated_by_payment(
        self, client, admin_headers, order, fake_redis
    ):
        first = await client.get("/api/reports/payments/summary", headers=admin_headers)
        assert first.json()["totals"]["outstanding"] == 220.0
        assert any(k.startswith("reports:payment_summary:") for k in fake_redis.store)

        cached_again = await client.get("/api/reports/payments/summary", headers=admin_headers)
        assert cached_again.json() == first.json()

        await client.post(
            "/api/payments/",
            json={"order_id": order["id"], "amount": "100", "method": "cash"},
            headers=admin_headers,
        )
        assert not any(k.startswith("reports:") for k in fake_redis.store)

        fresh = await client.get("/api/reports/payments/summary", headers=admin_headers)
        assert fresh.json()["totals"]["outstanding"] == 120.0

    async def test_readiness_checks_redis(self, client, fake_redis):
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"] == {"service": "ok", "database": "ok", "redis": "ok"}


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_liveness(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["service"] == "ClinicDesk"

    async def test_readiness_without_cache(self, client):
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["redis"] == "disabled"
