import fnmatch

import pytest
import redis
from fastapi.testclient import TestClient

from chefwell.core.cache import CacheLayer
from chefwell.core.config import Settings
from chefwell.core.database import build_engine, build_session_factory, init_db
from chefwell.core.tenant_pool import TenantConnectionPool
from chefwell.main import create_app


class FakeRedis:
    """In-memory stand-in for the handful of redis-py calls the cache makes."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.down = False
        self.closed = False
        self.calls = []

    def _check(self, name):
        self.calls.append(name)
        if self.down:
            raise redis.ConnectionError("connection refused")

    def ping(self):
        self._check("ping")
        return True

    def get(self, key):
        self._check("get")
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self._check("setex")
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def scan_iter(self, match=None, count=None):
        self._check("scan_iter")
        return [k for k in list(self.store) if match is None or fnmatch.fnmatchcase(k, match)]

    def delete(self, *keys):
        self._check("delete")
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def close(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    layer = CacheLayer(client_factory=lambda: fake_redis, sleep=lambda _: None)
    layer.connect()
    return layer


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine, "test")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def pool(engine):
    pool = TenantConnectionPool(engine)
    yield pool
    pool.close_all()


@pytest.fixture
def handle(pool):
    pool.create_namespace("tenant_acme")
    return pool.get_handle("tenant_acme")


@pytest.fixture
def test_settings():
    return Settings(
        env="test",
        database_url="sqlite://",
        scheduler_enabled=False,
        backend_cors_origins="",
    )


@pytest.fixture
def client(test_settings, fake_redis):
    app = create_app(test_settings, cache_client_factory=lambda: fake_redis)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def tenant_headers(client):
    r = client.post("/admin/tenants", json={"name": "Acme Bistro", "slug": "acme"})
    assert r.status_code == 201
    return {"X-Tenant-ID": r.json()["namespace"]}
