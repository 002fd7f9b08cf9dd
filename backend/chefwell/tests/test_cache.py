import pytest
import redis

from chefwell.core.cache import CacheLayer, backoff_seconds, cache_key, cache_pattern
from chefwell.core.errors import InvalidNamespace


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_key_convention():
    assert cache_key("tenant_acme", "products", "list") == "tenant_acme:products:list"
    assert cache_key("tenant_acme", "tabs") == "tenant_acme:tabs"
    assert cache_pattern("tenant_acme", "products") == "tenant_acme:products:*"
    assert cache_pattern("tenant_acme") == "tenant_acme:*"
    with pytest.raises(InvalidNamespace):
        cache_key("public", "products")


def test_backoff_is_linear_and_capped():
    assert backoff_seconds(1) == 0.1
    assert backoff_seconds(3) == 0.3
    assert backoff_seconds(50, max_backoff_ms=2000) == 2.0


def test_get_or_set_reads_through(cache):
    calls = []

    def loader():
        calls.append(1)
        return [{"id": 1, "name": "Burger"}]

    first = cache.get_or_set("tenant_acme:products:list", loader)
    second = cache.get_or_set("tenant_acme:products:list", loader)
    assert first == second == [{"id": 1, "name": "Burger"}]
    assert len(calls) == 1


def test_default_ttl_is_applied(cache, fake_redis):
    cache.set("tenant_acme:products:list", [1])
    assert fake_redis.ttls["tenant_acme:products:list"] == 300
    cache.set("tenant_acme:tabs:open", [], ttl_seconds=30)
    assert fake_redis.ttls["tenant_acme:tabs:open"] == 30


def test_invalidate_stays_inside_one_tenant(cache, fake_redis):
    cache.set("tenant_acme:products:list", [1])
    cache.set("tenant_acme:products:list:active", [1])
    cache.set("tenant_acme:tabs:open", [])
    cache.set("tenant_globex:products:list", [2])

    removed = cache.invalidate(cache_pattern("tenant_acme", "products"))

    assert removed == 2
    assert cache.get("tenant_acme:tabs:open") == []
    assert cache.get("tenant_globex:products:list") == [2]


def test_cross_tenant_pattern_is_rejected(cache):
    with pytest.raises(InvalidNamespace):
        cache.invalidate("*:products:*")


def test_connect_gives_up_after_bounded_retries(fake_redis):
    fake_redis.down = True
    sleeps = []
    layer = CacheLayer(client_factory=lambda: fake_redis, sleep=sleeps.append)

    assert layer.connect() is False
    assert not layer.is_available()
    assert sleeps == [0.1, 0.2, 0.3]
    assert fake_redis.calls.count("ping") == 4


def test_unavailable_cache_degrades_to_miss_and_noop(fake_redis):
    fake_redis.down = True
    clock = Clock()
    layer = CacheLayer(client_factory=lambda: fake_redis, sleep=lambda _: None, clock=clock)
    layer.connect()

    assert layer.get("tenant_acme:products:list") is None
    layer.set("tenant_acme:products:list", [1])
    assert layer.invalidate("tenant_acme:products:*") == 0
    assert layer.get_or_set("tenant_acme:products:list", lambda: ["db"]) == ["db"]


def test_operation_failure_marks_unavailable_then_reconnects(fake_redis):
    clock = Clock()
    layer = CacheLayer(client_factory=lambda: fake_redis, sleep=lambda _: None, clock=clock)
    assert layer.connect()

    fake_redis.down = True
    assert layer.get("tenant_acme:products:list") is None
    assert not layer.is_available()

    fake_redis.down = False
    # reconnection is throttled
    clock.now += 1
    assert layer.get("tenant_acme:products:list") is None
    assert not layer.is_available()

    clock.now += 10
    layer.set("tenant_acme:products:list", ["fresh"])
    assert layer.is_available()
    assert layer.get("tenant_acme:products:list") == ["fresh"]


def test_undecodable_entry_is_a_miss(cache, fake_redis):
    fake_redis.store["tenant_acme:products:list"] = "{not json"
    assert cache.get("tenant_acme:products:list") is None


def test_close_disconnects(cache, fake_redis):
    cache.close()
    assert fake_redis.closed
    assert not cache.is_available()


def test_real_client_factory_requires_url():
    with pytest.raises(ValueError):
        CacheLayer()


def test_redis_errors_are_contained(fake_redis):
    def broken():
        raise redis.ConnectionError("no route to host")

    layer = CacheLayer(client_factory=broken, sleep=lambda _: None)
    assert layer.connect() is False
    assert layer.get("tenant_acme:x") is None


def test_malformed_url_leaves_cache_disabled():
    def bad_url():
        raise ValueError("Redis URL must specify one of the following schemes")

    layer = CacheLayer(client_factory=bad_url, sleep=lambda _: None)
    assert layer.connect() is False
    assert not layer.is_available()
    assert layer.get_or_set("tenant_acme:products:list", lambda: ["db"]) == ["db"]


def test_undecodable_reply_is_a_miss(cache, fake_redis, monkeypatch):
    def garbled(key):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(fake_redis, "get", garbled)
    assert cache.get("tenant_acme:products:list") is None
    assert not cache.is_available()
