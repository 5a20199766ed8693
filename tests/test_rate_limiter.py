import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from eshop.config import settings
from eshop.services.rate_limiter import InMemoryCounterStore, RateLimiter, RateLimiters, RedisCounterStore


class FakeClock:
    def __init__(self, now_ms: float = 1_000_000):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCounterStore()


class TestRateLimiter:
    async def test_rejects_after_quota(self, store, clock):
        limiter = RateLimiter("order", 5, 60_000, store, clock=clock)

        results = [await limiter.is_allowed("1.2.3.4") for _ in range(6)]

        assert results == [True] * 5 + [False]

    async def test_new_window_after_expiry(self, store, clock):
        limiter = RateLimiter("order", 5, 60_000, store, clock=clock)
        for _ in range(6):
            await limiter.is_allowed("1.2.3.4")

        clock.advance(60_001)

        results = [await limiter.is_allowed("1.2.3.4") for _ in range(6)]
        assert results == [True] * 5 + [False]

    async def test_window_boundary_is_inclusive(self, store, clock):
        limiter = RateLimiter("order", 1, 60_000, store, clock=clock)
        assert await limiter.is_allowed("k")

        clock.advance(60_000)
        assert not await limiter.is_allowed("k")

    async def test_keys_are_independent(self, store, clock):
        limiter = RateLimiter("customer", 1, 300_000, store, clock=clock)
        assert await limiter.is_allowed("a")
        assert await limiter.is_allowed("b")
        assert not await limiter.is_allowed("a")

    async def test_remaining_time(self, store, clock):
        limiter = RateLimiter("order", 1, 60_000, store, clock=clock)
        assert await limiter.get_remaining_time("k") == 0

        await limiter.is_allowed("k")
        clock.advance(15_000)
        assert await limiter.get_remaining_time("k") == 45_000

    async def test_disabled_limiter_allows_everything(self, store, clock):
        limiter = RateLimiter("order", 1, 60_000, store, clock=clock, enabled=False)
        assert all([await limiter.is_allowed("k") for _ in range(10)])

    async def test_limiters_count_separately(self, store, clock):
        order = RateLimiter("order", 1, 60_000, store, clock=clock)
        admin = RateLimiter("admin", 1, 60_000, store, clock=clock)

        assert await order.is_allowed("k")
        assert await admin.is_allowed("k")
        assert not await order.is_allowed("k")


class TestRateLimiters:
    async def test_from_settings(self, store, clock):
        limiters = RateLimiters.from_settings(settings, store=store, clock=clock)

        assert limiters.order.max_requests == settings.ORDER_RATE_LIMIT
        assert limiters.customer.window_ms == settings.CUSTOMER_RATE_LIMIT_WINDOW_MS
        assert limiters.product.max_requests == settings.PRODUCT_RATE_LIMIT
        assert limiters.admin.max_requests == settings.ADMIN_RATE_LIMIT

    async def test_close_drops_in_memory_counters(self, store, clock):
        limiters = RateLimiters.from_settings(settings, store=store, clock=clock)
        for _ in range(settings.CUSTOMER_RATE_LIMIT):
            await limiters.customer.is_allowed("k")
        assert not await limiters.customer.is_allowed("k")

        await limiters.close()

        assert await limiters.customer.is_allowed("k")


class FakeRedis:
    def __init__(self):
        self.closed = False
        self.deleted = []

    async def delete(self, *keys):
        self.deleted.extend(keys)

    async def aclose(self):
        self.closed = True


class TestRedisCounterStore:
    async def test_close_keeps_shared_counters(self):
        store = RedisCounterStore("redis://localhost:6379/0")
        client = FakeRedis()
        store._client = client

        await store.close()

        assert client.closed
        assert client.deleted == []
        assert store._client is None

    async def test_close_without_connection(self):
        store = RedisCounterStore("redis://localhost:6379/0")
        await store.close()
        assert store._client is None

    async def test_redis_failure_lets_request_through(self):
        store = RedisCounterStore("redis://localhost:6379/0")

        class BrokenRedis:
            async def incr(self, key):
                raise RedisConnectionError("connection refused")

        store._client = BrokenRedis()

        assert await store.hit("ratelimit:order:k", 1, 60_000, 0)
