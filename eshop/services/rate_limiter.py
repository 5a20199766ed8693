"""
Fixed-window rate limiting for storefront and admin endpoints.

Supports:
1. Redis counters (shared across server instances)
2. In-memory counters (single process, reset on restart)

Usage:
    limiters = RateLimiters.from_settings(settings)
    app.state.rate_limiters = limiters

    if not await limiters.order.is_allowed(client_ip):
        wait_ms = await limiters.order.get_remaining_time(client_ip)

A window opens on the first request for a key. Within the window the key
may make ``max_requests`` requests; once ``now - window_start`` exceeds
``window_ms`` the next request opens a new window with count 1.
"""
import time
from typing import Callable, Dict, Optional, Tuple
from abc import ABC, abstractmethod
import asyncio
import logging

from redis.exceptions import RedisError

from eshop.config import Settings

logger = logging.getLogger(__name__)


Clock = Callable[[], float]


def wall_clock_ms() -> float:
    return time.time() * 1000


class CounterStore(ABC):
    """Abstract counter store interface."""

    @abstractmethod
    async def hit(self, key: str, max_requests: int, window_ms: int, now_ms: float) -> bool:
        """Count a request for ``key``; False when the window is exhausted."""
        pass

    @abstractmethod
    async def remaining_ms(self, key: str, window_ms: int, now_ms: float) -> int:
        """Milliseconds until the window of ``key`` resets (0 if none is open)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release what this process holds. Counters shared with other instances stay."""
        pass


class InMemoryCounterStore(CounterStore):
    """
    In-memory counters for development and single-process deployments.

    Note: counters are not shared between server instances; use Redis
    when running more than one.
    """

    def __init__(self):
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, max_requests: int, window_ms: int, now_ms: float) -> bool:
        async with self._lock:
            record = self._windows.get(key)
            if record is None or now_ms - record[1] > window_ms:
                self._windows[key] = (1, now_ms)
                return True

            count, window_start = record
            if count >= max_requests:
                return False

            self._windows[key] = (count + 1, window_start)
            return True

    async def remaining_ms(self, key: str, window_ms: int, now_ms: float) -> int:
        async with self._lock:
            record = self._windows.get(key)
            if record is None:
                return 0
            return max(0, int(window_ms - (now_ms - record[1])))

    async def close(self) -> None:
        async with self._lock:
            self._windows.clear()


class RedisCounterStore(CounterStore):
    """
    Redis counters for multi-instance deployments.

    INCR creates the key, PEXPIRE on the first hit closes the window. The
    clock argument is ignored; Redis expiry decides when a window ends.
    Redis failures are logged and the request is let through.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    async def _get_client(self):
        if self._client is None:
            import redis.asyncio as redis
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def hit(self, key: str, max_requests: int, window_ms: int, now_ms: float) -> bool:
        try:
            client = await self._get_client()
            count = await client.incr(key)
            if count == 1:
                await client.pexpire(key, window_ms)
            return count <= max_requests
        except RedisError as e:
            logger.warning(f"Rate limit check failed for {key}, allowing request: {e}")
            return True

    async def remaining_ms(self, key: str, window_ms: int, now_ms: float) -> int:
        try:
            client = await self._get_client()
            ttl = await client.pttl(key)
            return max(0, ttl)
        except RedisError as e:
            logger.warning(f"Rate limit TTL lookup failed for {key}: {e}")
            return 0

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class RateLimiter:
    """One named fixed-window limiter (e.g. order submission: 5 per minute)."""

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_ms: int,
        store: CounterStore,
        clock: Clock = wall_clock_ms,
        enabled: bool = True,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._store = store
        self._clock = clock
        self.enabled = enabled

    def _key(self, key: str) -> str:
        return f"ratelimit:{self.name}:{key}"

    async def is_allowed(self, key: str) -> bool:
        if not self.enabled:
            return True
        allowed = await self._store.hit(self._key(key), self.max_requests, self.window_ms, self._clock())
        if not allowed:
            logger.warning(f"[SECURITY] Rate limit '{self.name}' exceeded for {key}")
        return allowed

    async def get_remaining_time(self, key: str) -> int:
        """Milliseconds until ``key`` may make requests again."""
        return await self._store.remaining_ms(self._key(key), self.window_ms, self._clock())


class RateLimiters:
    """
    The limiters of one application instance.

    Created with the app and kept on ``app.state.rate_limiters``; request
    handlers reach it through ``eshop.api.deps``.
    """

    def __init__(
        self,
        order: RateLimiter,
        customer: RateLimiter,
        product: RateLimiter,
        admin: RateLimiter,
        store: Optional[CounterStore] = None,
    ):
        self.order = order
        self.customer = customer
        self.product = product
        self.admin = admin
        self.store = store

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[CounterStore] = None,
        clock: Clock = wall_clock_ms,
    ) -> "RateLimiters":
        if store is None:
            if settings.REDIS_URL:
                store = RedisCounterStore(settings.REDIS_URL)
                logger.info("Rate limiter initialized with Redis backend")
            else:
                store = InMemoryCounterStore()
                logger.info("Rate limiter initialized with in-memory backend")

        def build(name: str, max_requests: int, window_ms: int) -> RateLimiter:
            return RateLimiter(
                name, max_requests, window_ms, store,
                clock=clock, enabled=settings.RATE_LIMIT_ENABLED,
            )

        return cls(
            order=build("order", settings.ORDER_RATE_LIMIT, settings.ORDER_RATE_LIMIT_WINDOW_MS),
            customer=build("customer", settings.CUSTOMER_RATE_LIMIT, settings.CUSTOMER_RATE_LIMIT_WINDOW_MS),
            product=build("product", settings.PRODUCT_RATE_LIMIT, settings.PRODUCT_RATE_LIMIT_WINDOW_MS),
            admin=build("admin", settings.ADMIN_RATE_LIMIT, settings.ADMIN_RATE_LIMIT_WINDOW_MS),
            store=store,
        )

    async def close(self) -> None:
        """Called on shutdown. Redis counters outlive this instance."""
        if self.store is not None:
            await self.store.close()
