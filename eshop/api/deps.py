from typing import Annotated, Callable
import math
import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from eshop.config import settings
from eshop.database import get_db
from eshop.core.exceptions import RateLimitExceededError
from eshop.services.rate_limiter import RateLimiter, RateLimiters


logger = logging.getLogger(__name__)


def get_rate_limiters(request: Request) -> RateLimiters:
    """Limiters created with the application (see eshop.main.create_app)."""
    return request.app.state.rate_limiters


def get_client_key(request: Request) -> str:
    """
    Identify the caller for rate limiting.

    X-Forwarded-For is honoured only for connections from one of
    settings.TRUSTED_PROXIES.
    """
    peer = request.client.host if request.client else None
    if peer and peer in settings.TRUSTED_PROXIES:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return peer or "unknown"


def rate_limit(select_limiter: Callable[[RateLimiters], RateLimiter]):
    """
    Dependency factory rejecting callers over a limiter's quota.

    Usage:
        @router.post("", dependencies=[Depends(rate_limit(lambda l: l.product))])
    """
    async def check(
        limiters: Annotated[RateLimiters, Depends(get_rate_limiters)],
        client_key: Annotated[str, Depends(get_client_key)],
    ) -> None:
        limiter = select_limiter(limiters)
        if not await limiter.is_allowed(client_key):
            remaining_ms = await limiter.get_remaining_time(client_key)
            retry_after = math.ceil(remaining_ms / 1000)
            raise RateLimitExceededError(
                f"Too many requests. Try again in {retry_after} seconds.",
                retry_after=retry_after,
            )

    return check


DB = Annotated[AsyncSession, Depends(get_db)]
Limiters = Annotated[RateLimiters, Depends(get_rate_limiters)]
ClientKey = Annotated[str, Depends(get_client_key)]

AdminRateLimit = Depends(rate_limit(lambda limiters: limiters.admin))
ProductRateLimit = Depends(rate_limit(lambda limiters: limiters.product))
CustomerRateLimit = Depends(rate_limit(lambda limiters: limiters.customer))
