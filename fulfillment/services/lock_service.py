# fulfillment/services/lock_service.py
from typing import Optional
from uuid import uuid4

import redis

from fulfillment.utils.retry import redis_retry
from fulfillment.utils.settings import REDIS_URL, CHECKOUT_LOCK_TTL_SECONDS
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete in one atomic step, so only the holder can release
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


def checkout_lock_key(customer_id: int) -> str:
    return f"checkout:{customer_id}:lock"


class LockService:
    """
    Short-lived per-customer checkout lock.

    Rejects a duplicate submission while the first one is still running.
    Stock and cart consistency never depend on it; the lock expires after
    the TTL if its holder dies.
    """

    def __init__(self, url: str | None = None, ttl: int = CHECKOUT_LOCK_TTL_SECONDS):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @redis_retry()
    def acquire_checkout_lock(self, customer_id: int) -> Optional[str]:
        key = checkout_lock_key(customer_id)
        token = uuid4().hex
        logger.info(f"Acquire lock {key}")
        # SET checkout:7:lock <token> NX EX 30
        acquired = self.redis.set(name=key, value=token, nx=True, ex=self.ttl)
        return token if acquired else None

    @redis_retry()
    def release_checkout_lock(self, customer_id: int, token: str) -> bool:
        key = checkout_lock_key(customer_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
