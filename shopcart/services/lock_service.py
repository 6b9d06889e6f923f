# shopcart/services/lock_service.py
import uuid
from contextlib import contextmanager

import redis
from redis.exceptions import RedisError
from tenacity import Retrying, stop_after_delay, wait_fixed, retry_if_result

from shopcart.exceptions import ConcurrencyConflictError, TransientCartError
from shopcart.utils.retry import redis_retry
from shopcart.utils.settings import REDIS_URL, CART_LOCK_TTL_SECONDS, CART_LOCK_WAIT_SECONDS
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje lua atomowo, nikt nie wcisnie sie miedzy GET a DEL


class CartLockService:
    """
    Advisory per-cart lock serializing write phases across processes.
    The optimistic version check in the store stays the source of truth.
    """

    def __init__(
        self,
        url: str | None = None,
        ttl: int = CART_LOCK_TTL_SECONDS,
        wait: float = CART_LOCK_WAIT_SECONDS,
        client: redis.Redis | None = None,
    ):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl
        self.wait = wait

    @staticmethod
    def _key(cart_id: str) -> str:
        return f"cart:{cart_id}:lock"

    @redis_retry()
    def acquire(self, cart_id: str, owner: str) -> bool:
        key = self._key(cart_id)
        #SET cart:abc:lock "<owner>" NX EX 10
        return bool(self.redis.set(name=key, value=owner, nx=True, ex=self.ttl))

    @redis_retry()
    def release(self, cart_id: str, owner: str) -> bool:
        res = self.redis.eval(_RELEASE_LUA, 1, self._key(cart_id), owner)
        return bool(res)

    def _acquire_waiting(self, cart_id: str, owner: str) -> bool:
        retrying = Retrying(
            stop=stop_after_delay(self.wait),
            wait=wait_fixed(0.05),
            retry=retry_if_result(lambda acquired: not acquired),
            retry_error_callback=lambda state: False,
        )
        return retrying(self.acquire, cart_id, owner)

    @contextmanager
    def hold(self, *cart_ids: str):
        """Hold the locks of all given carts, taken in sorted order."""
        owner = str(uuid.uuid4())
        held = []
        try:
            for cart_id in sorted(set(cart_ids)):
                try:
                    acquired = self._acquire_waiting(cart_id, owner)
                except RedisError as e:
                    logger.error(f"Redis unavailable while locking cart {cart_id}: {e}")
                    raise TransientCartError(f"Cart lock unavailable for cart {cart_id}") from e
                if not acquired:
                    logger.warning(f"Could not lock cart {cart_id} within {self.wait}s")
                    raise ConcurrencyConflictError(cart_id)
                held.append(cart_id)
            yield
        finally:
            for cart_id in reversed(held):
                try:
                    self.release(cart_id, owner)
                except RedisError as e:
                    # lock i tak wygasnie po ttl
                    logger.error(f"Failed to release lock for cart {cart_id}: {e}")
