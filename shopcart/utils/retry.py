# shopcart/utils/retry.py
import requests
import redis
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from shopcart.exceptions import ConcurrencyConflictError, TransientCartError
from shopcart.utils.settings import CART_MUTATION_ATTEMPTS
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def _log_conflict(retry_state):
    logger.warning(
        f"Concurrent modification in {retry_state.fn.__qualname__}, "
        f"attempt {retry_state.attempt_number} failed, retrying"
    )


def _give_up(retry_state):
    exc = retry_state.outcome.exception()
    raise TransientCartError(
        f"Cart modified concurrently, gave up after {retry_state.attempt_number} attempts"
    ) from exc


def conflict_retry(attempts: int | None = None):
    """
    Re-run a whole read-modify-write when the optimistic version check fails.
    After the last attempt the conflict surfaces as TransientCartError.
    """
    return retry(
        stop=stop_after_attempt(attempts or CART_MUTATION_ATTEMPTS),
        wait=wait_exponential(multiplier=0.02, min=0.02, max=0.5),
        retry=retry_if_exception_type(ConcurrencyConflictError),
        before_sleep=_log_conflict,
        retry_error_callback=_give_up,
    )
