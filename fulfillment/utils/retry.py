# fulfillment/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import requests
import redis


def _transient(exc_types, attempts: int, base: float, cap: float):
    # only transport errors are retried; business errors and HTTP 4xx surface at once
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base, min=base, max=cap),
        retry=retry_if_exception_type(exc_types),
    )


def http_retry(attempts: int = 3):
    """Identity provider calls: connection errors, timeouts and 5xx."""
    return _transient(requests.RequestException, attempts, base=0.3, cap=3)


def redis_retry(attempts: int = 3):
    """Checkout lock commands."""
    return _transient(redis.RedisError, attempts, base=0.2, cap=2)
