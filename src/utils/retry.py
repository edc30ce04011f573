"""Retry helpers for transient vendor failures."""

import asyncio
import functools
import inspect
import logging
import time

logger = logging.getLogger(__name__)


class APIRateLimitError(Exception):
    """Vendor rejected the call due to rate limiting."""

    pass


class NetworkError(Exception):
    """Vendor could not be reached or the connection dropped."""

    pass


RETRYABLE_ERRORS = (APIRateLimitError, NetworkError)


def _backoff_delay(base_delay: float, attempt: int, max_delay: float) -> float:
    return min(base_delay * (2**attempt), max_delay)


def retry_api_call(max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
    """Retry a sync or async callable on rate-limit and network errors.

    Other exceptions propagate immediately.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, doubled each time
        max_delay: Upper bound for a single delay
    """

    def decorator(func):
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except RETRYABLE_ERRORS as e:
                        if attempt >= max_retries:
                            raise
                        delay = _backoff_delay(base_delay, attempt, max_delay)
                        logger.warning(
                            f"{func.__name__} failed ({e}), retrying in {delay:.1f}s "
                            f"({attempt + 1}/{max_retries})"
                        )
                        await asyncio.sleep(delay)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except RETRYABLE_ERRORS as e:
                    if attempt >= max_retries:
                        raise
                    delay = _backoff_delay(base_delay, attempt, max_delay)
                    logger.warning(
                        f"{func.__name__} failed ({e}), retrying in {delay:.1f}s "
                        f"({attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)

        return sync_wrapper

    return decorator
