"""Retry helpers for flaky external API calls.

Provider clients translate transient failures into RetryableError subclasses;
retry_api_call re-invokes the wrapped callable with exponential backoff for
those and lets everything else propagate immediately.
"""

import asyncio
import functools
import inspect
import logging
import random
import time

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """Base class for errors that are worth retrying."""

    pass


class APIRateLimitError(RetryableError):
    """Provider rejected the call because of rate limiting."""

    pass


class NetworkError(RetryableError):
    """Connection, DNS or timeout failure talking to a provider."""

    pass


class TemporaryServiceError(RetryableError):
    """Provider returned a transient server-side error."""

    pass


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with a little jitter."""
    delay = min(base_delay * (2**attempt), max_delay)
    return delay + random.uniform(0, delay * 0.1)


def retry_api_call(max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
    """Decorator that retries a sync or async callable on RetryableError.

    Args:
        max_retries: Number of retries after the first attempt
        base_delay: Initial delay in seconds, doubled on every retry
        max_delay: Upper bound for a single delay

    Returns:
        Decorated callable with the same signature
    """

    def decorator(func):
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except RetryableError as e:
                        if attempt >= max_retries:
                            logger.error(
                                f"{func.__qualname__} failed after {max_retries + 1} attempts: {e}"
                            )
                            raise
                        delay = _backoff_delay(attempt, base_delay, max_delay)
                        logger.warning(
                            f"{func.__qualname__} attempt {attempt + 1} failed ({e}); "
                            f"retrying in {delay:.1f}s"
                        )
                        await asyncio.sleep(delay)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except RetryableError as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"{func.__qualname__} failed after {max_retries + 1} attempts: {e}"
                        )
                        raise
                    delay = _backoff_delay(attempt, base_delay, max_delay)
                    logger.warning(
                        f"{func.__qualname__} attempt {attempt + 1} failed ({e}); "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)

        return sync_wrapper

    return decorator
