"""Retry helper with exponential backoff.

Used by the HTTP connection to ride out transient API failures such as
rate limiting or a proxy returning 502 while pveproxy restarts.
"""

from __future__ import annotations

import functools
import random
import time
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from pvectl.utils.logging import get_logger

logger = get_logger("retry")

P = ParamSpec("P")
T = TypeVar("T")


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> float:
    """Delay before the retry that follows failed attempt ``attempt``.

    Example:
        >>> [backoff_delay(n, 1, 5) for n in (1, 2, 3, 4)]
        [1, 2.0, 4.0, 5]
    """
    return min(base_delay * (exponential_base ** (attempt - 1)), max_delay)


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[Exception, int], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator retrying a function with exponential backoff.

    Args:
        max_attempts: Total attempts including the first one. Values
            below 1 are treated as 1.
        base_delay: Delay in seconds after the first failure.
        max_delay: Upper bound for any single delay.
        exponential_base: Growth factor between delays.
        jitter: Add up to 50% random jitter to each delay.
        exceptions: Exception types that trigger a retry. Anything else
            propagates immediately.
        on_retry: Callback invoked with ``(exception, attempt)`` before
            sleeping.
        sleep: Sleep function; defaults to ``time.sleep``.

    Returns:
        Decorated function with retry logic.

    Example:
        >>> @retry_with_backoff(max_attempts=4, exceptions=(TransientApiError,))
        ... def fetch_resources():
        ...     return session.get(url)
    """
    attempts = max(1, max_attempts)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= attempts:
                        if attempts > 1:
                            logger.error(
                                f"All {attempts} attempts failed for {func.__name__}: {e}"
                            )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)
                    if jitter:
                        delay = delay * (1 + random.random() * 0.5)

                    logger.warning(
                        f"Attempt {attempt}/{attempts} failed for "
                        f"{func.__name__}: {e}. Retrying in {delay:.2f}s..."
                    )

                    if on_retry:
                        on_retry(e, attempt)

                    (sleep or time.sleep)(delay)
                    attempt += 1

        return wrapper

    return decorator
