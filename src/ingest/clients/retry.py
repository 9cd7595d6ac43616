"""Bounded retry decorator for flaky external calls."""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from common.logger import get_logger

P = ParamSpec("P")
R = TypeVar("R")

logger = get_logger(__name__)


def retry_on_none(
    attempts: int = 3,
    delay_seconds: float = 0.5,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[Callable[P, R | None]], Callable[P, R | None]]:
    """Retry a function that signals failure by returning None or raising.

    The wrapped function is called up to ``attempts`` times with a fixed
    ``delay_seconds`` pause between calls. Exceptions listed in ``retry_on``
    count as a failed attempt; the wrapper never re-raises them and returns
    None once attempts run out.

    Args:
        attempts: Total number of calls (not retries)
        delay_seconds: Pause between consecutive attempts
        retry_on: Exception types treated as a failed attempt

    Example:
        >>> @retry_on_none(attempts=3, delay_seconds=0.5)
        ... def generate():
        ...     return call_model() or None
    """

    def decorator(func: Callable[P, R | None]) -> Callable[P, R | None]:
        name = getattr(func, "__qualname__", repr(func))

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            for attempt in range(1, attempts + 1):
                try:
                    result = func(*args, **kwargs)
                    if result is not None:
                        return result
                    logger.debug(f"{name}: attempt {attempt}/{attempts} returned nothing")
                except retry_on as e:
                    logger.debug(f"{name}: attempt {attempt}/{attempts} failed: {e}")

                if attempt < attempts:
                    time.sleep(delay_seconds)

            return None

        return wrapper

    return decorator
