"""
Retry mechanism for transient catalog store failures.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, Sequence

from shared.logging import get_logger


# Message fragments raised by drivers and sockets when the connection to the
# store drops or cannot be established. Matched case-insensitively.
TRANSIENT_ERROR_MARKERS: Sequence[str] = (
    "ECONNRESET",
    "connection reset",
    "ENOTFOUND",
    "name or service not known",
    "ETIMEDOUT",
    "timed out",
    "timeout",
    "connection terminated",
    "connection lost",
)

ErrorClassifier = Callable[[BaseException], bool]


def is_transient_connectivity_error(error: BaseException) -> bool:
    """Return True when the error message matches a recoverable connectivity failure."""
    message = str(error).lower()
    if not message:
        return False
    return any(marker.lower() in message for marker in TRANSIENT_ERROR_MARKERS)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self, max_attempts: int = 2, delay: float = 1.0):
        self.max_attempts = max(1, max_attempts)
        self.delay = max(0.0, delay)


def retry_on_exception(exceptions: tuple = (Exception,),
                       config: Optional[RetryConfig] = None,
                       should_retry: Optional[ErrorClassifier] = None,
                       on_retry: Optional[Callable[[str, BaseException], None]] = None) -> Callable:
    """Decorator for retrying async functions on exceptions.

    Attempts run strictly one after another with a fixed delay between them.
    Errors rejected by ``should_retry`` propagate immediately. Once attempts
    are exhausted the last error is re-raised unchanged.
    """

    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        name = getattr(func, "__name__", "call")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"retry.{name}")

            for attempt in range(1, config.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 1:
                        logger.info("Retry succeeded", attempt=attempt, function=name)

                    return result

                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise

                    if attempt == config.max_attempts:
                        logger.error(
                            "All retry attempts exhausted",
                            attempt=attempt,
                            max_attempts=config.max_attempts,
                            function=name,
                            error=str(e)
                        )
                        raise

                    logger.warning(
                        "Retry attempt failed, waiting before next attempt",
                        attempt=attempt,
                        delay=config.delay,
                        function=name,
                        error=str(e)
                    )
                    if on_retry is not None:
                        on_retry(name, e)

                    await asyncio.sleep(config.delay)

        return wrapper

    return decorator


def with_transient_retry(func: Callable[..., Awaitable[Any]],
                         *,
                         delay: float = 1.0,
                         is_transient: ErrorClassifier = is_transient_connectivity_error,
                         on_retry: Optional[Callable[[str, BaseException], None]] = None
                         ) -> Callable[..., Awaitable[Any]]:
    """Wrap a store coroutine so transient connectivity failures are retried once."""
    return retry_on_exception(
        (Exception,),
        RetryConfig(max_attempts=2, delay=delay),
        should_retry=is_transient,
        on_retry=on_retry,
    )(func)
