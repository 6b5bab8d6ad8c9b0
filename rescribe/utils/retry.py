"""
Bounded exponential backoff for async operations.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

from loguru import logger

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    retryable_exception: Union[Type[BaseException], Tuple[Type[BaseException], ...]],
    error_message: str,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Optional[Sleeper] = None,
) -> T:
    """
    Await operation, retrying with exponential backoff on a specific exception.

    Waits base_delay * 2**attempt between attempts (1s, 2s, 4s, ... with the default
    base delay). The last exception is re-raised once attempts are exhausted.

    Args:
        operation: Zero-argument coroutine factory performing one attempt
        retryable_exception: Exception type(s) that trigger another attempt
        error_message: Message prefix for retry logging (e.g., "Upload failed")
        max_attempts: Total number of attempts (not retries)
        base_delay: Delay before the second attempt, in seconds
        sleep: Awaitable sleep function (injectable for tests)
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    sleep = sleep or asyncio.sleep

    for attempt in range(max_attempts):
        try:
            return await operation()
        except retryable_exception as e:
            if attempt == max_attempts - 1:
                raise
            delay = base_delay * (2**attempt)
            logger.warning(
                f"{error_message}: {e}. Retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{max_attempts})"
            )
            await sleep(delay)

    # Unreachable: the loop either returns or re-raises
    raise RuntimeError("retry_with_backoff exited without a result")
