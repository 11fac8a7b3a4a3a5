"""Retry utilities with exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


async def retry_with_backoff(
    func: Callable[..., Awaitable[Any]],
    *args,
    max_retries: int = 2,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    retry_on: Callable[[Exception], bool] | None = None,
    delay_for: Callable[[Exception], float | None] | None = None,
    **kwargs,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async function to retry
        *args: Positional arguments to pass to func
        max_retries: Maximum number of retries after the first attempt (default: 2)
        base_delay: Base delay in seconds for exponential backoff (default: 1.0)
        max_delay: Maximum delay in seconds (default: 10.0)
        retry_on: Optional predicate; exceptions it rejects are raised immediately
        delay_for: Optional server-requested delay for an error; overrides the backoff
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result from func

    Raises:
        Exception: The last exception once retries are exhausted
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if attempt >= max_retries or (retry_on is not None and not retry_on(e)):
                raise
            delay = delay_for(e) if delay_for is not None else None
            if delay is None:
                delay = min(base_delay * (2**attempt), max_delay)
            logger.debug("Attempt %d failed (%s), retrying in %.1fs", attempt + 1, e, delay)
            await asyncio.sleep(delay)
