import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger("loro.retry")

T = TypeVar("T")

MAX_RETRIES_LIMIT = 10


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    operation_name: str,
    base_delay: float = 0.1,
) -> T:
    """
    Run `operation` up to max_retries + 1 times.

    Sleeps base_delay × attempt² between attempts (no jitter, no cap).
    The last error is re-raised unchanged so callers still see whether it
    was a timeout, a transport failure or an upstream status.
    """
    if max_retries < 0 or max_retries > MAX_RETRIES_LIMIT:
        raise ValueError(f"max_retries must be between 0 and {MAX_RETRIES_LIMIT}")

    last_error: Optional[Exception] = None
    attempt = 0
    while attempt <= max_retries:
        attempt += 1
        try:
            result = await operation()
        except Exception as e:
            last_error = e
            if attempt <= max_retries:
                delay = base_delay * attempt ** 2
                logger.warning(
                    f"[Retry] {operation_name} attempt {attempt} failed, "
                    f"retrying in {delay * 1000:.0f}ms: {e}"
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"[Retry] {operation_name} failed after {attempt} attempts: {e}")
            continue

        if attempt > 1:
            logger.info(f"[Retry] {operation_name} succeeded after {attempt} attempts")
        return result

    raise last_error
