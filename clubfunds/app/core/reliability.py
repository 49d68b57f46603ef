"""
Reliability utilities.

Retry with exponential backoff for summary refreshes.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from clubfunds.app.core.exceptions import RecomputeFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    func: Callable[[], Awaitable[T]],
    operation: str,
    max_attempts: int = 3,
    backoff_seconds: float = 0.2,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Run ``func`` until it succeeds or ``max_attempts`` is used up.

    Sleeps ``backoff_seconds * 2 ** (attempt - 1)`` between attempts.

    Raises:
        RecomputeFailure: when every attempt failed
    """
    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except retry_on as e:
            last_error = e
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                operation, attempt, max_attempts, e,
            )
            if attempt < max_attempts:
                await asyncio.sleep(backoff_seconds * (2 ** (attempt - 1)))

    raise RecomputeFailure(operation, max_attempts, last_error)
