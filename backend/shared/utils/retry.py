"""
Bounded retry with a fixed delay for one-shot loads.

Steady-state polling never uses this: a failed tick simply waits for the next
one. Only initial loads whose failure the caller must see go through here.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from shared.utils.logging import get_logger
from shared.utils.metrics import RETRY_ATTEMPTS

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    delay_s: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    operation: str = "operation",
) -> T:
    """
    Await ``func()`` up to ``attempts`` times, sleeping ``delay_s`` between tries.

    Raises:
        The exception from the final attempt once the budget is exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_exc: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            result = await func()
        except retry_on as exc:
            last_exc = exc
            RETRY_ATTEMPTS.labels(operation=operation, outcome="failure").inc()
            if attempt == attempts:
                logger.warning(
                    "retry_exhausted",
                    operation=operation,
                    attempts=attempts,
                    error=str(exc),
                )
                raise
            logger.info(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                max_attempts=attempts,
                delay_s=delay_s,
                error=str(exc),
            )
            await asyncio.sleep(delay_s)
        else:
            RETRY_ATTEMPTS.labels(operation=operation, outcome="success").inc()
            return result

    # Unreachable: the loop either returns or re-raises on the last attempt.
    assert last_exc is not None
    raise last_exc
