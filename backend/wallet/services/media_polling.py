from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from wallet.core.errors import MediaProcessingTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def wait_until_ready(
    check: Callable[[], Awaitable[T | None]],
    *,
    interval: float,
    max_attempts: int,
    deadline: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> T:
    """Re-run ``check`` until it returns a value, bounded by attempts and deadline.

    ``check`` returns ``None`` while the external processing is still running.
    """
    started = monotonic()
    attempt = 0
    for attempt in range(1, max_attempts + 1):
        result = await check()
        if result is not None:
            return result
        if attempt == max_attempts:
            break
        if monotonic() - started + interval > deadline:
            logger.warning("media processing deadline reached after %d attempt(s)", attempt)
            break
        await sleep(interval)
    raise MediaProcessingTimeoutError(
        f"Media was not ready after {attempt} attempt(s) (deadline {deadline:.0f}s)."
    )
