# sakubun/core/retry.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy for a single logical generation call.

    Delays grow linearly with the attempt number (base × attempt). Overloaded
    responses use their own, longer base. ``sleep`` is injectable so tests can
    record waits instead of actually sleeping.
    """

    max_attempts: int = 3
    base_delay: float = 0.8
    overloaded_delay: float = 2.0
    sleep: Sleeper = asyncio.sleep

    def backoff(self, attempt: int, *, overloaded: bool = False) -> float:
        base = self.overloaded_delay if overloaded else self.base_delay
        return base * max(attempt, 1)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    async def wait(self, attempt: int, *, overloaded: bool = False) -> None:
        delay = self.backoff(attempt, overloaded=overloaded)
        logger.debug(f"Backing off {delay:.2f}s before attempt {attempt + 1}/{self.max_attempts}")
        await self.sleep(delay)
