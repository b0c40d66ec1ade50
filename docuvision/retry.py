"""Retry policy shared by the Gemini client and the key rotation loop."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryHook = Callable[[Exception, int], bool]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with capped exponential backoff.

    ``retry_on`` lists the exception types worth another attempt; anything
    else propagates on first sight. ``on_retry`` passed to :meth:`run` sees
    every retryable failure, including the last one, and may return ``False``
    to stop early, in which case the failure is re-raised.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    retry_on: Tuple[Type[Exception], ...] = (Exception,)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 0-indexed attempt."""
        delay = self.base_delay * (self.backoff_factor**attempt)
        return min(delay, self.max_delay)

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        on_retry: Optional[RetryHook] = None,
    ) -> T:
        attempt = 0
        while True:
            try:
                return await operation(attempt)
            except self.retry_on as exc:
                stopped = on_retry is not None and on_retry(exc, attempt) is False
                if stopped or attempt + 1 >= self.max_attempts:
                    logger.error(
                        "Giving up after %d attempts: %s: %s",
                        attempt + 1,
                        type(exc).__name__,
                        exc,
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt + 1,
                    self.max_attempts,
                    type(exc).__name__,
                    delay,
                )
                if delay > 0:
                    await asyncio.sleep(delay)
                attempt += 1
