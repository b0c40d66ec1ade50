"""Key rotation loop used by every AI-calling endpoint."""

import logging
from typing import Awaitable, Callable, Protocol, TypeVar

from docuvision.errors import AllCredentialsExhausted, QuotaExceeded
from docuvision.key_manager import KeyPoolManager
from docuvision.retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

ROUND_ROBIN = "round_robin"
LEAST_USED = "least_used"

EXHAUSTED_MESSAGE = (
    "All API keys exhausted. Please wait a while or upgrade your plan."
)


class GenerationCaller(Protocol):
    async def generate(
        self,
        prompt: str,
        api_key: str,
        temperature: float = ...,
        max_output_tokens: int = ...,
    ) -> str: ...


async def call_with_rotation(
    manager: KeyPoolManager,
    operation: Callable[[str], Awaitable[T]],
    strategy: str = ROUND_ROBIN,
    max_key_attempts: int = 3,
) -> T:
    """
    Run ``operation(api_key)``, switching keys whenever one hits its quota.

    Flow:
    1. Pick a key (round-robin or least-used)
    2. Call ``operation`` with it
    3. On QuotaExceeded: mark the key exhausted and try the next one, unless
       every key is exhausted or ``max_key_attempts`` is used up, in which
       case raise AllCredentialsExhausted
    4. Any other error propagates unchanged
    """
    if strategy == ROUND_ROBIN:
        select = manager.get_next_key
    elif strategy == LEAST_USED:
        select = manager.get_least_used_key
    else:
        raise ValueError(f"Unknown key selection strategy: {strategy}")

    policy = RetryPolicy(
        max_attempts=max_key_attempts,
        base_delay=0.0,
        retry_on=(QuotaExceeded,),
    )

    async def attempt(number: int) -> T:
        return await operation(select())

    def on_quota(exc: Exception, number: int) -> bool:
        api_key = getattr(exc, "api_key", None)
        if api_key:
            manager.mark_exhausted(api_key)
        if manager.is_all_exhausted():
            return False
        logger.info("Key exhausted, trying next key (attempt %d)", number + 1)
        return True

    try:
        return await policy.run(attempt, on_retry=on_quota)
    except QuotaExceeded as exc:
        raise AllCredentialsExhausted(
            EXHAUSTED_MESSAGE, retry_after=exc.retry_after
        ) from exc


async def generate_with_rotation(
    manager: KeyPoolManager,
    caller: GenerationCaller,
    prompt: str,
    strategy: str = ROUND_ROBIN,
    max_key_attempts: int = 3,
    **generation,
) -> str:
    """Generate text for ``prompt`` through :func:`call_with_rotation`."""

    async def generate(api_key: str) -> str:
        return await caller.generate(prompt, api_key, **generation)

    return await call_with_rotation(manager, generate, strategy, max_key_attempts)
