"""Timeout and retry policy for external calls.

Every collaborator call (search, user directory, LLM, cache, notification
endpoints) goes through ``call_with_retry`` so that a stalled service
cannot block a run indefinitely. Attempts are bounded and backed off
exponentially with jitter.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transport-level failures worth another attempt
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry settings for one kind of call.

    Attributes:
        attempts: Total attempts including the first one
        base_delay: Initial backoff delay in seconds
        timeout: Per-attempt timeout in seconds
        max_delay: Cap on a single backoff delay
    """

    attempts: int = 3
    base_delay: float = 1.0
    timeout: float = 30.0
    max_delay: float = 30.0

    @classmethod
    def from_config(cls, config: Any, timeout: float | None = None) -> "RetryPolicy":
        """Build a policy from Config retry settings."""
        return cls(
            attempts=config.max_retries,
            base_delay=config.retry_base_delay,
            timeout=timeout if timeout is not None else config.request_timeout,
        )


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
) -> T:
    """Await ``func()`` with a per-attempt timeout and bounded retries.

    Args:
        func: Zero-argument coroutine factory (called once per attempt)
        policy: Attempts, backoff and timeout settings
        retry_on: Exception types that trigger another attempt

    Returns:
        The coroutine's result

    Raises:
        The last exception once attempts are exhausted, or immediately for
        exceptions outside ``retry_on``.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_exponential_jitter(multiplier=policy.base_delay, max=policy.max_delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await asyncio.wait_for(func(), timeout=policy.timeout)
    return result
