"""
Retry with exponential backoff, and a per-call timeout that raises a typed error.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from core.errors import OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts counts the first call, so 3 means one call plus two retries.
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry number `retry_number` (1-based)."""
        delay = self.initial_delay * (self.multiplier ** (retry_number - 1))
        return min(delay, self.max_delay)


NO_RETRY = RetryPolicy(max_attempts=1)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    operation: str = "operation",
) -> T:
    """
    Awaits a single call, converting expiry into OperationTimeoutError.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OperationTimeoutError(operation, timeout) from e


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Calls `func` until it succeeds or the policy is exhausted.

    Exceptions outside `retry_on` propagate immediately. After the last
    attempt the last error is re-raised unchanged.
    """
    sleep = sleep or asyncio.sleep
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except retry_on as e:
            if attempt == attempts:
                logger.error(f"[RETRY] {operation} failed after {attempt} attempt(s): {e}")
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"[RETRY] {operation} attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {delay:.2f}s"
            )
            await sleep(delay)

    raise AssertionError("unreachable")


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    policy: RetryPolicy = RetryPolicy(),
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation: str = "operation",
) -> T:
    """
    Runs each attempt of `func` under `timeout`, retrying per `policy`.
    OperationTimeoutError is always retryable.
    """
    return await retry_async(
        lambda: with_timeout(func(), timeout, operation),
        policy,
        retry_on=tuple(retry_on) + (OperationTimeoutError,),
        operation=operation,
    )
