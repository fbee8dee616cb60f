from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from utils.config import get_settings
from utils.logger import get_logger

_logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential delay.

    Attempt n (1-based) that fails waits base_delay * factor ** (n - 1)
    seconds, capped at max_delay, before attempt n + 1.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(max_attempts=settings.retry_attempts, base_delay=settings.retry_delay)

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * self.factor ** (attempt - 1), self.max_delay)


class RetryError(Exception):
    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error!r}")
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await fn() until it succeeds or the policy runs out of attempts.

    Only exceptions in `retry_on` are retried; anything else propagates
    immediately. Raises RetryError (chained to the last failure) when every
    attempt failed.
    """
    policy = policy or RetryPolicy.from_settings()
    attempts = max(policy.max_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except retry_on as exc:
            if attempt == attempts:
                raise RetryError(attempt, exc) from exc
            delay = policy.delay_for(attempt)
            _logger.warning(
                f"Attempt {attempt}/{attempts} failed ({exc!r}), retrying in {delay:.1f}s"
            )
            await sleep(delay)
    raise AssertionError("unreachable")
