"""
Retry Policy

One shared policy for every network call: a fixed number of attempts
with increasing delay, retrying only errors classified as recoverable.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

import httpx

from .errors import RecoverableError, RpcError, UnrecoverableError, to_recovery_error

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration and driver for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = False
    jitter_factor: float = 0.1
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def get_delay(self, attempt: int, error: Optional[Exception] = None) -> float:
        """Calculate delay after a failed attempt (0-based)."""
        if isinstance(error, RecoverableError) and error.retry_after:
            return min(error.retry_after, self.max_delay_seconds)
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_attempts - 1:
            return False
        return isinstance(error, RecoverableError)

    async def run(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        *,
        label: str = "operation",
        endpoint: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> T:
        """Run ``operation`` until it succeeds, fails terminally or attempts run out.

        Raw RPC and HTTP errors are classified first, so callers see either a
        RecoverableError (attempts exhausted) or an UnrecoverableError. Any
        other exception propagates untouched on the first attempt.
        """
        log = logger or logging.getLogger(__name__)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except (RecoverableError, UnrecoverableError) as exc:
                error = exc
            except (RpcError, httpx.HTTPError) as exc:
                error = to_recovery_error(exc, endpoint)

            last_error = error
            if not self.should_retry(error, attempt):
                raise error

            delay = self.get_delay(attempt, error)
            log.warning(
                "%s attempt %d/%d failed on %s: %s; retrying in %.1fs",
                label,
                attempt + 1,
                self.max_attempts,
                endpoint or "-",
                error,
                delay,
            )
            await self.sleep(delay)

        raise last_error or RuntimeError("All retry attempts exhausted")
