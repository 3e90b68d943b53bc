"""
Provider Call Retry

Bounded ledger provider calls with capped exponential backoff. Only transient
faults (``ProviderUnavailable``) are retried; every other error propagates on
the first attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from edufund_api.exceptions import ProviderUnavailable


logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_provider(awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await a provider call with a deadline.

    A timeout means the outcome is unknown (the call may still take effect), so
    it is reported as ``ProviderUnavailable`` and never as a final verdict.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderUnavailable(f"Ledger provider did not answer within {timeout}s") from e


class RetryPolicy:
    """Capped exponential backoff for transient provider faults"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        timeout: float | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)"""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "provider call") -> T:
        """
        Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            description: Label used in log messages

        Raises:
            ProviderUnavailable: Every attempt hit a transient fault
        """
        attempt = 1
        while True:
            try:
                if self.timeout is None:
                    return await operation()
                return await call_provider(operation(), self.timeout)
            except ProviderUnavailable as e:
                if attempt >= self.max_attempts:
                    logger.warning(f"{description} failed after {attempt} attempts: {str(e)}")
                    raise
                delay = self.backoff(attempt)
                logger.info(f"{description} unavailable (attempt {attempt}/{self.max_attempts}), retrying in {delay}s")
                await asyncio.sleep(delay)
                attempt += 1
