"""Retry policies used to reconnect a dropped event stream."""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

import httpx

from eventfeed.errors import StreamConnectionError

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    StreamConnectionError,
)


class RetryPolicy(Protocol):
    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        ...


class NoRetry:
    """Runs the operation exactly once."""

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        return await operation()


class ExponentialBackoff:
    """Retry with randomized, exponentially growing delays.

    Only exceptions in ``retry_on`` are retried; anything else propagates
    straight away. With ``max_elapsed=None`` the policy never gives up,
    otherwise the last error is re-raised once that many seconds have passed.
    """

    def __init__(
        self,
        initial_interval: float = 0.5,
        multiplier: float = 1.5,
        max_interval: float = 60.0,
        randomization_factor: float = 0.5,
        max_elapsed: float | None = None,
        retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    ):
        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.randomization_factor = randomization_factor
        self.max_elapsed = max_elapsed
        self.retry_on = retry_on

    def next_delay(self, interval: float) -> float:
        delta = self.randomization_factor * interval
        return random.uniform(interval - delta, interval + delta)

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        interval = self.initial_interval
        started = time.monotonic()
        while True:
            try:
                return await operation()
            except self.retry_on as exc:
                delay = self.next_delay(interval)
                elapsed = time.monotonic() - started
                if self.max_elapsed is not None and elapsed + delay > self.max_elapsed:
                    logging.warning(
                        "Stream error [%s] (%s: %s); giving up after %.1fs",
                        label,
                        type(exc).__name__,
                        exc,
                        elapsed,
                    )
                    raise
                logging.warning(
                    "Stream error [%s] (%s: %s); reconnecting in %.1fs…",
                    label,
                    type(exc).__name__,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                interval = min(interval * self.multiplier, self.max_interval)
