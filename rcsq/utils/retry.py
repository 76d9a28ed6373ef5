"""
Retrying call wrapper for remote invocations.

Every remote call site (transcription, chat completion, captioning, embedding,
face detection) goes through :func:`call_with_retry`. Rate limits (429), server
errors (5xx) and transport failures are retried with exponential backoff and
jitter; everything else propagates on the first attempt.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from rcsq.exceptions import (
    ProviderException,
    RCSQException,
    TransientServiceException,
)

T = TypeVar("T")

# Exceptions raised by the transport layers we talk to when the connection
# itself fails (no HTTP status available).
NETWORK_ERRORS = (ConnectionError, asyncio.TimeoutError, TimeoutError)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: ``min(max_backoff, initial * 2**attempt) * (1 + jitter)``."""

    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 10.0
    jitter: float = 0.3

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            initial_backoff=config.initial_backoff,
            max_backoff=config.max_backoff,
            jitter=config.jitter,
        )

    def compute_delay(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        base = min(self.max_backoff, self.initial_backoff * (2 ** attempt))
        return base * (1 + rand() * self.jitter)


def is_retryable_status(status: Optional[int]) -> bool:
    """Rate limits and server errors are worth another attempt."""
    if status is None:
        return False
    return status == 429 or 500 <= status < 600


def is_retryable(exc: BaseException) -> bool:
    """Decide whether ``exc`` is a transient failure."""
    if isinstance(exc, TransientServiceException):
        return True
    if isinstance(exc, RCSQException):
        # Terminal provider, validation and malformed-response errors
        return False
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if isinstance(status, int):
        return is_retryable_status(status)
    return isinstance(exc, NETWORK_ERRORS)


async def call_with_retry(
    request_builder: Callable[[], Awaitable[T]],
    service: str,
    policy: RetryPolicy = None,
    sleep: Callable[[float], Awaitable[None]] = None,
    rand: Callable[[], float] = random.random,
) -> T:
    """
    Execute ``request_builder()`` and retry transient failures.

    Args:
        request_builder: Zero-argument coroutine factory; called once per attempt.
        service: Model or service name used to tag log lines and terminal errors.
        policy: Backoff parameters (defaults to 3 retries, 1s initial, 10s cap).
        sleep: Awaitable sleep, injectable for tests.
        rand: Source of jitter in [0, 1).

    Returns:
        The value returned by the first successful attempt.

    Raises:
        ProviderException: Non-retryable failure, tagged with ``service``.
        The last error once the retry budget is exhausted.
    """
    policy = policy or RetryPolicy()
    sleep = sleep or asyncio.sleep

    attempt = 0
    while True:
        try:
            return await request_builder()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not is_retryable(e):
                if isinstance(e, ProviderException):
                    if e.service is None:
                        e.service = service
                        e.details.setdefault("service", service)
                    raise
                if isinstance(e, RCSQException):
                    raise
                status = getattr(e, "status_code", None) or getattr(e, "status", None)
                raise ProviderException(
                    f"{service} request failed: {e}",
                    service=service,
                    status_code=status if isinstance(status, int) else None,
                    details={"original_exception": type(e).__name__},
                ) from e

            if attempt >= policy.max_retries:
                logger.error(f"[{service}] giving up after {attempt + 1} attempts: {e}")
                raise

            delay = policy.compute_delay(attempt, rand)
            logger.warning(
                f"[{service}] transient failure ({e}), retrying in {delay:.2f}s "
                f"(attempt {attempt + 1}/{policy.max_retries})"
            )
            await sleep(delay)
            attempt += 1


__all__ = [
    "RetryPolicy",
    "call_with_retry",
    "is_retryable",
    "is_retryable_status",
]
