"""Resilience patterns for calls to external collaborators.

This module provides the retry helpers used around embedding and storage
calls:
    - Retry with exponential backoff (decorator and inline forms)

Example:
    # Retry with exponential backoff
    @retry(max_attempts=3, backoff_factor=2.0)
    async def embed_query():
        return await provider.embed("remote work policy")

    # Inline
    vector = await retry_async(provider.embed, "remote work policy", max_attempts=3)
"""

from __future__ import annotations

import asyncio
import logging
import random
from functools import wraps
from typing import Awaitable, Callable, Optional, TypeVar

from .domain.entities import ErrorType
from .providers.base import LLMProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================
# Retry with Exponential Backoff
# ============================================

# Default exceptions that are considered retryable
DEFAULT_RETRYABLE_EXCEPTIONS = (
    LLMProviderError,
    asyncio.TimeoutError,
    ConnectionError,
    OSError,
)


def is_retryable(exc: BaseException) -> bool:
    """Provider errors classified as fatal are not worth another attempt."""
    if isinstance(exc, LLMProviderError):
        return exc.error_type != ErrorType.FATAL
    return True


def _next_delay(delay: float, max_delay: float, jitter: bool) -> float:
    actual_delay = min(delay, max_delay)
    if jitter:
        actual_delay = actual_delay * (0.5 + random.random())
    return actual_delay


def retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    retryable_exceptions: tuple = DEFAULT_RETRYABLE_EXCEPTIONS,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
):
    """Decorator for retrying async functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (including first try)
        backoff_factor: Multiplier for delay between attempts (2.0 = double each time)
        initial_delay: Initial delay in seconds before first retry
        max_delay: Maximum delay in seconds between retries
        jitter: Add random jitter to prevent thundering herd
        retryable_exceptions: Tuple of exception types to retry on
        on_retry: Optional callback called before each retry with (exception, attempt)

    Returns:
        Decorator function
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await retry_async(
                func,
                *args,
                max_attempts=max_attempts,
                backoff_factor=backoff_factor,
                initial_delay=initial_delay,
                max_delay=max_delay,
                jitter=jitter,
                retryable_exceptions=retryable_exceptions,
                on_retry=on_retry,
                **kwargs,
            )

        return wrapper
    return decorator


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    retryable_exceptions: tuple = DEFAULT_RETRYABLE_EXCEPTIONS,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    **kwargs,
) -> T:
    """Retry an async function call with exponential backoff.

    Args:
        func: Async function to call
        *args: Arguments to pass to func
        max_attempts: Maximum attempts
        backoff_factor: Delay multiplier
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        jitter: Randomize each delay by 0.5x-1.5x
        retryable_exceptions: Exceptions to retry on
        on_retry: Optional callback called before each retry
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result from func

    Raises:
        The last exception once attempts are exhausted, or immediately for
        non-retryable errors

    Example:
        embedding = await retry_async(
            provider.embed,
            "What is the remote work policy?",
            max_attempts=3,
            initial_delay=0.5,
        )
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return await func(*args, **kwargs)

        except retryable_exceptions as e:
            if not is_retryable(e) or attempt >= max_attempts:
                if attempt >= max_attempts:
                    logger.error(f"All {max_attempts} attempts failed. Last error: {e}")
                raise

            actual_delay = _next_delay(delay, max_delay, jitter)
            if on_retry:
                on_retry(e, attempt)
            logger.warning(
                f"Retry {attempt}/{max_attempts}: {e}. Waiting {actual_delay:.1f}s"
            )
            await asyncio.sleep(actual_delay)
            delay = min(delay * backoff_factor, max_delay)

    raise RuntimeError("Retry logic error")

