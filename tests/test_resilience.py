#!/usr/bin/env python3
"""Tests for retry with exponential backoff.

Tests cover:
    - Success without retries
    - Retrying transient failures until success
    - Giving up after max_attempts
    - Fatal provider errors are not retried
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agentic_rag.domain.entities import ErrorType
from agentic_rag.providers import LLMProviderError
from agentic_rag.resilience import is_retryable, retry, retry_async


# ============================================
# retry_async
# ============================================

class TestRetryAsync:
    """Tests for the inline retry helper."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        """No retries when the call succeeds."""
        func = AsyncMock(return_value="ok")
        result = await retry_async(func, "a", max_attempts=3, initial_delay=0)
        assert result == "ok"
        func.assert_awaited_once_with("a")

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        """Transient errors are retried until success."""
        func = AsyncMock(side_effect=[
            ConnectionError("reset"),
            LLMProviderError("busy", ErrorType.RATE_LIMIT),
            "ok",
        ])
        with patch("agentic_rag.resilience.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_async(func, max_attempts=3, initial_delay=0.5)

        assert result == "ok"
        assert func.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """The last error is raised when attempts run out."""
        func = AsyncMock(side_effect=ConnectionError("down"))
        with patch("agentic_rag.resilience.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError, match="down"):
                await retry_async(func, max_attempts=3, initial_delay=0.1)
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_fatal_provider_error_not_retried(self):
        """Fatal provider errors fail immediately."""
        func = AsyncMock(side_effect=LLMProviderError("bad key", ErrorType.FATAL))
        with pytest.raises(LLMProviderError):
            await retry_async(func, max_attempts=3, initial_delay=0)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_non_retryable_exception_propagates(self):
        """Exceptions outside the retryable set are not retried."""
        func = AsyncMock(side_effect=ValueError("bad input"))
        with pytest.raises(ValueError):
            await retry_async(func, max_attempts=3, initial_delay=0)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_grows_without_jitter(self):
        """Delays follow initial_delay * backoff_factor ** n, capped at max_delay."""
        func = AsyncMock(side_effect=[OSError("x")] * 3 + ["ok"])
        with patch("agentic_rag.resilience.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_async(
                func,
                max_attempts=4,
                initial_delay=1.0,
                backoff_factor=2.0,
                max_delay=3.0,
                jitter=False,
            )
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        """on_retry sees each failure and attempt number."""
        callback = MagicMock()
        func = AsyncMock(side_effect=[OSError("x"), "ok"])
        with patch("agentic_rag.resilience.asyncio.sleep", new=AsyncMock()):
            await retry_async(func, max_attempts=2, initial_delay=0, on_retry=callback)
        assert callback.call_count == 1
        assert callback.call_args.args[1] == 1

    @pytest.mark.asyncio
    async def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            await retry_async(AsyncMock(), max_attempts=0)


class TestRetryDecorator:
    """Tests for the @retry decorator."""

    @pytest.mark.asyncio
    async def test_decorated_function_is_retried(self):
        """The decorator retries like retry_async."""
        calls = []

        @retry(max_attempts=2, initial_delay=0, jitter=False)
        async def flaky(x):
            calls.append(x)
            if len(calls) == 1:
                raise ConnectionError("first")
            return x * 2

        assert await flaky(21) == 42
        assert calls == [21, 21]


def test_is_retryable_classification():
    """Only fatal provider errors are excluded."""
    assert is_retryable(LLMProviderError("x", ErrorType.TIMEOUT))
    assert is_retryable(ConnectionError())
    assert not is_retryable(LLMProviderError("x", ErrorType.FATAL))
