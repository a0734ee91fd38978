"""
Generation Client.

Wraps the chat providers behind a single cancellable delta stream with
automatic fallback:

    IDLE -> STREAMING_PRIMARY -> COMPLETED
                 |
                 +-- failure or first-delta timeout, nothing yielded yet
                 v
            STREAMING_FALLBACK -> COMPLETED | FAILED

Once any delta has been yielded the stream is committed to its target: a
later failure or a quiescence timeout ends it FAILED. Cancellation from any
streaming state ends it CANCELLED without raising.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Any, AsyncIterator, Optional

from ..domain.entities import Message
from ..domain.ports import IChatProvider
from ..exceptions import GenerationError
from ..providers.base import LLMProviderError

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
    """Lifecycle of one generation stream."""

    IDLE = "idle"
    STREAMING_PRIMARY = "streaming_primary"
    STREAMING_FALLBACK = "streaming_fallback"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CancellationToken:
    """Cooperative cancellation signal shared by the pieces of one exchange."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class _AttemptFailed(Exception):
    """One target failed before producing any delta."""

    def __init__(self, message: str, retryable: bool):
        super().__init__(message)
        self.retryable = retryable


class _Cancelled(Exception):
    pass


async def _anext(iterator: AsyncIterator[str]) -> tuple[bool, Optional[str]]:
    try:
        return True, await iterator.__anext__()
    except StopAsyncIteration:
        return False, None


class GenerationStream:
    """A lazy, cancellable stream of text deltas.

    Iterate it once with `async for`. Nothing is sent to a provider until
    iteration starts.

    Attributes:
        state: Current GenerationState
        target: Model id of the target currently (or last) streaming
        used_fallback: True once the fallback target has been tried
    """

    def __init__(
        self,
        client: "GenerationClient",
        messages: list[Message],
        system_prompt: Optional[str],
        cancel: Optional[CancellationToken] = None,
    ):
        self._client = client
        self._messages = list(messages)
        self._system_prompt = system_prompt
        self._cancel = cancel or CancellationToken()
        self._iterator: Optional[AsyncIterator[str]] = None

        self.state = GenerationState.IDLE
        self.target: Optional[str] = None
        self.used_fallback = False
        self.deltas_yielded = 0

    def cancel(self) -> None:
        """Request cancellation; observed at the next delta boundary."""
        self._cancel.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_cancelled

    def __aiter__(self) -> AsyncIterator[str]:
        if self._iterator is None:
            self._iterator = self._run()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()

    # ============================================
    # Internals
    # ============================================

    async def _next_delta(
        self, iterator: AsyncIterator[str], timeout: Optional[float]
    ) -> tuple[bool, Optional[str]]:
        """Await the next provider item, racing the timeout and the cancel signal.

        Raises:
            asyncio.TimeoutError: If nothing arrives within timeout
            _Cancelled: If cancellation was requested while waiting
        """
        next_task = asyncio.ensure_future(_anext(iterator))
        cancel_task = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {next_task, cancel_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
            if not next_task.done():
                next_task.cancel()
                # The provider iterator must be idle before it can be closed
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await next_task

        if next_task in done:
            return next_task.result()
        if cancel_task in done:
            raise _Cancelled()
        raise asyncio.TimeoutError()

    async def _attempt(self, provider: IChatProvider) -> AsyncIterator[str]:
        """Stream from one provider.

        Raises:
            _AttemptFailed: Failure before the first non-empty delta
            GenerationError: Failure after deltas were yielded
            _Cancelled: Cancellation requested
        """
        client = self._client
        self.target = provider.model_name
        iterator = provider.chat_stream(
            self._messages,
            system_prompt=self._system_prompt,
            temperature=client.temperature,
            max_tokens=client.max_tokens,
        ).__aiter__()

        loop = asyncio.get_running_loop()
        first_delta_deadline = loop.time() + client.first_delta_timeout
        started = False

        try:
            while True:
                if self._cancel.is_cancelled:
                    raise _Cancelled()

                if started:
                    timeout = client.quiescence_timeout
                else:
                    timeout = max(0.0, first_delta_deadline - loop.time())

                try:
                    has_item, delta = await self._next_delta(iterator, timeout)
                except asyncio.TimeoutError:
                    if started:
                        raise GenerationError(
                            f"Generation stalled: no output from {self.target} "
                            f"for {client.quiescence_timeout}s",
                            retryable=True,
                            target=self.target,
                        )
                    raise _AttemptFailed(
                        f"No output from {self.target} within {client.first_delta_timeout}s",
                        retryable=True,
                    )
                except LLMProviderError as e:
                    if started:
                        raise GenerationError(
                            f"Generation failed mid-stream: {e}",
                            retryable=e.error_type.retryable,
                            target=self.target,
                            cause=e,
                        )
                    raise _AttemptFailed(str(e), retryable=e.error_type.retryable)
                except (_Cancelled, GenerationError):
                    raise
                except Exception as e:
                    logger.exception(f"Unexpected error from provider {self.target}")
                    if started:
                        raise GenerationError(
                            f"Generation failed mid-stream: {e}",
                            retryable=False,
                            target=self.target,
                            cause=e,
                        )
                    raise _AttemptFailed(str(e), retryable=False)

                if not has_item:
                    return
                if self._cancel.is_cancelled:
                    raise _Cancelled()
                if not delta:
                    continue

                started = True
                self.deltas_yielded += 1
                yield delta
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                with contextlib.suppress(Exception):
                    await aclose()

    async def _run(self) -> AsyncIterator[str]:
        client = self._client
        targets: list[tuple[GenerationState, IChatProvider]] = [
            (GenerationState.STREAMING_PRIMARY, client.primary)
        ]
        if client.fallback is not None:
            targets.append((GenerationState.STREAMING_FALLBACK, client.fallback))

        last_failure: Optional[_AttemptFailed] = None

        try:
            for state, provider in targets:
                self.state = state
                if state == GenerationState.STREAMING_FALLBACK:
                    self.used_fallback = True
                    logger.warning(
                        f"Falling back to {provider.model_name} after primary failure: "
                        f"{last_failure}"
                    )

                try:
                    async with contextlib.aclosing(self._attempt(provider)) as attempt:
                        async for delta in attempt:
                            yield delta
                except _AttemptFailed as e:
                    logger.error(f"Generation attempt on {self.target} failed: {e}")
                    last_failure = e
                    continue

                self.state = GenerationState.COMPLETED
                logger.info(
                    f"Generation completed on {self.target} ({self.deltas_yielded} deltas)"
                )
                return

            self.state = GenerationState.FAILED
            if client.fallback is None:
                message = f"Generation failed: {last_failure}"
            else:
                message = f"Generation failed on primary and fallback: {last_failure}"
            raise GenerationError(
                message,
                retryable=last_failure.retryable if last_failure else True,
                target=self.target,
            )

        except _Cancelled:
            self.state = GenerationState.CANCELLED
            logger.info(f"Generation cancelled after {self.deltas_yielded} deltas")
        except GenerationError:
            self.state = GenerationState.FAILED
            raise
        except (asyncio.CancelledError, GeneratorExit):
            self.state = GenerationState.CANCELLED
            raise


class GenerationClient:
    """Primary/fallback generation over chat providers.

    Usage:
        client = GenerationClient(primary, fallback, first_delta_timeout=30.0)
        stream = client.generate(messages, system_prompt=SYSTEM_PROMPT)
        async for delta in stream:
            print(delta, end="")
    """

    def __init__(
        self,
        primary: IChatProvider,
        fallback: Optional[IChatProvider] = None,
        first_delta_timeout: float = 30.0,
        quiescence_timeout: float = 30.0,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.first_delta_timeout = first_delta_timeout
        self.quiescence_timeout = quiescence_timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(
        self,
        messages: list[Message],
        system_prompt: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> GenerationStream:
        """Create a stream for one completion. No I/O happens until iterated."""
        return GenerationStream(self, messages, system_prompt, cancel)

    async def close(self) -> None:
        providers: list[Any] = [self.primary]
        if self.fallback is not None and self.fallback is not self.primary:
            providers.append(self.fallback)
        for provider in providers:
            try:
                await provider.close()
            except Exception as e:
                logger.warning(f"Error closing provider {provider.model_name}: {e}")
