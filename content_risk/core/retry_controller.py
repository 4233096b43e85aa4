"""Bounded retry with exponential backoff and provider fallback.

Every model call in the pipeline goes through ``RetryController.run``:

- Quota errors (``QuotaExceededError`` or a governor rejection) switch to
  the next provider immediately, without sleeping.
- Transient errors are retried with capped exponential backoff, then the
  next provider is tried.
- Anything else propagates unchanged.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from ..config import settings
from .errors import QuotaExceededError, RetryExhaustedError, TransientProviderError
from .gemini_client import ModelProvider
from .usage_governor import UsageGovernor, UsageRecorder

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff capped at max_delay."""

    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay after 0-based attempt number ``attempt``."""
        return min(self.base_delay * (self.multiplier ** attempt), self.max_delay)

    @classmethod
    def from_settings(cls) -> "BackoffPolicy":
        return cls(
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )


@dataclass
class RetryResult(Generic[T]):
    """Successful outcome of a retried operation."""

    value: T
    provider: str
    attempts: int


class RetryController:
    """
    Run provider operations with retries and fallback.

    Features:
    - Providers tried in configured order
    - Daily quota consulted before every call
    - Per-call timeout
    - Concurrency cap across all requests (no global lock)
    """

    def __init__(
        self,
        providers: list[ModelProvider],
        governor: Optional[UsageGovernor] = None,
        recorder: Optional[UsageRecorder] = None,
        max_attempts: Optional[int] = None,
        backoff: Optional[BackoffPolicy] = None,
        call_timeout: Optional[float] = None,
        max_concurrent_calls: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not providers:
            raise ValueError("RetryController needs at least one provider")

        self.providers = providers
        self.governor = governor
        self.recorder = recorder
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.backoff = backoff or BackoffPolicy.from_settings()
        self.call_timeout = call_timeout if call_timeout is not None else settings.call_timeout_seconds
        self.max_concurrent_calls = max_concurrent_calls or settings.max_concurrent_calls
        self._semaphore = asyncio.Semaphore(self.max_concurrent_calls)
        self._sleep = sleep
        self._active_calls = 0
        self._waiting_calls = 0

    @property
    def primary(self) -> ModelProvider:
        return self.providers[0]

    def supports_multimodal(self) -> bool:
        return any(provider.supports_multimodal for provider in self.providers)

    def queue_status(self) -> dict:
        """Occupancy of the provider call slots."""
        return {
            "active_calls": self._active_calls,
            "waiting_calls": self._waiting_calls,
            "max_concurrent_calls": self.max_concurrent_calls,
        }

    async def _call(self, operation: Callable[[ModelProvider], Awaitable[T]], provider: ModelProvider) -> T:
        self._waiting_calls += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting_calls -= 1

        self._active_calls += 1
        try:
            return await asyncio.wait_for(operation(provider), timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise TransientProviderError(
                f"Call to {provider.name} timed out after {self.call_timeout}s", provider=provider.name
            ) from e
        finally:
            self._active_calls -= 1
            self._semaphore.release()

    async def run(
        self,
        operation: Callable[[ModelProvider], Awaitable[T]],
        max_attempts: Optional[int] = None,
        backoff: Optional[BackoffPolicy] = None,
        require_multimodal: bool = False,
    ) -> RetryResult[T]:
        """
        Run ``operation(provider)`` until it succeeds or every provider is exhausted.

        Args:
            operation: Coroutine function taking the provider to call
            max_attempts: Attempts per provider (defaults to settings)
            backoff: Backoff policy between attempts
            require_multimodal: Skip providers without multi-modal support

        Returns:
            RetryResult with the value, provider name and total attempts

        Raises:
            RetryExhaustedError: All attempts on all providers failed
        """
        max_attempts = max_attempts or self.max_attempts
        backoff = backoff or self.backoff

        candidates = [p for p in self.providers if p.supports_multimodal or not require_multimodal]
        total_attempts = 0
        last_error: Optional[BaseException] = None
        last_provider: Optional[str] = None

        for index, provider in enumerate(candidates):
            last_provider = provider.name

            for attempt in range(max_attempts):
                total_attempts += 1

                if self.governor is not None and not await self.governor.track_usage(provider.name, 1):
                    last_error = QuotaExceededError(
                        f"Daily quota reached for {provider.name}", provider=provider.name
                    )
                    break

                try:
                    value = await self._call(operation, provider)
                except QuotaExceededError as e:
                    logger.warning(f"Quota exceeded on {provider.name}, switching provider: {e}")
                    last_error = e
                    break
                except TransientProviderError as e:
                    logger.warning(
                        f"Transient error on {provider.name} (attempt {attempt + 1}/{max_attempts}): {e}"
                    )
                    last_error = e
                else:
                    if self.recorder is not None:
                        self.recorder.record_call(provider.name)
                    if total_attempts > 1:
                        logger.info(f"Call succeeded on {provider.name} after {total_attempts} attempts")
                    return RetryResult(value=value, provider=provider.name, attempts=total_attempts)

                if attempt < max_attempts - 1:
                    await self._sleep(backoff.delay_for(attempt))

            if index < len(candidates) - 1:
                logger.warning(f"Falling back from {provider.name} to {candidates[index + 1].name}")

        if not candidates:
            last_error = TransientProviderError("No provider supports this operation")

        raise RetryExhaustedError(total_attempts, last_error, provider=last_provider)
