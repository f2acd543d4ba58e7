"""
Shared contract and helpers for provider adapters.

Adapters do not inherit from a common base. Any object with the attributes
and coroutine below can be registered with the dispatcher.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, TypeVar, runtime_checkable

import structlog

from ..domain.models import EncodedFile, ProviderId

T = TypeVar("T")


@runtime_checkable
class ProviderAdapter(Protocol):
    """Normalized interface every backend adapter satisfies."""

    provider: ProviderId
    model: str

    async def analyze(self, prompt: str, files: Sequence[EncodedFile]) -> str:
        """
        Produce a report for the prompt and files.

        Raises:
            MissingCredentialError, InvalidCredentialError, QuotaExceededError,
            ModelUnavailableError, MalformedRequestError, EmptyResponseError,
            ProviderError
        """
        ...


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    *,
    is_transient: Callable[[BaseException], bool],
    max_attempts: int,
    backoff_seconds: float,
    logger: structlog.stdlib.BoundLogger,
    provider: ProviderId,
) -> T:
    """
    Await ``call`` up to ``max_attempts`` times.

    Only errors accepted by ``is_transient`` are retried; everything else is
    raised on first occurrence.
    """
    attempt = 1
    while True:
        try:
            return await call()
        except Exception as e:
            if attempt >= max_attempts or not is_transient(e):
                raise
            logger.warning(
                "provider_call_retry",
                provider=provider.value,
                attempt=attempt,
                max_attempts=max_attempts,
                error=type(e).__name__,
            )
            await asyncio.sleep(backoff_seconds * attempt)
            attempt += 1
