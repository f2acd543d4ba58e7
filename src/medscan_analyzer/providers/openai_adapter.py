"""
OpenAI chat-completions adapter.

Documents are sent as ``image_url`` content blocks carrying ``data:`` URLs,
after a single text block holding the prompt.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import SecretStr

from ..core.config import Settings
from ..core.exceptions import (
    AnalyzerError,
    EmptyResponseError,
    InvalidCredentialError,
    MalformedRequestError,
    MissingCredentialError,
    ModelUnavailableError,
    ProviderError,
    QuotaExceededError,
    scrub_secrets,
)
from ..core.logging import LoggerMixin
from ..domain.models import EncodedFile, ProviderId
from .base import call_with_retry


def is_transient(error: BaseException) -> bool:
    """Connection-level failures only; timeouts and HTTP status errors are never retried."""
    if isinstance(error, (openai.APITimeoutError, httpx.TimeoutException)):
        return False
    return isinstance(error, (openai.APIConnectionError, httpx.TransportError))


class OpenAIAdapter(LoggerMixin):
    """Adapter for OpenAI multimodal chat models."""

    provider = ProviderId.OPENAI
    temperature = 0.2

    def __init__(
        self,
        api_key: SecretStr | None,
        *,
        model: str = "gpt-4o",
        timeout_seconds: float = 300.0,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
        client: Any | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIAdapter:
        return cls(
            settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.provider_timeout_seconds,
            max_attempts=settings.provider_max_attempts,
        )

    def _get_client(self) -> Any:
        if self._api_key is None:
            raise MissingCredentialError("OpenAI API key not configured on the server")
        if self._client is None:
            # Retries are handled here so quota and auth errors are never repeated.
            self._client = AsyncOpenAI(
                api_key=self._api_key.get_secret_value(),
                timeout=self.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def build_messages(self, prompt: str, files: Sequence[EncodedFile]) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        content += [
            {"type": "image_url", "image_url": {"url": f.data_url}}
            for f in files
        ]
        return [{"role": "user", "content": content}]

    async def analyze(self, prompt: str, files: Sequence[EncodedFile]) -> str:
        client = self._get_client()
        messages = self.build_messages(prompt, files)

        self.logger.info(
            "provider_call_started",
            provider=self.provider.value,
            model=self.model,
            file_count=len(files),
        )
        try:
            response = await call_with_retry(
                lambda: client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                ),
                is_transient=is_transient,
                max_attempts=self.max_attempts,
                backoff_seconds=self.retry_backoff_seconds,
                logger=self.logger,
                provider=self.provider,
            )
        except (openai.APIError, httpx.TransportError) as e:
            error = self.classify_error(e)
            self.logger.error(
                "provider_call_failed",
                provider=self.provider.value,
                kind=error.kind.value,
                error=str(error),
            )
            raise error from e

        report = self.extract_report(response)
        self.logger.info(
            "provider_call_completed",
            provider=self.provider.value,
            model=self.model,
            report_chars=len(report),
        )
        return report

    def classify_error(self, error: BaseException) -> AnalyzerError:
        """Map an SDK exception onto the error taxonomy."""
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return InvalidCredentialError("OpenAI rejected the API key", status=error.status_code)
        if isinstance(error, openai.RateLimitError):
            return QuotaExceededError("OpenAI rate limit or quota exceeded")
        if isinstance(error, openai.NotFoundError):
            return ModelUnavailableError("OpenAI model not found", model=self.model)
        if isinstance(error, (openai.BadRequestError, openai.UnprocessableEntityError)):
            return MalformedRequestError(
                "OpenAI rejected the request",
                detail=self._scrub(getattr(error, "message", str(error))),
            )
        if isinstance(error, (openai.APITimeoutError, httpx.TimeoutException)):
            return ProviderError("OpenAI request timed out", provider="OpenAI")
        if isinstance(error, (openai.APIConnectionError, httpx.TransportError)):
            return ProviderError("Could not reach the OpenAI API", provider="OpenAI")
        message = getattr(error, "message", None) or str(error)
        return ProviderError(self._scrub(message), provider="OpenAI")

    def extract_report(self, response: Any) -> str:
        """
        Pull the report text out of a chat completion.

        Raises:
            EmptyResponseError: No choices, or the output was withheld
        """
        choices = getattr(response, "choices", None)
        if not choices:
            raise EmptyResponseError("OpenAI returned no choices", model=self.model)

        choice = choices[0]
        if choice.finish_reason == "content_filter":
            raise EmptyResponseError("OpenAI withheld the response (content filter)")
        message = choice.message
        if getattr(message, "refusal", None):
            raise EmptyResponseError("OpenAI refused to produce a report")
        return message.content or ""

    def _scrub(self, text: str) -> str:
        if self._api_key is None:
            return text
        return scrub_secrets(text, [self._api_key.get_secret_value()])
