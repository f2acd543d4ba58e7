"""
Google Gemini adapter built on the ``google-genai`` SDK.

Documents are sent as inline-data parts next to the prompt text, with
conservative safety settings suited to medical imagery.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
from google import genai
from google.genai import errors, types
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

SAFETY_SETTINGS: list[types.SafetySetting] = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE)
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]

# Finish reasons meaning the candidate text was withheld.
BLOCKED_FINISH_REASONS = frozenset({"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"})


def is_transient(error: BaseException) -> bool:
    """Transport failures other than timeouts."""
    return isinstance(error, httpx.TransportError) and not isinstance(error, httpx.TimeoutException)


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


class GeminiAdapter(LoggerMixin):
    """Adapter for Gemini multimodal models."""

    provider = ProviderId.GEMINI
    temperature = 0.2
    top_k = 40
    top_p = 0.95

    def __init__(
        self,
        api_key: SecretStr | None,
        *,
        model: str = "gemini-2.0-flash",
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
    def from_settings(cls, settings: Settings) -> GeminiAdapter:
        return cls(
            settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.provider_timeout_seconds,
            max_attempts=settings.provider_max_attempts,
        )

    def _get_client(self) -> Any:
        if self._api_key is None:
            raise MissingCredentialError("Gemini API key not configured on the server")
        if self._client is None:
            self._client = genai.Client(
                api_key=self._api_key.get_secret_value(),
                http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
            )
        return self._client

    def build_contents(self, prompt: str, files: Sequence[EncodedFile]) -> list[types.Content]:
        parts = [types.Part.from_text(text=prompt)]
        parts += [types.Part.from_bytes(data=f.decode(), mime_type=f.mime_type) for f in files]
        return [types.Content(role="user", parts=parts)]

    def build_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self.temperature,
            top_k=self.top_k,
            top_p=self.top_p,
            safety_settings=SAFETY_SETTINGS,
        )

    async def analyze(self, prompt: str, files: Sequence[EncodedFile]) -> str:
        client = self._get_client()
        contents = self.build_contents(prompt, files)
        config = self.build_config()

        self.logger.info(
            "provider_call_started",
            provider=self.provider.value,
            model=self.model,
            file_count=len(files),
        )
        try:
            response = await call_with_retry(
                lambda: client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                ),
                is_transient=is_transient,
                max_attempts=self.max_attempts,
                backoff_seconds=self.retry_backoff_seconds,
                logger=self.logger,
                provider=self.provider,
            )
        except (errors.APIError, httpx.TransportError) as e:
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
        if isinstance(error, httpx.TimeoutException):
            return ProviderError("Gemini request timed out", provider="Gemini")
        if isinstance(error, httpx.TransportError):
            return ProviderError("Could not reach the Gemini API", provider="Gemini")

        code = getattr(error, "code", None)
        status = (getattr(error, "status", None) or "").upper()
        message = getattr(error, "message", None) or str(error)
        lowered = message.lower()

        if code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED") or "api key" in lowered:
            return InvalidCredentialError("Gemini rejected the API key", status=code)
        if code == 429 or status == "RESOURCE_EXHAUSTED" or "quota" in lowered:
            return QuotaExceededError("Gemini rate limit or quota exceeded")
        if code == 404 or status == "NOT_FOUND":
            return ModelUnavailableError("Gemini model not found", model=self.model)
        if code == 400 or status in ("INVALID_ARGUMENT", "FAILED_PRECONDITION"):
            return MalformedRequestError("Gemini rejected the request", detail=self._scrub(message))
        return ProviderError(self._scrub(message), provider="Gemini")

    def extract_report(self, response: Any) -> str:
        """
        Pull the report text out of a generate-content response.

        Raises:
            EmptyResponseError: Prompt blocked, no candidates, or the
                candidate was stopped by a safety filter
        """
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None))
        if block_reason and block_reason != "BLOCKED_REASON_UNSPECIFIED":
            raise EmptyResponseError("Gemini blocked the prompt", block_reason=block_reason)

        candidates = getattr(response, "candidates", None)
        if not candidates:
            raise EmptyResponseError("Gemini returned no candidates", model=self.model)

        candidate = candidates[0]
        finish_reason = _enum_name(getattr(candidate, "finish_reason", None))
        if finish_reason in BLOCKED_FINISH_REASONS:
            raise EmptyResponseError("Gemini withheld the response", finish_reason=finish_reason)

        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        return "".join(part.text for part in parts if getattr(part, "text", None))

    def _scrub(self, text: str) -> str:
        if self._api_key is None:
            return text
        return scrub_secrets(text, [self._api_key.get_secret_value()])
