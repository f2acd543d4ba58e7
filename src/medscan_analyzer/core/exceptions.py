"""
Custom exception hierarchy for the MedScan Analyzer.

Every failure that can reach a caller is one of the classes below. Each class
carries a fixed ``kind``, the HTTP status used by the web layer and a single
human-readable ``public_message``. The free-form ``message`` and ``context``
are for logs only and never leave the server as-is.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of failure classifications."""

    VALIDATION_FAILED = "ValidationFailed"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    ENCODING_FAILED = "EncodingFailed"
    UNKNOWN_PROVIDER = "UnknownProvider"
    MISSING_CREDENTIAL = "MissingCredential"
    INVALID_CREDENTIAL = "InvalidCredential"
    QUOTA_EXCEEDED = "QuotaExceeded"
    MODEL_UNAVAILABLE = "ModelUnavailable"
    MALFORMED_REQUEST = "MalformedRequest"
    EMPTY_RESPONSE = "EmptyResponse"
    PROVIDER_ERROR = "ProviderError"


class AnalyzerError(Exception):
    """Base exception for all analyzer errors."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR
    status_code: int = 500
    public_message: str = "Failed to analyze medical documents. Please try again."

    def __init__(self, message: str, **context: Any) -> None:
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            **context: Additional error context for logging
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def caller_message(self) -> str:
        """Message that is safe to send across the trust boundary."""
        return self.public_message


class ValidationError(AnalyzerError):
    """Raised when the request shape is invalid."""

    kind = ErrorKind.VALIDATION_FAILED
    status_code = 400
    public_message = (
        "Invalid request body. Required fields: subjectName, subjectAge, "
        "and at least one file."
    )

    def caller_message(self) -> str:
        # Validation messages describe the caller's own input.
        return self.message


class PayloadTooLargeError(AnalyzerError):
    """Raised when the aggregate file size exceeds the configured ceiling."""

    kind = ErrorKind.PAYLOAD_TOO_LARGE
    status_code = 413

    def __init__(self, total_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            "Aggregate file size exceeds limit",
            total_bytes=total_bytes,
            limit_bytes=limit_bytes,
        )
        self.total_bytes = total_bytes
        self.limit_bytes = limit_bytes

    def caller_message(self) -> str:
        total_mb = self.total_bytes / 1_048_576
        limit_mb = self.limit_bytes / 1_048_576
        return (
            f"Total file size ({total_mb:.2f}MB) exceeds the maximum allowed "
            f"({limit_mb:.0f}MB). Please reduce file sizes or use fewer files."
        )


class EncodingError(AnalyzerError):
    """Raised when a file cannot be read or converted to base64."""

    kind = ErrorKind.ENCODING_FAILED
    status_code = 400

    def __init__(self, message: str, *, file_name: str, reason: str, **context: Any) -> None:
        super().__init__(message, file_name=file_name, reason=reason, **context)
        self.file_name = file_name
        self.reason = reason

    def caller_message(self) -> str:
        if self.reason == "timeout":
            return f'Reading "{self.file_name}" timed out. The file may be too large.'
        return (
            f'Unable to process file "{self.file_name}". Please try a different '
            "file format or a smaller file."
        )


class UnknownProviderError(AnalyzerError):
    """Raised when a provider identifier is outside the supported set."""

    kind = ErrorKind.UNKNOWN_PROVIDER
    status_code = 400

    def __init__(self, provider: str) -> None:
        super().__init__("Unknown model provider", provider=provider)
        self.provider = provider

    def caller_message(self) -> str:
        return f"Unknown model provider: {self.provider}"


class MissingCredentialError(AnalyzerError):
    """Raised when no credential is configured for the selected provider."""

    kind = ErrorKind.MISSING_CREDENTIAL
    status_code = 503
    public_message = "The selected model provider is not configured on the server."


class InvalidCredentialError(AnalyzerError):
    """Raised when the provider rejects the configured credential."""

    kind = ErrorKind.INVALID_CREDENTIAL
    status_code = 401
    public_message = (
        "The server's credentials for this model provider were rejected. "
        "Please contact the operator."
    )


class QuotaExceededError(AnalyzerError):
    """Raised on provider rate-limit or quota errors."""

    kind = ErrorKind.QUOTA_EXCEEDED
    status_code = 429
    public_message = "The model provider's rate limit or quota was exceeded. Please try again later."


class ModelUnavailableError(AnalyzerError):
    """Raised when the configured model cannot be reached."""

    kind = ErrorKind.MODEL_UNAVAILABLE
    status_code = 503
    public_message = "The configured model is not available for this account."


class MalformedRequestError(AnalyzerError):
    """Raised when the provider rejects the request built by an adapter."""

    kind = ErrorKind.MALFORMED_REQUEST
    status_code = 400
    public_message = (
        "The model provider rejected the request. Your files may be too large "
        "or in an unsupported format."
    )


class EmptyResponseError(AnalyzerError):
    """Raised when the provider returns no usable content."""

    kind = ErrorKind.EMPTY_RESPONSE
    status_code = 502
    public_message = "No analysis could be generated. Please try again."


class ProviderError(AnalyzerError):
    """Catch-all for backend failures, carrying the backend's own message."""

    kind = ErrorKind.PROVIDER_ERROR
    status_code = 502

    def __init__(self, message: str, *, provider: str, **context: Any) -> None:
        super().__init__(message, provider=provider, **context)
        self.provider = provider

    def caller_message(self) -> str:
        return f"{self.provider} error: {self.message}"


class ConfigurationError(AnalyzerError):
    """Raised when configuration is invalid."""


STATUS_BY_KIND: dict[ErrorKind, int] = {
    cls.kind: cls.status_code
    for cls in (
        ValidationError,
        PayloadTooLargeError,
        EncodingError,
        UnknownProviderError,
        MissingCredentialError,
        InvalidCredentialError,
        QuotaExceededError,
        ModelUnavailableError,
        MalformedRequestError,
        EmptyResponseError,
        ProviderError,
    )
}


def scrub_secrets(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of a secret value with a placeholder."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text
