"""
Domain models using Pydantic V2.

Defines the core data structures for the analyzer with:
- Strict type validation
- Immutability for everything that flows through the pipeline
- A closed provider enumeration
- A result type that is either a report or a classified failure
"""

from __future__ import annotations

import base64
import binascii
import io
import mimetypes
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.exceptions import AnalyzerError, ErrorKind, UnknownProviderError

MAX_FILES_PER_REQUEST = 5


class ProviderId(str, Enum):
    """Supported analysis backends."""

    OPENAI = "openai"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: str | ProviderId) -> ProviderId:
        """
        Resolve a provider identifier.

        Raises:
            UnknownProviderError: If the value is not a supported provider
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownProviderError(str(value)) from None


class ProviderInfo(BaseModel):
    """Catalogue entry describing a provider to callers."""

    model_config = ConfigDict(frozen=True)

    id: ProviderId
    name: str
    description: str


PROVIDER_CATALOGUE: dict[ProviderId, ProviderInfo] = {
    ProviderId.OPENAI: ProviderInfo(
        id=ProviderId.OPENAI,
        name="OpenAI GPT-4o",
        description=(
            "Advanced multimodal model from OpenAI with strong performance "
            "on medical imagery."
        ),
    ),
    ProviderId.GEMINI: ProviderInfo(
        id=ProviderId.GEMINI,
        name="Google Gemini 2.0 Flash",
        description=(
            "Fast multimodal model from Google with good performance on "
            "medical analysis."
        ),
    ),
}


class RawFile(BaseModel):
    """
    A caller-owned document before encoding.

    Content is held either in memory or as a path that is read lazily, so
    large files are only streamed when the encoder asks for them.

    Attributes:
        name: Original file name
        mime_type: MIME type, e.g. ``image/png``
        byte_size: Size of the content in bytes
        content: In-memory content
        path: Location of the content on disk
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Original file name")
    mime_type: str = Field(..., min_length=1, description="MIME type")
    byte_size: int = Field(..., ge=0, description="Content size in bytes")
    content: bytes | None = Field(default=None, repr=False)
    path: Path | None = Field(default=None)

    @model_validator(mode="after")
    def check_source(self) -> RawFile:
        """Exactly one content source must be present."""
        if (self.content is None) == (self.path is None):
            raise ValueError("RawFile needs exactly one of 'content' or 'path'")
        if self.content is not None and len(self.content) != self.byte_size:
            raise ValueError("byte_size does not match content length")
        return self

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> RawFile:
        return cls(
            name=name,
            mime_type=mime_type or guess_mime_type(name),
            byte_size=len(data),
            content=data,
        )

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> RawFile:
        """Describe a file on disk without reading it."""
        return cls(
            name=path.name,
            mime_type=mime_type or guess_mime_type(path.name),
            byte_size=path.stat().st_size,
            path=path,
        )

    def open(self) -> BinaryIO:
        """Open a fresh binary stream over the content."""
        if self.path is not None:
            return self.path.open("rb")
        return io.BytesIO(self.content or b"")


class EncodedFile(BaseModel):
    """
    A document in transport form.

    Attributes:
        name: Original file name
        mime_type: MIME type
        byte_size: Size of the decoded content in bytes
        base64_payload: Standard base64 text of the content
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)
    byte_size: int = Field(..., ge=0)
    base64_payload: str = Field(..., repr=False)

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_payload}"

    def decode(self) -> bytes:
        """Return the original bytes."""
        return base64.b64decode(self.base64_payload)

    @classmethod
    def from_wire(cls, name: str, mime_type: str, data: str) -> EncodedFile:
        """
        Build from a caller-supplied base64 string.

        ``byte_size`` is derived from the payload itself, never trusted from
        the caller.
        """
        try:
            decoded_size = len(base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"file '{name}' is not valid base64") from e
        return cls(name=name, mime_type=mime_type, byte_size=decoded_size, base64_payload=data)


class _SubjectFields(BaseModel):
    """Patient fields shared by the raw and the encoded request."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    subject_name: str = Field(..., min_length=1, description="Patient name")
    subject_age: str = Field(..., min_length=1, description="Patient age")
    notes: str | None = Field(default=None, description="Optional clinical notes")

    @field_validator("notes")
    @classmethod
    def blank_notes_are_absent(cls, v: str | None) -> str | None:
        """Whitespace-only notes are treated as not supplied."""
        return v or None


class AnalysisRequest(_SubjectFields):
    """A submission of patient fields plus the caller's raw documents."""

    files: tuple[RawFile, ...] = Field(
        ...,
        min_length=1,
        max_length=MAX_FILES_PER_REQUEST,
    )

    @property
    def total_bytes(self) -> int:
        return sum(f.byte_size for f in self.files)


class EncodedAnalysisRequest(_SubjectFields):
    """
    The request shape that crosses the trust boundary.

    Carries no credential of any kind.
    """

    files: tuple[EncodedFile, ...] = Field(
        ...,
        min_length=1,
        max_length=MAX_FILES_PER_REQUEST,
    )


class AnalysisFailure(BaseModel):
    """Classified failure exposed to callers."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str


class AnalysisResult(BaseModel):
    """
    Outcome of an analysis: either a report or a failure, never both.

    Attributes:
        provider: Provider that handled (or was asked to handle) the request
        report_text: Report text on success, possibly blank
        error: Failure details when no report was produced
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderId | None = None
    report_text: str | None = None
    error: AnalysisFailure | None = None

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> AnalysisResult:
        if (self.report_text is None) == (self.error is None):
            raise ValueError("AnalysisResult needs exactly one of 'report_text' or 'error'")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, report_text: str, provider: ProviderId | None = None) -> AnalysisResult:
        return cls(provider=provider, report_text=report_text)

    @classmethod
    def failure(cls, exc: AnalyzerError, provider: ProviderId | None = None) -> AnalysisResult:
        return cls(
            provider=provider,
            error=AnalysisFailure(kind=exc.kind, message=exc.caller_message()),
        )


def guess_mime_type(file_name: str) -> str:
    """Guess a MIME type from a file name, defaulting to octet-stream."""
    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or "application/octet-stream"
