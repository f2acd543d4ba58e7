"""
Wire models for the analysis API.

Field names follow the JSON contract (camelCase). The legacy names
``patientName``, ``patientAge`` and ``additionalNotes`` are accepted too.
Unknown fields are ignored, so a caller can never smuggle configuration in.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..core.exceptions import ValidationError
from ..domain.models import (
    MAX_FILES_PER_REQUEST,
    EncodedAnalysisRequest,
    EncodedFile,
    ProviderId,
)


class WireFile(BaseModel):
    """A pre-encoded file as sent by the caller."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="MIME type")
    size: int = Field(..., ge=0, description="Declared size in bytes")
    data: str = Field(..., min_length=1, description="Base64 content")


class AnalyzePayload(BaseModel):
    """Body of ``POST /api/models/{provider}/analyze``."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    subject_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("subjectName", "patientName", "subject_name"),
    )
    subject_age: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("subjectAge", "patientAge", "subject_age"),
    )
    notes: str | None = Field(
        default=None,
        validation_alias=AliasChoices("notes", "additionalNotes"),
    )
    files: list[WireFile] = Field(..., min_length=1, max_length=MAX_FILES_PER_REQUEST)

    @field_validator("subject_age", mode="before")
    @classmethod
    def age_as_text(cls, v: object) -> object:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def to_domain(self) -> EncodedAnalysisRequest:
        """
        Convert to the domain request.

        Raises:
            ValidationError: If any file payload is not valid base64
        """
        try:
            files = tuple(EncodedFile.from_wire(f.name, f.type, f.data) for f in self.files)
        except ValueError as e:
            raise ValidationError(str(e)) from None
        return EncodedAnalysisRequest(
            subject_name=self.subject_name,
            subject_age=self.subject_age,
            notes=self.notes,
            files=files,
        )

    @classmethod
    def from_domain(cls, request: EncodedAnalysisRequest) -> AnalyzePayload:
        return cls(
            subject_name=request.subject_name,
            subject_age=request.subject_age,
            notes=request.notes,
            files=[
                WireFile(name=f.name, type=f.mime_type, size=f.byte_size, data=f.base64_payload)
                for f in request.files
            ],
        )

    def to_json_body(self) -> dict[str, object]:
        """Serialize using the camelCase field names of the contract."""
        body: dict[str, object] = {
            "subjectName": self.subject_name,
            "subjectAge": self.subject_age,
            "files": [f.model_dump() for f in self.files],
        }
        if self.notes:
            body["notes"] = self.notes
        return body


class AnalyzeResponse(BaseModel):
    """Successful analysis."""

    result: str


class ErrorResponse(BaseModel):
    """Failed request."""

    error: str


class ProviderSummary(BaseModel):
    """Catalogue entry returned by ``GET /api/models``."""

    id: ProviderId
    name: str
    description: str
    model: str
    configured: bool


class HealthResponse(BaseModel):
    status: str
    version: str
