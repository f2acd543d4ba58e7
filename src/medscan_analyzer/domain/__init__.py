"""Domain models and business entities."""

from __future__ import annotations

from .models import (
    MAX_FILES_PER_REQUEST,
    PROVIDER_CATALOGUE,
    AnalysisFailure,
    AnalysisRequest,
    AnalysisResult,
    EncodedAnalysisRequest,
    EncodedFile,
    ProviderId,
    ProviderInfo,
    RawFile,
)

__all__ = [
    "MAX_FILES_PER_REQUEST",
    "PROVIDER_CATALOGUE",
    "AnalysisFailure",
    "AnalysisRequest",
    "AnalysisResult",
    "EncodedAnalysisRequest",
    "EncodedFile",
    "ProviderId",
    "ProviderInfo",
    "RawFile",
]
