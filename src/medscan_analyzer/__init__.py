"""
MedScan Analyzer - multi-provider analysis of medical documents.

Encodes patient documents, builds one provider-independent prompt and
dispatches it to an interchangeable model backend, returning the report
text or a classified error.
"""

from __future__ import annotations

__version__ = "1.0.0"

from .core.config import settings
from .domain.models import (
    AnalysisRequest,
    AnalysisResult,
    EncodedAnalysisRequest,
    EncodedFile,
    ProviderId,
    RawFile,
)
from .services.analysis import AnalysisService, analyze_documents

__all__ = [
    "__version__",
    "settings",
    "analyze_documents",
    "AnalysisService",
    "AnalysisRequest",
    "AnalysisResult",
    "EncodedAnalysisRequest",
    "EncodedFile",
    "ProviderId",
    "RawFile",
]
