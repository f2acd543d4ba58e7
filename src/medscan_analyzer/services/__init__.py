"""Business services and pipeline orchestration."""

from __future__ import annotations

from .analysis import AnalysisService, analyze_documents
from .dispatcher import Dispatcher
from .encoder import ChunkedEncoder, EncoderState
from .prompt import REPORT_SECTIONS, build_prompt, build_prompt_for
from .size_guard import check_payload_size

__all__ = [
    "AnalysisService",
    "ChunkedEncoder",
    "Dispatcher",
    "EncoderState",
    "REPORT_SECTIONS",
    "analyze_documents",
    "build_prompt",
    "build_prompt_for",
    "check_payload_size",
]
