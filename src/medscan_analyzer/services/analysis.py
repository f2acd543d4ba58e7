"""
Analysis pipeline orchestration.

Runs the stages in order for one request:
1. Size guard
2. Concurrent chunked encoding (raw submissions only)
3. Prompt building
4. Dispatch to the selected provider adapter
"""

from __future__ import annotations

import asyncio
import time

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import AnalyzerError
from ..core.logging import LoggerMixin
from ..domain.models import (
    AnalysisRequest,
    AnalysisResult,
    EncodedAnalysisRequest,
    ProviderId,
)
from ..providers import build_adapters
from .dispatcher import Dispatcher
from .encoder import ChunkedEncoder, ProgressCallback
from .prompt import build_prompt_for
from .size_guard import check_payload_size


class AnalysisService(LoggerMixin):
    """
    Coordinates the document analysis pipeline.

    The service holds the process-wide settings and is shared by every
    request; it keeps no per-request state.
    """

    def __init__(
        self,
        settings: Settings,
        dispatcher: Dispatcher | None = None,
        encoder: ChunkedEncoder | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            settings: Immutable application settings
            dispatcher: Provider routing (built from settings if None)
            encoder: File encoder (built from settings if None)
        """
        self.settings = settings
        self.dispatcher = dispatcher or Dispatcher(build_adapters(settings))
        self.encoder = encoder or ChunkedEncoder.from_settings(settings)

    async def prepare(
        self,
        request: AnalysisRequest,
        progress: ProgressCallback | None = None,
    ) -> EncodedAnalysisRequest:
        """
        Size-check and encode a raw request into its transport form.

        Raises:
            PayloadTooLargeError: Before any file is read
            EncodingError: If any file fails or times out
        """
        total_bytes = check_payload_size(request.files, self.settings.max_total_file_size_bytes)
        self.logger.info(
            "encoding_files",
            file_count=len(request.files),
            total_bytes=total_bytes,
        )
        encoded = await self.encoder.encode_files(request.files, progress)
        return EncodedAnalysisRequest(
            subject_name=request.subject_name,
            subject_age=request.subject_age,
            notes=request.notes,
            files=tuple(encoded),
        )

    async def analyze(
        self,
        provider: ProviderId | str,
        request: AnalysisRequest,
        progress: ProgressCallback | None = None,
    ) -> AnalysisResult:
        """
        Run the full pipeline for a raw request.

        Returns:
            AnalysisResult holding either the report or the classified error
        """
        try:
            provider = ProviderId.parse(provider)
            encoded = await self.prepare(request, progress)
        except AnalyzerError as e:
            return self._failed(e, provider)
        return await self._dispatch(provider, encoded)

    async def analyze_encoded(
        self,
        provider: ProviderId | str,
        request: EncodedAnalysisRequest,
    ) -> AnalysisResult:
        """Run the pipeline for files that were encoded by the caller."""
        try:
            provider = ProviderId.parse(provider)
            check_payload_size(request.files, self.settings.max_total_file_size_bytes)
        except AnalyzerError as e:
            return self._failed(e, provider)
        return await self._dispatch(provider, request)

    async def _dispatch(
        self,
        provider: ProviderId,
        request: EncodedAnalysisRequest,
    ) -> AnalysisResult:
        prompt = build_prompt_for(request)
        started = time.monotonic()
        result = await self.dispatcher.dispatch(provider, prompt, request.files)
        duration_ms = round((time.monotonic() - started) * 1000)
        if result.error is None:
            self.logger.info("analysis_completed", provider=provider.value, duration_ms=duration_ms)
        else:
            self.logger.warning(
                "analysis_failed",
                provider=provider.value,
                kind=result.error.kind.value,
                duration_ms=duration_ms,
            )
        return result

    def _failed(self, error: AnalyzerError, provider: ProviderId | str) -> AnalysisResult:
        self.logger.warning("analysis_rejected", kind=error.kind.value, error=str(error))
        return AnalysisResult.failure(
            error,
            provider=provider if isinstance(provider, ProviderId) else None,
        )


def analyze_documents(
    provider: ProviderId | str,
    request: AnalysisRequest,
    settings: Settings | None = None,
) -> AnalysisResult:
    """
    High-level convenience function to analyze documents in-process.

    Example:
        >>> result = analyze_documents("gemini", request)
        >>> print(result.report_text)
    """
    service = AnalysisService(settings or default_settings)
    return asyncio.run(service.analyze(provider, request))
